"""
Next-word suggestion strategies.

Every strategy is deterministic for a fixed corpus and context: candidates
are ranked by frequency (or total count) with the word text as tie-break.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Type

from .store import CorpusReader
from .tokenizer import split_context


class AutocompleteAlgorithm:
    key = ""
    label = ""

    def __init__(self, reader: CorpusReader) -> None:
        self.reader = reader

    def suggest(self, context: str, limit: int) -> List[str]:
        if limit <= 0:
            return []
        words = split_context(context)
        if not words:
            return []
        return self._suggest(words, limit)

    def _suggest(self, words: Sequence[str], limit: int) -> List[str]:
        raise NotImplementedError


class BigramAutocomplete(AutocompleteAlgorithm):
    """Most frequent followers of the last word."""

    key = "bigram"
    label = "Bigram Top-N"

    def _suggest(self, words: Sequence[str], limit: int) -> List[str]:
        return [word for word, _ in self.reader.lookup_bigram_successors(words[-1], limit)]


class ContextTrigramAutocomplete(AutocompleteAlgorithm):
    """Trigram followers of the last two words, else bigram followers of the last one.

    The fallback only triggers when the two-word context has no recorded
    followers at all.
    """

    key = "context-trigram"
    label = "Context trigram (with bigram fallback)"

    def _suggest(self, words: Sequence[str], limit: int) -> List[str]:
        if len(words) >= 2:
            ranked = self.reader.lookup_trigram_successors(words[-2], words[-1], limit)
            if ranked:
                return [word for word, _ in ranked]
        return [word for word, _ in self.reader.lookup_bigram_successors(words[-1], limit)]


class GlobalFrequencyAutocomplete(AutocompleteAlgorithm):
    """Context-free: the most common words in the whole corpus."""

    key = "global-frequency"
    label = "Global frequency (no context)"

    def suggest(self, context: str, limit: int) -> List[str]:
        if limit <= 0:
            return []
        return self.reader.top_words_by_total_count(limit)


class AlliterativeAutocomplete(AutocompleteAlgorithm):
    """Frequent words sharing the last word's first letter, excluding that word."""

    key = "alliterative"
    label = "Alliterative (same first letter)"

    def _suggest(self, words: Sequence[str], limit: int) -> List[str]:
        seed = words[-1]
        first = seed[0]
        if not first.isalpha():
            return []
        return self.reader.words_starting_with(first, limit, exclude=seed)


AUTOCOMPLETE_ALGORITHMS: Dict[str, Type[AutocompleteAlgorithm]] = {
    cls.key: cls
    for cls in (
        BigramAutocomplete,
        ContextTrigramAutocomplete,
        GlobalFrequencyAutocomplete,
        AlliterativeAutocomplete,
    )
}


def build_autocomplete(key: str, reader: CorpusReader) -> AutocompleteAlgorithm:
    try:
        cls = AUTOCOMPLETE_ALGORITHMS[key]
    except KeyError:
        available = ", ".join(AUTOCOMPLETE_ALGORITHMS)
        raise KeyError(f"Unknown autocomplete algorithm '{key}' (available: {available})") from None
    return cls(reader)


__all__ = [
    "AUTOCOMPLETE_ALGORITHMS",
    "AlliterativeAutocomplete",
    "AutocompleteAlgorithm",
    "BigramAutocomplete",
    "ContextTrigramAutocomplete",
    "GlobalFrequencyAutocomplete",
    "build_autocomplete",
]
