"""
Sentence generation strategies.

All strategies share one loop: resolve the seed (or pick the corpus' most
common sentence opener), then repeatedly pick a next word and append it
until no candidate exists, ``max_words`` is reached, a strategy-specific
stop rule fires, or the caller cancels. Appended words are never retracted.
"""

from __future__ import annotations

import random
from typing import Callable, Dict, List, Sequence, Type

from .store import CorpusReader, Successor
from .tokenizer import split_context

# Candidate pools are capped so every step is a bounded lookup.
RANDOM_WALK_POOL = 100
ALLITERATIVE_POOL = 200
SMART_POOL = 100


def weighted_choice(
    candidates: Sequence[Successor],
    rng: random.Random,
    weight: Callable[[int], float] = float,
) -> str | None:
    """Pick a word with probability proportional to ``weight(frequency)``."""
    if not candidates:
        return None
    weights = [weight(freq) for _, freq in candidates]
    total = sum(weights)
    if total <= 0:
        return None
    choice = rng.random() * total
    running = 0.0
    for (word, _), mass in zip(candidates, weights):
        running += mass
        if choice < running:
            return word
    # Float rounding can leave choice == total.
    return candidates[-1][0]


class SentenceAlgorithm:
    key = ""
    label = ""

    def __init__(self, reader: CorpusReader, rng: random.Random | None = None) -> None:
        self.reader = reader
        self.rng = rng or random.Random()

    def generate(self, seed_text: str | None, max_words: int, cancel=None) -> str:
        """Return up to ``max_words`` space-separated words starting with the seed.

        ``cancel`` is any object exposing a ``cancelled`` flag; once it is set
        the words produced so far are returned.
        """
        if max_words <= 0:
            return ""
        words = self.resolve_seed(seed_text, max_words)
        if not words:
            return ""
        self._extend(words, max_words, cancel)
        return " ".join(words)

    def resolve_seed(self, seed_text: str | None, max_words: int) -> List[str]:
        words = split_context(seed_text)[:max_words]
        if words:
            return words
        start = self.reader.best_starting_word()
        return [start] if start else []

    def _extend(self, words: List[str], max_words: int, cancel) -> None:
        while len(words) < max_words:
            if cancel is not None and cancel.cancelled:
                return
            next_word = self._next_word(words)
            if next_word is None:
                return
            words.append(next_word)
            if self._should_stop(words, next_word):
                return

    def _next_word(self, words: Sequence[str]) -> str | None:
        raise NotImplementedError

    def _should_stop(self, words: Sequence[str], last_word: str) -> bool:
        return False

    def _top_bigram(self, word: str) -> str | None:
        ranked = self.reader.lookup_bigram_successors(word, 1)
        return ranked[0][0] if ranked else None


class BigramGreedySentence(SentenceAlgorithm):
    key = "bigram-greedy"
    label = "Bigram Greedy"

    def _next_word(self, words: Sequence[str]) -> str | None:
        return self._top_bigram(words[-1])


class BigramRandomWalkSentence(SentenceAlgorithm):
    """Samples each follower proportionally to its bigram frequency."""

    key = "bigram-random"
    label = "Bigram Random Walk"

    def _next_word(self, words: Sequence[str]) -> str | None:
        candidates = self.reader.lookup_bigram_successors(words[-1], RANDOM_WALK_POOL)
        return weighted_choice(candidates, self.rng)


class TrigramGreedySentence(SentenceAlgorithm):
    """Greedy on trigram context; a lone seed word is bootstrapped with one bigram step.

    A trigram miss ends the sentence. There is deliberately no bigram
    fallback once two words of context exist.
    """

    key = "trigram-greedy"
    label = "Trigram Greedy"

    def _next_word(self, words: Sequence[str]) -> str | None:
        if len(words) < 2:
            return self._top_bigram(words[-1])
        ranked = self.reader.lookup_trigram_successors(words[-2], words[-1], 1)
        return ranked[0][0] if ranked else None


class AlliterativeRandomSentence(SentenceAlgorithm):
    """Fills the sentence with uniform draws from the seed's first-letter cohort."""

    key = "alliterative-random"
    label = "Alliterative (same first letter)"

    def _extend(self, words: List[str], max_words: int, cancel) -> None:
        seed = words[0]
        if not seed[0].isalpha():
            return
        pool = self.reader.words_starting_with(seed[0], ALLITERATIVE_POOL, exclude=seed)
        if not pool:
            return
        while len(words) < max_words:
            if cancel is not None and cancel.cancelled:
                return
            words.append(self.rng.choice(pool))


class SmartTrigramSamplingSentence(SentenceAlgorithm):
    """Sub-linear weighted sampling over trigrams, bigram fallback, learned endings.

    Candidates are weighted by ``frequency ** ALPHA``. Once the sentence
    holds ``MIN_LENGTH_FOR_ENDING`` words, a sampled word that ends sentences
    at least ``END_THRESHOLD`` of the time closes it.
    """

    key = "smart-trigram"
    label = "Smart Trigram (sample + endings)"

    ALPHA = 0.7
    END_THRESHOLD = 0.35
    MIN_LENGTH_FOR_ENDING = 6

    def _weight(self, frequency: int) -> float:
        return float(frequency) ** self.ALPHA

    def _next_word(self, words: Sequence[str]) -> str | None:
        candidates: List[Successor] = []
        if len(words) >= 2:
            candidates = self.reader.lookup_trigram_successors(words[-2], words[-1], SMART_POOL)
        if not candidates:
            candidates = self.reader.lookup_bigram_successors(words[-1], SMART_POOL)
        return weighted_choice(candidates, self.rng, self._weight)

    def _should_stop(self, words: Sequence[str], last_word: str) -> bool:
        if len(words) < self.MIN_LENGTH_FOR_ENDING:
            return False
        stats = self.reader.lookup_word_stats(last_word)
        end_probability = stats.end_probability if stats else 0.0
        return end_probability >= self.END_THRESHOLD


SENTENCE_ALGORITHMS: Dict[str, Type[SentenceAlgorithm]] = {
    cls.key: cls
    for cls in (
        BigramGreedySentence,
        BigramRandomWalkSentence,
        TrigramGreedySentence,
        AlliterativeRandomSentence,
        SmartTrigramSamplingSentence,
    )
}


def build_sentence_generator(
    key: str,
    reader: CorpusReader,
    rng: random.Random | None = None,
) -> SentenceAlgorithm:
    try:
        cls = SENTENCE_ALGORITHMS[key]
    except KeyError:
        available = ", ".join(SENTENCE_ALGORITHMS)
        raise KeyError(f"Unknown sentence algorithm '{key}' (available: {available})") from None
    return cls(reader, rng=rng)


__all__ = [
    "ALLITERATIVE_POOL",
    "AlliterativeRandomSentence",
    "BigramGreedySentence",
    "BigramRandomWalkSentence",
    "RANDOM_WALK_POOL",
    "SENTENCE_ALGORITHMS",
    "SMART_POOL",
    "SentenceAlgorithm",
    "SmartTrigramSamplingSentence",
    "TrigramGreedySentence",
    "build_sentence_generator",
    "weighted_choice",
]
