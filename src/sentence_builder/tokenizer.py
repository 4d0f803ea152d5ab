"""
Word-level tokenizer producing per-document n-gram statistics.

Tokens are maximal runs of ASCII letters/apostrophes or a single terminal
punctuation mark (``.``, ``!``, ``?``). Everything else separates tokens.
Terminal punctuation closes the current sentence: it marks the preceding
word as a sentence end, flags the next word as a sentence start and clears
the bigram/trigram window so no edge crosses a sentence boundary.

A document that does not end with terminal punctuation leaves its final
word without a sentence-end mark.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from .errors import InputError

TOKEN_PATTERN = re.compile(r"[A-Za-z']+|[.!?]")
TERMINALS = frozenset(".!?")
POSSESSIVE_SUFFIX = "'s"

Bigram = Tuple[str, str]
Trigram = Tuple[str, str, str]


def _is_word_char(ch: str) -> bool:
    return ch.isalpha() or ch == "'"


def normalize(token: str) -> str:
    """Return the canonical storage key for a raw word token.

    Lowercases, strips boundary characters that are neither letters nor
    apostrophes, then drops a trailing possessive ``'s``. Normalizing an
    already normalized word returns it unchanged.
    """
    word = token.lower()
    start, end = 0, len(word)
    while start < end and not _is_word_char(word[start]):
        start += 1
    while end > start and not _is_word_char(word[end - 1]):
        end -= 1
    word = word[start:end]
    if len(word) > 2 and word.endswith(POSSESSIVE_SUFFIX):
        word = word[: -len(POSSESSIVE_SUFFIX)]
    return word


def split_context(text: str | None) -> List[str]:
    """Split free text on whitespace into normalized words, dropping empties."""
    if not text:
        return []
    words = []
    for piece in text.split():
        word = normalize(piece)
        if word:
            words.append(word)
    return words


@dataclass
class WordStats:
    total: int = 0
    starts: int = 0
    ends: int = 0


@dataclass
class TokenizationResult:
    """File-scoped statistics; consumed once by the importer."""

    token_count: int = 0
    word_stats: Dict[str, WordStats] = field(default_factory=dict)
    bigrams: Counter = field(default_factory=Counter)
    trigrams: Counter = field(default_factory=Counter)

    @property
    def distinct_words(self) -> int:
        return len(self.word_stats)

    @property
    def bigram_mass(self) -> int:
        return sum(self.bigrams.values())

    @property
    def trigram_mass(self) -> int:
        return sum(self.trigrams.values())


def iter_tokens(text: str) -> Iterator[str]:
    for match in TOKEN_PATTERN.finditer(text):
        yield match.group(0)


def tokenize(text: str) -> TokenizationResult:
    result = TokenizationResult()
    stats = result.word_stats
    prev2: str | None = None
    prev1: str | None = None
    sentence_start = True

    for raw in iter_tokens(text):
        if raw in TERMINALS:
            result.token_count += 1
            if prev1 is not None:
                stats[prev1].ends += 1
            sentence_start = True
            prev2 = prev1 = None
            continue

        word = normalize(raw)
        if not word:
            continue
        result.token_count += 1

        entry = stats.get(word)
        if entry is None:
            entry = stats[word] = WordStats()
        entry.total += 1
        if sentence_start:
            entry.starts += 1

        if prev1 is not None:
            result.bigrams[(prev1, word)] += 1
        if prev2 is not None:
            result.trigrams[(prev2, prev1, word)] += 1

        sentence_start = False
        prev2, prev1 = prev1, word

    return result


def read_document(path: str | Path | None) -> str:
    """Read a UTF-8 plain-text document, mapping every failure to :class:`InputError`."""
    if path is None:
        raise InputError("No document supplied")
    doc = Path(path)
    if not doc.exists():
        raise InputError(f"No such document: {doc}")
    if not doc.is_file():
        raise InputError(f"Not a regular file: {doc}")
    try:
        return doc.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InputError(f"{doc} is not valid UTF-8 text: {exc}") from exc
    except OSError as exc:
        raise InputError(f"Unable to read {doc}: {exc}") from exc


def tokenize_file(path: str | Path | None) -> TokenizationResult:
    return tokenize(read_document(path))


__all__ = [
    "Bigram",
    "TOKEN_PATTERN",
    "TokenizationResult",
    "Trigram",
    "WordStats",
    "iter_tokens",
    "normalize",
    "read_document",
    "split_context",
    "tokenize",
    "tokenize_file",
]
