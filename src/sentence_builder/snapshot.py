from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Tuple

from log_helpers import log_verbose

from .store import CorpusStore, Successor, WordRecord


def _ranked(followers: Dict[str, int]) -> Tuple[Successor, ...]:
    return tuple(sorted(followers.items(), key=lambda item: (-item[1], item[0])))


def _cap(items, limit: int | None) -> list:
    if limit is None:
        return list(items)
    if limit <= 0:
        return []
    return list(items[:limit])


@dataclass(frozen=True)
class CorpusSnapshot:
    """Immutable in-memory view of the corpus with the store's read interface.

    Orderings and tie-breaks match :class:`CorpusStore` exactly, so strategies
    produce the same output against either reader.
    """

    version: int
    words: Dict[str, WordRecord]
    bigrams: Dict[str, Tuple[Successor, ...]]
    trigrams: Dict[Tuple[str, str], Tuple[Successor, ...]]
    by_total: Tuple[str, ...]
    starting_word: str | None

    @classmethod
    def from_store(cls, store: CorpusStore, version: int) -> "CorpusSnapshot":
        words = {record.word: record for record in store.iter_words()}
        bigram_map: Dict[str, Dict[str, int]] = defaultdict(dict)
        for first, second, freq in store.iter_bigrams():
            bigram_map[first][second] = freq
        trigram_map: Dict[Tuple[str, str], Dict[str, int]] = defaultdict(dict)
        for first, second, next_word, freq in store.iter_trigrams():
            trigram_map[(first, second)][next_word] = freq
        by_total = tuple(
            record.word
            for record in sorted(words.values(), key=lambda rec: (-rec.total_count, rec.word))
        )
        starting = min(
            words.values(),
            key=lambda rec: (-rec.sentence_start_count, -rec.total_count, rec.word),
            default=None,
        )
        return cls(
            version=version,
            words=words,
            bigrams={word: _ranked(followers) for word, followers in bigram_map.items()},
            trigrams={key: _ranked(followers) for key, followers in trigram_map.items()},
            by_total=by_total,
            starting_word=starting.word if starting else None,
        )

    def lookup_bigram_successors(self, word: str, limit: int | None = None) -> List[Successor]:
        return _cap(self.bigrams.get(word, ()), limit)

    def lookup_trigram_successors(
        self, first: str, second: str, limit: int | None = None
    ) -> List[Successor]:
        return _cap(self.trigrams.get((first, second), ()), limit)

    def lookup_word_stats(self, word: str) -> WordRecord | None:
        return self.words.get(word)

    def top_words_by_total_count(self, limit: int) -> List[str]:
        return _cap(self.by_total, limit)

    def words_starting_with(
        self, prefix: str, limit: int, exclude: str | None = None
    ) -> List[str]:
        if limit <= 0 or not prefix:
            return []
        out: List[str] = []
        for word in self.by_total:
            if word.startswith(prefix) and word != exclude:
                out.append(word)
                if len(out) >= limit:
                    break
        return out

    def best_starting_word(self) -> str | None:
        return self.starting_word


class SnapshotManager:
    """Owns the current snapshot; rebuilds on demand and swaps it atomically."""

    def __init__(self, store: CorpusStore) -> None:
        self.store = store
        self._snapshot: CorpusSnapshot | None = None
        self._stale = True
        self._version = 0
        self._swap_lock = threading.Lock()
        self._build_lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._version

    def current(self) -> CorpusSnapshot:
        snapshot = self._snapshot
        if snapshot is None or self._stale:
            return self.refresh()
        return snapshot

    def invalidate(self) -> None:
        self._stale = True

    def refresh(self) -> CorpusSnapshot:
        with self._build_lock:
            # Clear first so an invalidate() during the build is not lost.
            self._stale = False
            snapshot = CorpusSnapshot.from_store(self.store, self._version + 1)
            with self._swap_lock:
                self._snapshot = snapshot
                self._version = snapshot.version
        log_verbose(
            3,
            f"[snapshot:v3] Rebuilt corpus snapshot v{snapshot.version}: "
            f"{len(snapshot.words)} words, {len(snapshot.bigrams)} bigram contexts, "
            f"{len(snapshot.trigrams)} trigram contexts",
        )
        return snapshot


__all__ = ["CorpusSnapshot", "SnapshotManager"]
