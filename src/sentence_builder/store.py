from __future__ import annotations

import contextlib
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generator, Iterator, List, Protocol, Sequence, Tuple

from .db import CORPUS_TABLES, DatabaseEnvironment, MariaDBEnvironment
from .errors import StorageError

Successor = Tuple[str, int]


@dataclass(frozen=True)
class WordRecord:
    word: str
    total_count: int
    sentence_start_count: int
    sentence_end_count: int

    @property
    def end_probability(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.sentence_end_count / self.total_count


@dataclass(frozen=True)
class FileRecord:
    file_id: int
    filename: str
    word_count: int
    import_date: str


@dataclass(frozen=True)
class CorpusSummary:
    files: int
    distinct_words: int
    total_occurrences: int
    bigram_edges: int
    trigram_edges: int


class CorpusReader(Protocol):
    """Read interface shared by the store and in-memory snapshots."""

    def lookup_bigram_successors(self, word: str, limit: int | None = None) -> List[Successor]:
        """Followers of `word` as (word, frequency), most frequent first."""

    def lookup_trigram_successors(
        self, first: str, second: str, limit: int | None = None
    ) -> List[Successor]:
        """Followers of the (first, second) context, most frequent first."""

    def lookup_word_stats(self, word: str) -> WordRecord | None:
        """Corpus-wide counters for `word`, or None when unseen."""

    def top_words_by_total_count(self, limit: int) -> List[str]:
        """The `limit` most frequent words."""

    def words_starting_with(
        self, prefix: str, limit: int, exclude: str | None = None
    ) -> List[str]:
        """Most frequent words beginning with `prefix`, minus `exclude`."""

    def best_starting_word(self) -> str | None:
        """Most common sentence opener (ties: total count, then text)."""


def _escape_like(text: str) -> str:
    return text.replace("!", "!!").replace("%", "!%").replace("_", "!_")


class CorpusStore:
    """Relational corpus statistics: the only owner of persisted counts.

    Reads return plain lists ordered by frequency (or count) DESC with the
    word text ASC as tie-break. Writes are additive upserts so concurrent
    writers never lose increments; only the file token count is overwritten.
    """

    def __init__(self, db: DatabaseEnvironment | MariaDBEnvironment) -> None:
        self.db = db
        self._word_ids: Dict[str, int] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Driver plumbing
    # ------------------------------------------------------------------ #
    def _query(self, sql: str, params: Sequence | None = None):
        try:
            return self.db.query(sql, params)
        except self.db.driver_errors as exc:
            raise StorageError(f"Corpus query failed: {exc}") from exc

    def _execute(self, sql: str, params: Sequence | None = None) -> int:
        try:
            return self.db.execute(sql, params)
        except self.db.driver_errors as exc:
            raise StorageError(f"Corpus write failed: {exc}") from exc

    @contextlib.contextmanager
    def transaction(self) -> Generator["CorpusStore", None, None]:
        """Run a block of merges atomically; any failure leaves the corpus untouched."""
        with self._lock:
            try:
                with self.db.transaction():
                    yield self
            except StorageError as exc:
                self._word_ids.clear()
                raise StorageError(f"{exc} (transaction rolled back)", rolled_back=True) from exc
            except self.db.driver_errors as exc:
                self._word_ids.clear()
                raise StorageError(
                    f"Corpus transaction failed and was rolled back: {exc}", rolled_back=True
                ) from exc
            except BaseException:
                self._word_ids.clear()
                raise

    # ------------------------------------------------------------------ #
    # Read interface
    # ------------------------------------------------------------------ #
    def lookup_bigram_successors(self, word: str, limit: int | None = None) -> List[Successor]:
        sql = """
            SELECT w2.word_text AS word, r.frequency AS frequency
            FROM words w1
            JOIN word_relations_bigram r ON r.from_word_id = w1.word_id
            JOIN words w2 ON w2.word_id = r.to_word_id
            WHERE w1.word_text = ?
            ORDER BY r.frequency DESC, w2.word_text ASC
            """
        params: list = [word]
        if limit is not None:
            if limit <= 0:
                return []
            sql += " LIMIT ?"
            params.append(limit)
        return [(row["word"], int(row["frequency"])) for row in self._query(sql, params)]

    def lookup_trigram_successors(
        self, first: str, second: str, limit: int | None = None
    ) -> List[Successor]:
        sql = """
            SELECT w3.word_text AS word, t.frequency AS frequency
            FROM words w1
            JOIN word_relations_trigram t ON t.first_word_id = w1.word_id
            JOIN words w2 ON w2.word_id = t.second_word_id
            JOIN words w3 ON w3.word_id = t.next_word_id
            WHERE w1.word_text = ? AND w2.word_text = ?
            ORDER BY t.frequency DESC, w3.word_text ASC
            """
        params: list = [first, second]
        if limit is not None:
            if limit <= 0:
                return []
            sql += " LIMIT ?"
            params.append(limit)
        return [(row["word"], int(row["frequency"])) for row in self._query(sql, params)]

    def lookup_word_stats(self, word: str) -> WordRecord | None:
        rows = self._query(
            """
            SELECT word_text, total_count, sentence_start_count, sentence_end_count
            FROM words
            WHERE word_text = ?
            """,
            (word,),
        )
        return self._word_record(rows[0]) if rows else None

    def top_words_by_total_count(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        rows = self._query(
            "SELECT word_text FROM words ORDER BY total_count DESC, word_text ASC LIMIT ?",
            (limit,),
        )
        return [row["word_text"] for row in rows]

    def words_starting_with(
        self, prefix: str, limit: int, exclude: str | None = None
    ) -> List[str]:
        if limit <= 0 or not prefix:
            return []
        sql = "SELECT word_text FROM words WHERE word_text LIKE ? ESCAPE '!'"
        params: list = [_escape_like(prefix) + "%"]
        if exclude is not None:
            sql += " AND word_text <> ?"
            params.append(exclude)
        sql += " ORDER BY total_count DESC, word_text ASC LIMIT ?"
        params.append(limit)
        return [row["word_text"] for row in self._query(sql, params)]

    def best_starting_word(self) -> str | None:
        rows = self._query(
            """
            SELECT word_text
            FROM words
            ORDER BY sentence_start_count DESC, total_count DESC, word_text ASC
            LIMIT 1
            """
        )
        return rows[0]["word_text"] if rows else None

    def bigram_frequency(self, from_word: str, to_word: str) -> int:
        rows = self._query(
            """
            SELECT r.frequency AS frequency
            FROM word_relations_bigram r
            JOIN words w1 ON w1.word_id = r.from_word_id
            JOIN words w2 ON w2.word_id = r.to_word_id
            WHERE w1.word_text = ? AND w2.word_text = ?
            """,
            (from_word, to_word),
        )
        return int(rows[0]["frequency"]) if rows else 0

    def trigram_frequency(self, first: str, second: str, next_word: str) -> int:
        rows = self._query(
            """
            SELECT t.frequency AS frequency
            FROM word_relations_trigram t
            JOIN words w1 ON w1.word_id = t.first_word_id
            JOIN words w2 ON w2.word_id = t.second_word_id
            JOIN words w3 ON w3.word_id = t.next_word_id
            WHERE w1.word_text = ? AND w2.word_text = ? AND w3.word_text = ?
            """,
            (first, second, next_word),
        )
        return int(rows[0]["frequency"]) if rows else 0

    # ------------------------------------------------------------------ #
    # Write interface
    # ------------------------------------------------------------------ #
    def word_id(self, word: str) -> int:
        cached = self._word_ids.get(word)
        if cached is not None:
            return cached
        rows = self._query("SELECT word_id FROM words WHERE word_text = ?", (word,))
        if not rows:
            raise StorageError(f"Missing word in corpus: {word!r}")
        word_id = int(rows[0]["word_id"])
        self._word_ids[word] = word_id
        return word_id

    def file_id(self, filename: str) -> int:
        rows = self._query("SELECT file_id FROM files WHERE filename = ?", (filename,))
        if not rows:
            raise StorageError(f"Missing file record: {filename!r}")
        return int(rows[0]["file_id"])

    def merge_file_record(
        self, filename: str, token_count: int, imported_at: datetime | None = None
    ) -> int:
        stamp = (imported_at or datetime.now()).isoformat(sep=" ", timespec="seconds")
        self._execute(
            "INSERT INTO files(filename, word_count, import_date) VALUES (?, ?, ?) "
            + self.db.upsert_clause(("filename",), replace=("word_count", "import_date")),
            (filename, token_count, stamp),
        )
        return self.file_id(filename)

    def merge_word_stats(self, word: str, total: int, starts: int = 0, ends: int = 0) -> int:
        self._execute(
            "INSERT INTO words(word_text, total_count, sentence_start_count, sentence_end_count) "
            "VALUES (?, ?, ?, ?) "
            + self.db.upsert_clause(
                ("word_text",),
                add=("total_count", "sentence_start_count", "sentence_end_count"),
            ),
            (word, total, starts, ends),
        )
        return self.word_id(word)

    def merge_bigram(self, from_word: str, to_word: str, delta: int) -> None:
        self._execute(
            "INSERT INTO word_relations_bigram(from_word_id, to_word_id, frequency) VALUES (?, ?, ?) "
            + self.db.upsert_clause(("from_word_id", "to_word_id"), add=("frequency",)),
            (self.word_id(from_word), self.word_id(to_word), delta),
        )

    def merge_trigram(self, first: str, second: str, next_word: str, delta: int) -> None:
        self._execute(
            "INSERT INTO word_relations_trigram(first_word_id, second_word_id, next_word_id, frequency) "
            "VALUES (?, ?, ?, ?) "
            + self.db.upsert_clause(
                ("first_word_id", "second_word_id", "next_word_id"), add=("frequency",)
            ),
            (self.word_id(first), self.word_id(second), self.word_id(next_word), delta),
        )

    def merge_document_word_count(self, word: str, file_id: int, delta: int) -> None:
        self._execute(
            "INSERT INTO word_files(word_id, file_id, count_in_file) VALUES (?, ?, ?) "
            + self.db.upsert_clause(("word_id", "file_id"), add=("count_in_file",)),
            (self.word_id(word), file_id, delta),
        )

    def reset(self) -> None:
        """Drop every count; the only operation that ever lowers statistics."""
        with self.transaction():
            for table in CORPUS_TABLES:
                self._execute(f"DELETE FROM {table}")
        self._word_ids.clear()

    # ------------------------------------------------------------------ #
    # Analytics
    # ------------------------------------------------------------------ #
    def corpus_summary(self) -> CorpusSummary:
        def single(sql: str) -> int:
            rows = self._query(sql)
            return int(rows[0]["n"] or 0) if rows else 0

        return CorpusSummary(
            files=single("SELECT COUNT(*) AS n FROM files"),
            distinct_words=single("SELECT COUNT(*) AS n FROM words"),
            total_occurrences=single("SELECT COALESCE(SUM(total_count), 0) AS n FROM words"),
            bigram_edges=single("SELECT COUNT(*) AS n FROM word_relations_bigram"),
            trigram_edges=single("SELECT COUNT(*) AS n FROM word_relations_trigram"),
        )

    def list_files(self) -> List[FileRecord]:
        rows = self._query(
            """
            SELECT file_id, filename, word_count, import_date
            FROM files
            ORDER BY import_date DESC, filename ASC
            """
        )
        return [
            FileRecord(
                file_id=int(row["file_id"]),
                filename=row["filename"],
                word_count=int(row["word_count"]),
                import_date=str(row["import_date"]),
            )
            for row in rows
        ]

    def word_table(self, limit: int = 500) -> List[WordRecord]:
        if limit <= 0:
            return []
        rows = self._query(
            """
            SELECT word_text, total_count, sentence_start_count, sentence_end_count
            FROM words
            ORDER BY total_count DESC, word_text ASC
            LIMIT ?
            """,
            (limit,),
        )
        return [self._word_record(row) for row in rows]

    def file_word_counts(self, filename: str, limit: int = 50) -> List[Tuple[str, int]]:
        if limit <= 0:
            return []
        rows = self._query(
            """
            SELECT w.word_text AS word, wf.count_in_file AS count_in_file
            FROM word_files wf
            JOIN files f ON f.file_id = wf.file_id
            JOIN words w ON w.word_id = wf.word_id
            WHERE f.filename = ?
            ORDER BY wf.count_in_file DESC, w.word_text ASC
            LIMIT ?
            """,
            (filename, limit),
        )
        return [(row["word"], int(row["count_in_file"])) for row in rows]

    # ------------------------------------------------------------------ #
    # Bulk iteration (snapshot rebuilds)
    # ------------------------------------------------------------------ #
    def iter_words(self) -> Iterator[WordRecord]:
        rows = self._query(
            "SELECT word_text, total_count, sentence_start_count, sentence_end_count FROM words"
        )
        for row in rows:
            yield self._word_record(row)

    def iter_bigrams(self) -> Iterator[Tuple[str, str, int]]:
        rows = self._query(
            """
            SELECT w1.word_text AS first, w2.word_text AS second, r.frequency AS frequency
            FROM word_relations_bigram r
            JOIN words w1 ON w1.word_id = r.from_word_id
            JOIN words w2 ON w2.word_id = r.to_word_id
            """
        )
        for row in rows:
            yield row["first"], row["second"], int(row["frequency"])

    def iter_trigrams(self) -> Iterator[Tuple[str, str, str, int]]:
        rows = self._query(
            """
            SELECT w1.word_text AS first, w2.word_text AS second, w3.word_text AS next_word,
                   t.frequency AS frequency
            FROM word_relations_trigram t
            JOIN words w1 ON w1.word_id = t.first_word_id
            JOIN words w2 ON w2.word_id = t.second_word_id
            JOIN words w3 ON w3.word_id = t.next_word_id
            """
        )
        for row in rows:
            yield row["first"], row["second"], row["next_word"], int(row["frequency"])

    @staticmethod
    def _word_record(row) -> WordRecord:
        return WordRecord(
            word=row["word_text"],
            total_count=int(row["total_count"]),
            sentence_start_count=int(row["sentence_start_count"]),
            sentence_end_count=int(row["sentence_end_count"]),
        )


__all__ = [
    "CorpusReader",
    "CorpusStore",
    "CorpusSummary",
    "FileRecord",
    "Successor",
    "WordRecord",
]
