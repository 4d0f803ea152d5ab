from __future__ import annotations

import sqlite3
import unittest
from datetime import datetime

from sentence_builder.db import DatabaseEnvironment, SCHEMA_VERSION
from sentence_builder.errors import StorageError
from sentence_builder.store import CorpusStore


class DatabaseEnvironmentTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = DatabaseEnvironment(":memory:")

    def tearDown(self) -> None:
        self.db.close()

    def test_schema_version_recorded(self) -> None:
        self.assertEqual(self.db.get_metadata("schema_version"), SCHEMA_VERSION)

    def test_upsert_clause_sums_and_replaces(self) -> None:
        clause = self.db.upsert_clause(("a", "b"), add=("n",), replace=("m",))
        self.assertEqual(clause, "ON CONFLICT(a, b) DO UPDATE SET n = n + excluded.n, m = excluded.m")

    def test_transaction_rolls_back_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                self.db.execute("INSERT INTO words(word_text, total_count) VALUES (?, ?)", ("x", 1))
                raise RuntimeError("boom")
        self.assertEqual(self.db.query("SELECT COUNT(*) AS n FROM words")[0]["n"], 0)


class CorpusStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = DatabaseEnvironment(":memory:")
        self.store = CorpusStore(self.db)
        with self.store.transaction():
            file_id = self.store.merge_file_record("a.txt", 10)
            for word, total, starts, ends in (
                ("the", 5, 3, 0),
                ("cat", 3, 0, 1),
                ("car", 3, 1, 0),
                ("dog", 2, 0, 2),
                ("c_t", 1, 0, 0),
            ):
                self.store.merge_word_stats(word, total, starts, ends)
                self.store.merge_document_word_count(word, file_id, total)
            self.store.merge_bigram("the", "dog", 2)
            self.store.merge_bigram("the", "cat", 2)
            self.store.merge_bigram("the", "car", 1)
            self.store.merge_trigram("the", "cat", "dog", 1)

    def tearDown(self) -> None:
        self.db.close()

    def test_bigram_successors_ordered_with_tie_break(self) -> None:
        self.assertEqual(
            self.store.lookup_bigram_successors("the"),
            [("cat", 2), ("dog", 2), ("car", 1)],
        )
        self.assertEqual(self.store.lookup_bigram_successors("the", 1), [("cat", 2)])
        self.assertEqual(self.store.lookup_bigram_successors("the", 0), [])
        self.assertEqual(self.store.lookup_bigram_successors("unknown"), [])

    def test_trigram_successors(self) -> None:
        self.assertEqual(self.store.lookup_trigram_successors("the", "cat"), [("dog", 1)])
        self.assertEqual(self.store.lookup_trigram_successors("cat", "the"), [])

    def test_merges_are_additive(self) -> None:
        with self.store.transaction():
            self.store.merge_word_stats("cat", 2, 1, 1)
            self.store.merge_bigram("the", "car", 4)
        stats = self.store.lookup_word_stats("cat")
        assert stats is not None
        self.assertEqual((stats.total_count, stats.sentence_start_count, stats.sentence_end_count), (5, 1, 2))
        self.assertEqual(self.store.bigram_frequency("the", "car"), 5)
        self.assertEqual(self.store.lookup_bigram_successors("the", 1), [("car", 5)])

    def test_file_record_word_count_is_replaced(self) -> None:
        stamp = datetime(2024, 1, 2, 3, 4, 5)
        with self.store.transaction():
            self.store.merge_file_record("a.txt", 42, imported_at=stamp)
        [record] = self.store.list_files()
        self.assertEqual(record.word_count, 42)
        self.assertEqual(record.import_date, "2024-01-02 03:04:05")

    def test_top_words_and_prefix_lookup(self) -> None:
        self.assertEqual(self.store.top_words_by_total_count(3), ["the", "car", "cat"])
        self.assertEqual(self.store.words_starting_with("c", 10), ["car", "cat", "c_t"])
        self.assertEqual(self.store.words_starting_with("c", 10, exclude="cat"), ["car", "c_t"])
        # LIKE wildcards in the prefix are matched literally.
        self.assertEqual(self.store.words_starting_with("c_", 10), ["c_t"])
        self.assertEqual(self.store.words_starting_with("c", 0), [])

    def test_best_starting_word(self) -> None:
        self.assertEqual(self.store.best_starting_word(), "the")

    def test_end_probability(self) -> None:
        stats = self.store.lookup_word_stats("dog")
        assert stats is not None
        self.assertEqual(stats.end_probability, 1.0)
        self.assertIsNone(self.store.lookup_word_stats("missing"))

    def test_analytics(self) -> None:
        summary = self.store.corpus_summary()
        self.assertEqual(summary.files, 1)
        self.assertEqual(summary.distinct_words, 5)
        self.assertEqual(summary.total_occurrences, 14)
        self.assertEqual(summary.bigram_edges, 3)
        self.assertEqual(summary.trigram_edges, 1)
        self.assertEqual(self.store.file_word_counts("a.txt", 2), [("the", 5), ("car", 3)])
        self.assertEqual([record.word for record in self.store.word_table(2)], ["the", "car"])

    def test_document_counts_follow_returned_file_id(self) -> None:
        with self.store.transaction():
            file_id = self.store.merge_file_record("b.txt", 4)
            self.assertEqual(file_id, self.store.file_id("b.txt"))
            self.assertNotEqual(file_id, self.store.file_id("a.txt"))
            self.store.merge_document_word_count("dog", file_id, 4)
        self.assertEqual(self.store.file_word_counts("b.txt", 5), [("dog", 4)])
        self.assertEqual(self.store.file_word_counts("a.txt", 5)[-1], ("c_t", 1))
        # re-recording a file keeps its id
        with self.store.transaction():
            self.assertEqual(self.store.merge_file_record("b.txt", 9), file_id)

    def test_failed_transaction_is_rolled_back(self) -> None:
        with self.assertRaises(StorageError) as ctx:
            with self.store.transaction():
                self.store.merge_word_stats("new", 1)
                self.store.merge_bigram("new", "absent", 1)
        self.assertTrue(ctx.exception.rolled_back)
        self.assertIsNone(self.store.lookup_word_stats("new"))

    def test_driver_errors_are_wrapped(self) -> None:
        with self.assertRaises(StorageError) as ctx:
            with self.store.transaction():
                self.db.execute("INSERT INTO nowhere VALUES (1)")
        self.assertTrue(ctx.exception.rolled_back)
        self.assertIsInstance(ctx.exception.__cause__, sqlite3.Error)

    def test_reset_clears_everything(self) -> None:
        self.store.reset()
        summary = self.store.corpus_summary()
        self.assertEqual(
            (summary.files, summary.distinct_words, summary.bigram_edges, summary.trigram_edges),
            (0, 0, 0, 0),
        )
        self.assertIsNone(self.store.best_starting_word())
        with self.store.transaction():
            self.store.merge_word_stats("fresh", 1)
            self.store.merge_word_stats("start", 1)
            self.store.merge_bigram("fresh", "start", 1)
        self.assertEqual(self.store.lookup_bigram_successors("fresh"), [("start", 1)])


if __name__ == "__main__":
    unittest.main()
