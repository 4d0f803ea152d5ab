from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from sentence_builder.errors import InputError
from sentence_builder.tokenizer import normalize, read_document, split_context, tokenize, tokenize_file


class NormalizeTests(unittest.TestCase):
    def test_lowercases_and_strips_possessive(self) -> None:
        self.assertEqual(normalize("Dog's"), "dog")
        self.assertEqual(normalize("JAMES's"), "james")
        self.assertEqual(normalize("Hello"), "hello")

    def test_short_words_keep_apostrophe_s(self) -> None:
        self.assertEqual(normalize("'s"), "'s")
        self.assertEqual(normalize("s"), "s")

    def test_strips_non_word_boundaries(self) -> None:
        self.assertEqual(normalize("(hello),"), "hello")
        self.assertEqual(normalize("--"), "")

    def test_is_idempotent(self) -> None:
        for raw in ("Dog's", "HELLO", "x's", "(Cat)", "don't", "Zebra"):
            once = normalize(raw)
            self.assertEqual(normalize(once), once, raw)

    def test_split_context_drops_empty_pieces(self) -> None:
        self.assertEqual(split_context("  The  Dog's -- bone "), ["the", "dog", "bone"])
        self.assertEqual(split_context(""), [])
        self.assertEqual(split_context(None), [])


class TokenizeTests(unittest.TestCase):
    def test_two_sentence_document(self) -> None:
        result = tokenize("The cat sat. The cat ran.")
        self.assertEqual(result.token_count, 8)
        the = result.word_stats["the"]
        self.assertEqual((the.total, the.starts, the.ends), (2, 2, 0))
        cat = result.word_stats["cat"]
        self.assertEqual((cat.total, cat.starts, cat.ends), (2, 0, 0))
        self.assertEqual(result.word_stats["sat"].ends, 1)
        self.assertEqual(result.word_stats["ran"].ends, 1)
        self.assertEqual(result.bigrams[("the", "cat")], 2)
        self.assertEqual(result.bigrams[("cat", "sat")], 1)
        self.assertEqual(result.bigrams[("cat", "ran")], 1)
        self.assertNotIn(("sat", "the"), result.bigrams)
        self.assertEqual(result.trigrams[("the", "cat", "sat")], 1)
        self.assertEqual(result.trigrams[("the", "cat", "ran")], 1)
        self.assertEqual(len(result.trigrams), 2)

    def test_no_edge_crosses_sentence_boundary(self) -> None:
        result = tokenize("a b. c d")
        self.assertEqual(set(result.bigrams), {("a", "b"), ("c", "d")})
        self.assertEqual(len(result.trigrams), 0)
        self.assertEqual(result.word_stats["b"].ends, 1)
        self.assertEqual(result.word_stats["c"].starts, 1)

    def test_final_word_without_punctuation_is_not_an_end(self) -> None:
        result = tokenize("a b. c d")
        self.assertEqual(result.word_stats["d"].ends, 0)

    def test_other_characters_separate_tokens(self) -> None:
        result = tokenize("Hello, world! abc123def")
        self.assertEqual(result.bigrams[("hello", "world")], 1)
        self.assertEqual(result.bigrams[("abc", "def")], 1)
        self.assertEqual(result.word_stats["abc"].starts, 1)

    def test_consecutive_terminals(self) -> None:
        result = tokenize("Wait... what?!")
        self.assertEqual(result.word_stats["wait"].ends, 1)
        self.assertEqual(result.word_stats["what"].ends, 1)
        self.assertEqual(result.word_stats["what"].starts, 1)
        self.assertEqual(result.token_count, 7)

    def test_possessive_merges_with_base_word(self) -> None:
        result = tokenize("The dog's bone. The dog ran.")
        self.assertEqual(result.word_stats["dog"].total, 2)
        self.assertEqual(result.bigrams[("the", "dog")], 2)

    def test_summary_properties(self) -> None:
        result = tokenize("a b c a b c.")
        self.assertEqual(result.distinct_words, 3)
        self.assertEqual(result.bigram_mass, 5)
        self.assertEqual(result.trigram_mass, 4)

    def test_empty_text(self) -> None:
        result = tokenize("")
        self.assertEqual(result.token_count, 0)
        self.assertEqual(result.distinct_words, 0)


class ReadDocumentTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_reads_utf8_file(self) -> None:
        path = self.root / "doc.txt"
        path.write_text("One two.", encoding="utf-8")
        self.assertEqual(tokenize_file(path).token_count, 3)

    def test_rejects_missing_directory_and_none(self) -> None:
        with self.assertRaises(InputError):
            read_document(self.root / "missing.txt")
        with self.assertRaises(InputError):
            read_document(self.root)
        with self.assertRaises(InputError):
            read_document(None)

    def test_rejects_invalid_utf8(self) -> None:
        path = self.root / "latin.txt"
        path.write_bytes(b"caf\xe9 \xff\xfe")
        with self.assertRaises(InputError):
            read_document(path)


if __name__ == "__main__":
    unittest.main()
