from __future__ import annotations

import unittest

from sentence_builder.autocomplete import (
    AUTOCOMPLETE_ALGORITHMS,
    BigramAutocomplete,
    ContextTrigramAutocomplete,
    build_autocomplete,
)
from sentence_builder.db import DatabaseEnvironment
from sentence_builder.importer import CorpusImporter
from sentence_builder.store import CorpusStore

CORPUS = "The cat sat. The cat ran. The dog sat. A cat sat. Dig deep."


class AutocompleteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = DatabaseEnvironment(":memory:")
        self.store = CorpusStore(self.db)
        CorpusImporter(self.store).import_text("corpus.txt", CORPUS)

    def tearDown(self) -> None:
        self.db.close()

    def suggest(self, key: str, context: str, limit: int = 10) -> list[str]:
        return build_autocomplete(key, self.store).suggest(context, limit)

    def test_bigram_uses_last_word(self) -> None:
        self.assertEqual(self.suggest("bigram", "the"), ["cat", "dog"])
        self.assertEqual(self.suggest("bigram", "I saw THE"), ["cat", "dog"])
        self.assertEqual(self.suggest("bigram", "the", 1), ["cat"])
        self.assertEqual(self.suggest("bigram", "unknown"), [])

    def test_context_trigram_prefers_two_word_context(self) -> None:
        # Tie on frequency resolves alphabetically.
        self.assertEqual(self.suggest("context-trigram", "The cat"), ["ran", "sat"])

    def test_context_trigram_falls_back_to_bigram(self) -> None:
        bigram = BigramAutocomplete(self.store)
        trigram = ContextTrigramAutocomplete(self.store)
        for context in ("dog cat", "cat", "zebra the", "sat cat"):
            self.assertEqual(trigram.suggest(context, 10), bigram.suggest(context, 10), context)
        self.assertEqual(self.suggest("context-trigram", "dog cat"), ["sat", "ran"])

    def test_global_frequency_ignores_context(self) -> None:
        expected = ["cat", "sat", "the", "a", "deep", "dig", "dog", "ran"]
        self.assertEqual(self.suggest("global-frequency", "anything at all"), expected)
        self.assertEqual(self.suggest("global-frequency", ""), expected)
        self.assertEqual(self.suggest("global-frequency", "x", 2), ["cat", "sat"])

    def test_alliterative_matches_first_letter(self) -> None:
        self.assertEqual(self.suggest("alliterative", "cow"), ["cat"])
        self.assertEqual(self.suggest("alliterative", "Dog"), ["deep", "dig"])
        self.assertEqual(self.suggest("alliterative", "the"), [])
        for word in self.suggest("alliterative", "d", 10):
            self.assertTrue(word.startswith("d"))

    def test_alliterative_requires_letter(self) -> None:
        self.assertEqual(self.suggest("alliterative", "'tis"), [])

    def test_non_positive_limit_and_blank_context(self) -> None:
        for key in AUTOCOMPLETE_ALGORITHMS:
            self.assertEqual(self.suggest(key, "the cat", 0), [], key)
            self.assertEqual(self.suggest(key, "the cat", -3), [], key)
        for key in ("bigram", "context-trigram", "alliterative"):
            self.assertEqual(self.suggest(key, "   "), [], key)

    def test_suggestions_are_deterministic(self) -> None:
        for key in AUTOCOMPLETE_ALGORITHMS:
            first = self.suggest(key, "the cat")
            self.assertEqual(self.suggest(key, "the cat"), first, key)

    def test_registry(self) -> None:
        self.assertEqual(
            list(AUTOCOMPLETE_ALGORITHMS),
            ["bigram", "context-trigram", "global-frequency", "alliterative"],
        )
        for key, cls in AUTOCOMPLETE_ALGORITHMS.items():
            self.assertEqual(cls.key, key)
            self.assertTrue(cls.label)
        with self.assertRaises(KeyError) as ctx:
            build_autocomplete("nope", self.store)
        self.assertIn("bigram", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
