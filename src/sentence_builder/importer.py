from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from log_helpers import log, log_verbose

from .errors import ImportCancelled, InputError
from .store import CorpusStore
from .tokenizer import TokenizationResult, read_document, tokenize

ProgressCallback = Callable[[str, int, int], None]

# Emit progress roughly every 5% of a stage.
_PROGRESS_STEPS = 20


@dataclass(frozen=True)
class ImportSummary:
    filename: str
    total_tokens: int
    distinct_words: int
    bigram_mass: int
    trigram_mass: int


class CorpusImporter:
    """Merges one document's statistics into the corpus as a single atomic unit."""

    def __init__(self, store: CorpusStore) -> None:
        self.store = store

    def import_file(
        self,
        path: str | Path | None,
        *,
        progress_callback: ProgressCallback | None = None,
        cancel=None,
    ) -> ImportSummary:
        text = read_document(path)
        return self.import_text(
            Path(path).name,
            text,
            progress_callback=progress_callback,
            cancel=cancel,
        )

    def import_text(
        self,
        filename: str,
        text: str,
        *,
        progress_callback: ProgressCallback | None = None,
        cancel=None,
    ) -> ImportSummary:
        if not filename:
            raise InputError("A document name is required")
        if text is None:
            raise InputError(f"No text supplied for {filename}")
        result = tokenize(text)
        log_verbose(
            3,
            f"[import:v3] Tokenized {filename}: {result.token_count} tokens, "
            f"{result.distinct_words} words, {len(result.bigrams)} bigrams, "
            f"{len(result.trigrams)} trigrams",
        )
        return self.import_document(
            filename, result, progress_callback=progress_callback, cancel=cancel
        )

    def import_document(
        self,
        filename: str,
        result: TokenizationResult,
        *,
        progress_callback: ProgressCallback | None = None,
        cancel=None,
    ) -> ImportSummary:
        """Merge ``result`` into the store; either every count lands or none do.

        ``cancel`` is any object with a truthy ``cancelled`` attribute once the
        caller wants to stop. Cancellation and storage failures roll the whole
        document back before the error propagates.
        """
        if not filename:
            raise InputError("A document name is required")

        def checkpoint(stage: str, completed: int, total: int) -> None:
            if cancel is not None and cancel.cancelled:
                raise ImportCancelled(filename)
            if progress_callback is None or total <= 0:
                return
            stride = max(1, total // _PROGRESS_STEPS)
            if completed % stride == 0 or completed == total:
                progress_callback(stage, completed, total)

        store = self.store
        with store.transaction():
            checkpoint("files", 0, 1)
            file_id = store.merge_file_record(filename, result.token_count)
            checkpoint("files", 1, 1)

            words = result.word_stats
            total = len(words)
            for idx, (word, stats) in enumerate(words.items(), start=1):
                store.merge_word_stats(word, stats.total, stats.starts, stats.ends)
                store.merge_document_word_count(word, file_id, stats.total)
                checkpoint("words", idx, total)

            total = len(result.bigrams)
            for idx, ((first, second), freq) in enumerate(result.bigrams.items(), start=1):
                store.merge_bigram(first, second, freq)
                checkpoint("bigrams", idx, total)

            total = len(result.trigrams)
            for idx, ((first, second, next_word), freq) in enumerate(result.trigrams.items(), start=1):
                store.merge_trigram(first, second, next_word, freq)
                checkpoint("trigrams", idx, total)

        summary = ImportSummary(
            filename=filename,
            total_tokens=result.token_count,
            distinct_words=result.distinct_words,
            bigram_mass=result.bigram_mass,
            trigram_mass=result.trigram_mass,
        )
        log(
            f"[import] {filename}: {summary.total_tokens} tokens, {summary.distinct_words} words, "
            f"{summary.bigram_mass} bigrams, {summary.trigram_mass} trigrams merged"
        )
        return summary


__all__ = ["CorpusImporter", "ImportSummary", "ProgressCallback"]
