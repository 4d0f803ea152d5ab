from __future__ import annotations

import random
from pathlib import Path
from typing import List, Tuple

from .autocomplete import AUTOCOMPLETE_ALGORITHMS, build_autocomplete
from .db import DatabaseEnvironment, MariaDBEnvironment, build_environment
from .importer import CorpusImporter, ImportSummary, ProgressCallback
from .jobs import BackgroundImporter, CancellationToken, ImportJob
from .sentence import SENTENCE_ALGORITHMS, build_sentence_generator
from .settings import SentenceBuilderSettings, load_settings
from .snapshot import SnapshotManager
from .store import CorpusReader, CorpusStore, CorpusSummary, FileRecord


class SentenceBuilderEngine:
    """Facade that wires settings, storage, importing and the strategy registries."""

    def __init__(
        self,
        settings: SentenceBuilderSettings | None = None,
        *,
        db: DatabaseEnvironment | MariaDBEnvironment | None = None,
        db_path: str | Path | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.db = db or build_environment(self.settings, sqlite_path=db_path)
        self.store = CorpusStore(self.db)
        self.importer = CorpusImporter(self.store)
        self.snapshots: SnapshotManager | None = None
        if self.settings.read_mode == "snapshot":
            self.snapshots = SnapshotManager(self.store)
        if rng is None:
            rng = random.Random(self.settings.random_seed)
        self.rng = rng
        self._background: BackgroundImporter | None = None

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #
    def import_file(
        self,
        path: str | Path,
        *,
        progress_callback: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> ImportSummary:
        try:
            return self.importer.import_file(path, progress_callback=progress_callback, cancel=cancel)
        finally:
            self._corpus_changed()

    def import_text(
        self,
        filename: str,
        text: str,
        *,
        progress_callback: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> ImportSummary:
        try:
            return self.importer.import_text(
                filename, text, progress_callback=progress_callback, cancel=cancel
            )
        finally:
            self._corpus_changed()

    def import_in_background(self, path: str | Path) -> ImportJob:
        if self._background is None:
            self._background = BackgroundImporter(
                self.importer, on_finished=lambda _job: self._corpus_changed()
            )
        return self._background.submit_file(path)

    def _corpus_changed(self) -> None:
        if self.snapshots is not None:
            self.snapshots.invalidate()

    # ------------------------------------------------------------------ #
    # Suggestion / generation
    # ------------------------------------------------------------------ #
    def reader(self) -> CorpusReader:
        if self.snapshots is not None:
            return self.snapshots.current()
        return self.store

    def suggest(self, algorithm: str, context: str, limit: int | None = None) -> List[str]:
        if limit is None:
            limit = self.settings.suggestion_limit
        return build_autocomplete(algorithm, self.reader()).suggest(context, limit)

    def generate(
        self,
        algorithm: str,
        seed: str | None,
        max_words: int | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> str:
        if max_words is None:
            max_words = self.settings.max_words
        generator = build_sentence_generator(algorithm, self.reader(), rng=self.rng)
        return generator.generate(seed, max_words, cancel=cancel)

    @staticmethod
    def autocomplete_algorithms() -> List[Tuple[str, str]]:
        return [(key, cls.label) for key, cls in AUTOCOMPLETE_ALGORITHMS.items()]

    @staticmethod
    def sentence_algorithms() -> List[Tuple[str, str]]:
        return [(key, cls.label) for key, cls in SENTENCE_ALGORITHMS.items()]

    # ------------------------------------------------------------------ #
    # Analytics / maintenance
    # ------------------------------------------------------------------ #
    def corpus_summary(self) -> CorpusSummary:
        return self.store.corpus_summary()

    def list_files(self) -> List[FileRecord]:
        return self.store.list_files()

    def reset(self) -> None:
        self.store.reset()
        self._corpus_changed()

    def close(self) -> None:
        if self._background is not None:
            self._background.shutdown(cancel_pending=True)
            self._background = None
        self.db.close()

    def __enter__(self) -> "SentenceBuilderEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
