from __future__ import annotations

import threading
import unittest

from sentence_builder.db import DatabaseEnvironment
from sentence_builder.errors import ImportCancelled, InputError
from sentence_builder.importer import CorpusImporter
from sentence_builder.jobs import BackgroundImporter, CancellationToken, ImportJob, ImportProgress
from sentence_builder.store import CorpusStore

DOC = "The cat sat on the mat. The cat ran."
TIMEOUT = 10.0


class GatedImporter(CorpusImporter):
    """Parks the worker on "blocker.txt" until the gate opens."""

    def __init__(self, store: CorpusStore) -> None:
        super().__init__(store)
        self.gate = threading.Event()
        self.entered = threading.Event()

    def import_text(self, filename, text, **kwargs):
        if filename == "blocker.txt":
            self.entered.set()
            self.gate.wait(TIMEOUT)
        return super().import_text(filename, text, **kwargs)


class BackgroundImporterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = DatabaseEnvironment(":memory:")
        self.store = CorpusStore(self.db)
        self.importer = GatedImporter(self.store)
        self.completed: list[str] = []
        self.finished: list[str] = []
        self.background = BackgroundImporter(
            self.importer,
            on_complete=lambda summary: self.completed.append(summary.filename),
            on_finished=lambda job: self.finished.append(job.filename),
        )

    def tearDown(self) -> None:
        self.background.shutdown()
        self.db.close()

    def _blocking_job(self) -> tuple[ImportJob, threading.Event]:
        """Occupy the single worker until the returned event is set."""
        blocker = self.background.submit_text("blocker.txt", "Hold on.")
        self.assertTrue(self.importer.entered.wait(TIMEOUT))
        return blocker, self.importer.gate

    def test_import_runs_in_background(self) -> None:
        seen: list[ImportProgress] = []
        job = self.background.submit_text("doc.txt", DOC)
        job.add_listener(seen.append)
        summary = job.result(TIMEOUT)
        self.assertEqual(summary.filename, "doc.txt")
        self.assertTrue(job.done())
        self.assertEqual(self.completed, ["doc.txt"])
        self.assertEqual(self.store.bigram_frequency("the", "cat"), 2)
        if job.progress is not None:
            self.assertLessEqual(job.progress.fraction, 1.0)

    def test_cancel_pending_job(self) -> None:
        blocker, release = self._blocking_job()
        pending = self.background.submit_text("pending.txt", DOC)
        self.assertTrue(pending.cancel())
        release.set()
        blocker.result(TIMEOUT)
        with self.assertRaises(ImportCancelled):
            pending.result(TIMEOUT)
        self.assertIsInstance(pending.exception(TIMEOUT), ImportCancelled)
        self.assertTrue(pending.cancelled)
        self.assertIsNone(self.store.lookup_word_stats("cat"))
        self.assertEqual(self.finished, ["blocker.txt"])

    def test_cancel_running_job_rolls_back(self) -> None:
        blocker, release = self._blocking_job()
        job = self.background.submit_text("doc.txt", DOC)

        def cancel_on_bigrams(progress: ImportProgress) -> None:
            if progress.stage == "bigrams":
                job.token.cancel()

        job.add_listener(cancel_on_bigrams)
        release.set()
        blocker.result(TIMEOUT)
        with self.assertRaises(ImportCancelled):
            job.result(TIMEOUT)
        self.assertIsNone(self.store.lookup_word_stats("cat"))
        self.assertNotIn("doc.txt", self.completed)
        self.assertIn("doc.txt", self.finished)

    def test_input_errors_surface_through_job(self) -> None:
        job = self.background.submit_file(None)
        self.assertEqual(job.filename, "<none>")
        with self.assertRaises(InputError):
            job.result(TIMEOUT)
        self.assertEqual(self.finished, ["<none>"])
        self.assertEqual(self.completed, [])

    def test_jobs_run_in_submission_order(self) -> None:
        jobs = [self.background.submit_text(f"doc{i}.txt", f"Word{chr(97 + i)} here.") for i in range(4)]
        for job in jobs:
            job.result(TIMEOUT)
        self.assertEqual(self.completed, ["doc0.txt", "doc1.txt", "doc2.txt", "doc3.txt"])


class CancellationTokenTests(unittest.TestCase):
    def test_flag(self) -> None:
        token = CancellationToken()
        self.assertFalse(token.cancelled)
        self.assertFalse(token.wait(0.01))
        token.cancel()
        self.assertTrue(token.cancelled)
        self.assertTrue(token.wait(0.01))

    def test_unsubmitted_job_raises(self) -> None:
        job = ImportJob("never.txt")
        self.assertFalse(job.done())
        with self.assertRaises(RuntimeError):
            job.result(0.01)
        with self.assertRaises(RuntimeError):
            job.exception(0.01)

    def test_progress_fraction(self) -> None:
        self.assertEqual(ImportProgress("a", "words", 5, 10).fraction, 0.5)
        self.assertEqual(ImportProgress("a", "words", 0, 0).fraction, 0.0)


if __name__ == "__main__":
    unittest.main()
