from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from log_helpers import log_verbose

from .errors import ImportCancelled
from .importer import CorpusImporter, ImportSummary


class CancellationToken:
    """Cooperative cancellation flag checked between import/generation steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


@dataclass(frozen=True)
class ImportProgress:
    filename: str
    stage: str
    completed: int
    total: int

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, self.completed / self.total)


ProgressListener = Callable[[ImportProgress], None]


class ImportJob:
    """Handle for one background import: progress, cancellation, result."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.token = CancellationToken()
        self._future: concurrent.futures.Future | None = None
        self._progress: ImportProgress | None = None
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def _attach(self, future: concurrent.futures.Future) -> None:
        self._future = future

    def _report(self, stage: str, completed: int, total: int) -> None:
        progress = ImportProgress(self.filename, stage, completed, total)
        with self._lock:
            self._progress = progress
            listeners = list(self._listeners)
        for listener in listeners:
            listener(progress)

    @property
    def progress(self) -> ImportProgress | None:
        return self._progress

    def add_listener(self, listener: ProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def cancel(self) -> bool:
        """Request cancellation; a pending job never starts, a running one rolls back."""
        finished = self.done()
        self.token.cancel()
        if self._future is not None:
            self._future.cancel()
        return not finished

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def _require_future(self) -> concurrent.futures.Future:
        if self._future is None:
            raise RuntimeError(f"Import job {self.filename} was never submitted")
        return self._future

    def result(self, timeout: float | None = None) -> ImportSummary:
        future = self._require_future()
        if future.cancelled():
            raise ImportCancelled(self.filename)
        return future.result(timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        future = self._require_future()
        if future.cancelled():
            return ImportCancelled(self.filename)
        return future.exception(timeout)


class BackgroundImporter:
    """Runs imports on worker threads so a foreground caller stays responsive.

    A single worker (the default) serializes imports in submission order.
    ``on_complete`` sees successful imports only; ``on_finished`` runs after
    every job that started, once its transaction has committed or rolled back.
    """

    def __init__(
        self,
        importer: CorpusImporter,
        *,
        max_workers: int = 1,
        on_complete: Callable[[ImportSummary], None] | None = None,
        on_finished: Callable[[ImportJob], None] | None = None,
    ) -> None:
        self.importer = importer
        self.on_complete = on_complete
        self.on_finished = on_finished
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="corpus-import",
        )

    def submit_file(self, path: str | Path | None) -> ImportJob:
        job = ImportJob(Path(path).name if path is not None else "<none>")

        def work() -> ImportSummary:
            return self.importer.import_file(path, progress_callback=job._report, cancel=job.token)

        return self._submit(job, work)

    def submit_text(self, filename: str, text: str) -> ImportJob:
        job = ImportJob(filename)

        def work() -> ImportSummary:
            return self.importer.import_text(
                filename, text, progress_callback=job._report, cancel=job.token
            )

        return self._submit(job, work)

    def _submit(self, job: ImportJob, work: Callable[[], ImportSummary]) -> ImportJob:
        def run() -> ImportSummary:
            log_verbose(3, f"[import:v3] Worker picked up {job.filename}")
            try:
                summary = work()
            finally:
                if self.on_finished is not None:
                    self.on_finished(job)
            if self.on_complete is not None:
                self.on_complete(summary)
            return summary

        job._attach(self._executor.submit(run))
        return job

    def shutdown(self, wait: bool = True, *, cancel_pending: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

    def __enter__(self) -> "BackgroundImporter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


__all__ = [
    "BackgroundImporter",
    "CancellationToken",
    "ImportJob",
    "ImportProgress",
    "ProgressListener",
]
