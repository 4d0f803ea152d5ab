from __future__ import annotations

import argparse
import dataclasses
import sys
import time
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

from sentence_builder import SentenceBuilderEngine
from sentence_builder.errors import ImportCancelled, SentenceBuilderError
from sentence_builder.importer import ImportSummary
from sentence_builder.jobs import ImportJob, ImportProgress
from sentence_builder.settings import BACKENDS, load_settings

from helpers.resource_monitor import ResourceMonitor
from log_helpers import log, log_error, log_verbose, set_log_level


def build_parser(default_db_path: str, default_backend: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import plain-text documents into the sentence builder corpus."
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        help="Text files or directories to import. Directories pull in *.txt files.",
    )
    parser.add_argument(
        "--db",
        default=default_db_path,
        help="Path to the SQLite database file (default: %(default)s).",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=default_backend,
        help="Storage backend (default: %(default)s). MariaDB reads SB_MARIADB_* settings.",
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        help="Recurse into directories when collecting *.txt files.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete all corpus data before importing.",
    )
    parser.add_argument(
        "--background",
        action="store_true",
        help="Queue imports on a worker thread and report progress while they run.",
    )
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Log elapsed time plus CPU/RSS deltas for every document.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Raise log verbosity (-v adds store details, -vv adds debug traces).",
    )
    return parser


def resolve_db_path(raw: str) -> str:
    if raw == ":memory:":
        return raw
    path = Path(raw).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


def collect_files(entries: Sequence[str], recursive: bool) -> List[Path]:
    files: list[Path] = []
    for entry in entries:
        path = Path(entry).expanduser()
        if path.is_file():
            files.append(path)
            log_verbose(3, f"[import:v3] Queued input file {path}")
            continue
        if path.is_dir():
            pattern = "**/*.txt" if recursive else "*.txt"
            for candidate in sorted(path.glob(pattern)):
                if candidate.is_file():
                    files.append(candidate)
                    log_verbose(3, f"[import:v3] Discovered input file {candidate}")
            continue
        raise FileNotFoundError(f"No such file or directory: {path}")
    return files


class ImportProgressPrinter:
    """Throttled per-document progress lines."""

    STAGE_LABELS = {
        "files": "registering file",
        "words": "merging words",
        "bigrams": "merging bigrams",
        "trigrams": "merging trigrams",
    }

    def __init__(self, label: str, interval: float = 0.75) -> None:
        self.label = label
        self.interval = interval
        self._last_emit = 0.0

    def __call__(self, stage: str, completed: int, total: int) -> None:
        if total <= 0:
            return
        now = time.perf_counter()
        if completed != total and (now - self._last_emit) < self.interval:
            return
        self._last_emit = now
        pct = (completed / total) * 100.0
        stage_label = self.STAGE_LABELS.get(stage, stage)
        log(f"[import] {self.label}: {stage_label} {pct:5.1f}% ({completed}/{total})")

    def on_progress(self, progress: ImportProgress) -> None:
        self(progress.stage, progress.completed, progress.total)


class ImportProfiler:
    """Optional profiler that logs import latency together with resource telemetry."""

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled
        self.monitor = ResourceMonitor() if enabled else None

    def measure(self, label: str, fn: Callable[[], ImportSummary]) -> ImportSummary:
        if self.monitor is None:
            return fn()
        before = self.monitor.snapshot()
        summary = fn()
        after = self.monitor.snapshot()
        delta = self.monitor.delta(before, after)
        log(f"[profile] {label}: {summary.total_tokens} tokens {self.monitor.describe(delta)}")
        return summary


def run_foreground(
    engine: SentenceBuilderEngine,
    files: Sequence[Path],
    profiler: ImportProfiler,
) -> Tuple[int, int]:
    imported = 0
    total_tokens = 0
    for path in files:
        printer = ImportProgressPrinter(path.name)
        summary = profiler.measure(
            path.name,
            lambda path=path, printer=printer: engine.import_file(path, progress_callback=printer),
        )
        imported += 1
        total_tokens += summary.total_tokens
    return imported, total_tokens


def run_background(engine: SentenceBuilderEngine, files: Sequence[Path]) -> Tuple[int, int]:
    jobs: list[ImportJob] = []
    for path in files:
        job = engine.import_in_background(path)
        job.add_listener(ImportProgressPrinter(job.filename).on_progress)
        jobs.append(job)
    log(f"[import] Queued {len(jobs)} background import(s).")
    imported = 0
    total_tokens = 0
    try:
        for job in jobs:
            summary = job.result()
            imported += 1
            total_tokens += summary.total_tokens
    except KeyboardInterrupt:
        log("[import] Interrupted; cancelling pending imports.")
        for job in jobs:
            job.cancel()
        raise
    return imported, total_tokens


def main(argv: Sequence[str] | None = None) -> int:
    settings = load_settings()
    parser = build_parser(settings.sqlite_dsn(), settings.backend)
    args = parser.parse_args(argv)
    if args.verbose:
        set_log_level(1 + args.verbose)
    log_verbose(3, f"[import:v3] Parsed CLI arguments: {vars(args)}")

    if args.background and args.profile:
        parser.error("--profile measures foreground imports; drop --background to use it")
    try:
        files = collect_files(args.inputs, args.recursive)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    if not files:
        parser.error("No *.txt files found in the provided inputs")

    settings = dataclasses.replace(settings, backend=args.backend)
    db_path = resolve_db_path(args.db) if args.backend == "sqlite" else None
    try:
        engine = SentenceBuilderEngine(settings, db_path=db_path)
    except SentenceBuilderError as exc:
        log_error(f"[import] Unable to open store: {exc}")
        return 2

    with engine:
        log(f"[import] Store: {engine.db.describe()}")
        if args.reset:
            engine.reset()
            log("[import] Existing corpus data removed.")
        started = time.perf_counter()
        try:
            if args.background:
                imported, total_tokens = run_background(engine, files)
            else:
                imported, total_tokens = run_foreground(engine, files, ImportProfiler(args.profile))
        except ImportCancelled as exc:
            log_error(f"[import] {exc}")
            return 1
        except SentenceBuilderError as exc:
            log_error(f"[import] Import failed: {exc}")
            return 1
        elapsed = time.perf_counter() - started
        summary = engine.corpus_summary()
        log(
            f"[import] Imported {imported} document(s), {total_tokens} tokens in {elapsed:.2f}s. "
            f"Corpus now holds {summary.files} file(s), {summary.distinct_words} distinct words, "
            f"{summary.bigram_edges} bigram edges, {summary.trigram_edges} trigram edges."
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
