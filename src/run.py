from __future__ import annotations

import argparse
import dataclasses
import random
import sys
from pathlib import Path
from typing import Sequence

from sentence_builder import SentenceBuilderEngine
from sentence_builder.autocomplete import AUTOCOMPLETE_ALGORITHMS
from sentence_builder.errors import SentenceBuilderError
from sentence_builder.sentence import SENTENCE_ALGORITHMS
from sentence_builder.settings import BACKENDS, SentenceBuilderSettings, load_settings

from log_helpers import log, log_error, log_verbose, set_log_level


def build_parser(settings: SentenceBuilderSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query an imported corpus: next-word suggestions and sentence generation."
    )
    parser.add_argument(
        "--db",
        default=settings.sqlite_dsn(),
        help="Path to the SQLite database produced by import_corpus.py (default: %(default)s).",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=settings.backend,
        help="Storage backend (default: %(default)s).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Raise log verbosity (-v adds store details, -vv adds debug traces).",
    )
    sub = parser.add_subparsers(dest="command")

    suggest = sub.add_parser("suggest", help="Suggest the next word for a context.")
    suggest.add_argument(
        "--algorithm",
        choices=sorted(AUTOCOMPLETE_ALGORITHMS),
        default="context-trigram",
        help="Suggestion strategy (default: %(default)s).",
    )
    suggest.add_argument(
        "--limit",
        type=int,
        default=settings.suggestion_limit,
        help="Maximum number of suggestions (default: %(default)s).",
    )
    suggest.add_argument("text", nargs="*", help="Context text typed so far.")

    generate = sub.add_parser("generate", help="Grow a seed into a sentence.")
    generate.add_argument(
        "--algorithm",
        choices=sorted(SENTENCE_ALGORITHMS),
        default="smart-trigram",
        help="Generation strategy (default: %(default)s).",
    )
    generate.add_argument(
        "--max-words",
        type=int,
        default=settings.max_words,
        help="Upper bound on the sentence length in words (default: %(default)s).",
    )
    generate.add_argument(
        "--seed",
        type=int,
        default=settings.random_seed,
        help="RNG seed for the stochastic strategies.",
    )
    generate.add_argument("text", nargs="*", help="Seed words (blank picks a sentence opener).")

    sub.add_parser("stats", help="Print corpus totals.")
    sub.add_parser("files", help="List imported documents.")
    reset = sub.add_parser("reset", help="Delete every imported document and count.")
    reset.add_argument("--yes", action="store_true", help="Confirm the reset.")
    sub.add_parser("algorithms", help="List the available strategies.")
    return parser


def resolve_db_path(raw: str) -> str:
    if raw == ":memory:":
        raise ValueError("run.py requires a persistent database path (not :memory:)")
    path = Path(raw).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


def print_algorithms(engine: SentenceBuilderEngine) -> None:
    log("[run] Suggestion strategies:", prefix=False)
    for key, label in engine.autocomplete_algorithms():
        print(f"  {key:<20} {label}")
    log("[run] Sentence strategies:", prefix=False)
    for key, label in engine.sentence_algorithms():
        print(f"  {key:<20} {label}")


def print_stats(engine: SentenceBuilderEngine) -> None:
    summary = engine.corpus_summary()
    print(f"files:             {summary.files}")
    print(f"distinct words:    {summary.distinct_words}")
    print(f"total occurrences: {summary.total_occurrences}")
    print(f"bigram edges:      {summary.bigram_edges}")
    print(f"trigram edges:     {summary.trigram_edges}")


def print_files(engine: SentenceBuilderEngine) -> None:
    records = engine.list_files()
    if not records:
        log("[run] No documents imported yet.")
        return
    for record in records:
        print(f"{record.file_id:>5}  {record.word_count:>9}  {record.import_date}  {record.filename}")


class InteractiveSession:
    """Line-oriented prompt: typed text gets suggestions, ':gen' builds sentences."""

    def __init__(
        self,
        engine: SentenceBuilderEngine,
        autocomplete: str = "context-trigram",
        generator: str = "smart-trigram",
    ) -> None:
        self.engine = engine
        self.autocomplete = autocomplete
        self.generator = generator

    def handle(self, line: str) -> bool:
        """Process one input line; returns False when the session should end."""
        if line in {":quit", ":exit"}:
            return False
        if line == ":algo" or line.startswith(":algo "):
            self._switch(line[len(":algo"):].strip())
            return True
        if line == ":gen" or line.startswith(":gen "):
            seed = line[len(":gen"):].strip()
            sentence = self.engine.generate(self.generator, seed)
            log(f"[{self.generator}] {sentence or '(no sentence)'}")
            return True
        suggestions = self.engine.suggest(self.autocomplete, line)
        log(f"[{self.autocomplete}] {', '.join(suggestions) if suggestions else '(no suggestions)'}")
        return True

    def _switch(self, key: str) -> None:
        if key in AUTOCOMPLETE_ALGORITHMS:
            self.autocomplete = key
            log(f"[run] Suggestion strategy -> {key}")
        elif key in SENTENCE_ALGORITHMS:
            self.generator = key
            log(f"[run] Sentence strategy -> {key}")
        else:
            known = ", ".join([*AUTOCOMPLETE_ALGORITHMS, *SENTENCE_ALGORITHMS])
            log(f"[run] Unknown strategy '{key}'. Known: {known}")

    def loop(self) -> None:
        log("[run] Type text for suggestions, ':gen TEXT' to build a sentence, ':algo KEY' to switch, ':quit' to leave.")
        while True:
            try:
                line = input("text> ").strip()
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                log("[run] Interrupted. Exiting.")
                print()
                break
            if not line:
                continue
            if not self.handle(line):
                break


def main(argv: Sequence[str] | None = None) -> int:
    settings = load_settings()
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if args.verbose:
        set_log_level(1 + args.verbose)
    log_verbose(3, f"[run:v3] Parsed CLI arguments: {vars(args)}")

    if args.command == "reset" and not args.yes:
        parser.error("reset deletes every imported document; pass --yes to confirm")
    settings = dataclasses.replace(settings, backend=args.backend)
    rng = None
    if args.command == "generate" and args.seed is not None:
        rng = random.Random(args.seed)
    try:
        db_path = resolve_db_path(args.db) if args.backend == "sqlite" else None
        engine = SentenceBuilderEngine(settings, db_path=db_path, rng=rng)
    except ValueError as exc:
        parser.error(str(exc))
    except SentenceBuilderError as exc:
        log_error(f"[run] Unable to open store: {exc}")
        return 2

    with engine:
        log_verbose(2, f"[run] Store: {engine.db.describe()}")
        try:
            if args.command == "suggest":
                for word in engine.suggest(args.algorithm, " ".join(args.text), args.limit):
                    print(word)
            elif args.command == "generate":
                print(engine.generate(args.algorithm, " ".join(args.text), args.max_words))
            elif args.command == "stats":
                print_stats(engine)
            elif args.command == "files":
                print_files(engine)
            elif args.command == "reset":
                engine.reset()
                log("[run] Corpus reset.")
            elif args.command == "algorithms":
                print_algorithms(engine)
            else:
                InteractiveSession(engine).loop()
        except SentenceBuilderError as exc:
            log_error(f"[run] {exc}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
