import builtins
import os
import sys
import time
from typing import Any

_start_time = time.perf_counter()
_LOG_LEVEL_ENV = "SENTENCE_BUILDER_LOG_LEVEL"
_NAMED_LEVELS = {
    "quiet": 0,
    "off": 0,
    "error": 0,
    "info": 1,
    "warning": 1,
    "warn": 1,
    "verbose": 2,
    "debug": 3,
    "trace": 3,
}


def _read_log_level() -> int:
    raw = os.getenv(_LOG_LEVEL_ENV, "1").strip()
    try:
        return max(0, int(raw))
    except ValueError:
        return _NAMED_LEVELS.get(raw.lower(), 1)


_LOG_LEVEL = _read_log_level()


def timestamp_prefix() -> str:
    return f"+[{time.perf_counter() - _start_time:7.2f}]"


def set_log_level(level: int) -> None:
    """Override the env-derived verbosity; the CLIs map -v/-vv onto it."""
    global _LOG_LEVEL
    _LOG_LEVEL = max(0, int(level))


def log(*objects: Any, sep: str = " ", end: str = "\n", file=None, flush: bool = False, prefix: bool = True) -> None:
    message = sep.join(str(obj) for obj in objects)
    if prefix:
        message = f"{timestamp_prefix()} {message}"
    builtins.print(message, end=end, file=file, flush=flush)


def log_error(*objects: Any, **kwargs: Any) -> None:
    """Errors always print, regardless of verbosity, on stderr."""
    kwargs.setdefault("file", sys.stderr)
    log(*objects, **kwargs)


def verbose_enabled(level: int) -> bool:
    return _LOG_LEVEL >= level


def log_verbose(level: int, *objects: Any, **kwargs: Any) -> None:
    """Emit a log line only when the configured verbosity is high enough."""
    if verbose_enabled(level):
        log(*objects, **kwargs)
