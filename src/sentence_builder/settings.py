from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Dict

from .errors import ConfigurationError

BACKENDS = ("sqlite", "mariadb")
READ_MODES = ("direct", "snapshot")


def _parse_env_file(path: Path) -> Dict[str, str]:
    """Minimal .env parser (no external dependency required)."""
    data: dict[str, str] = {}
    if not path.exists():
        return data
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


@dataclass(frozen=True)
class SentenceBuilderSettings:
    backend: str
    sqlite_path: str
    mariadb_host: str
    mariadb_port: int
    mariadb_user: str
    mariadb_password: str
    mariadb_database: str
    read_mode: str
    suggestion_limit: int
    max_words: int
    random_seed: int | None
    env_file: Path | None

    def sqlite_dsn(self) -> str:
        """Return the SQLite path used by the CLI utilities."""
        return self.sqlite_path


def _as_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer (got {raw!r})") from exc


def load_settings(env_path: str | Path = ".env") -> SentenceBuilderSettings:
    """Load settings from .env (if present) + real environment."""
    env_file = Path(env_path)
    file_values = _parse_env_file(env_file)

    def read(key: str, default: str) -> str:
        return os.environ.get(key, file_values.get(key, default))

    backend = read("SB_BACKEND", "sqlite").strip().lower()
    if backend not in BACKENDS:
        raise ConfigurationError(f"SB_BACKEND must be one of {', '.join(BACKENDS)} (got {backend!r})")
    read_mode = read("SB_READ_MODE", "direct").strip().lower()
    if read_mode not in READ_MODES:
        raise ConfigurationError(
            f"SB_READ_MODE must be one of {', '.join(READ_MODES)} (got {read_mode!r})"
        )
    sqlite_path = read("SB_SQLITE_PATH", "var/sentence_builder.sqlite3")
    mariadb_host = read("SB_MARIADB_HOST", "127.0.0.1")
    mariadb_port = _as_int("SB_MARIADB_PORT", read("SB_MARIADB_PORT", "3306"))
    mariadb_user = read("SB_MARIADB_USER", "sentencegen")
    mariadb_password = read("SB_MARIADB_PASSWORD", "sentencegen")
    mariadb_database = read("SB_MARIADB_DATABASE", "sentencegen")
    suggestion_limit = max(0, _as_int("SB_SUGGESTION_LIMIT", read("SB_SUGGESTION_LIMIT", "10")))
    max_words = max(0, _as_int("SB_MAX_WORDS", read("SB_MAX_WORDS", "20")))
    seed_raw = read("SB_RANDOM_SEED", "").strip()
    random_seed = _as_int("SB_RANDOM_SEED", seed_raw) if seed_raw else None

    env_file_used = env_file if env_file.exists() else None
    return SentenceBuilderSettings(
        backend=backend,
        sqlite_path=sqlite_path,
        mariadb_host=mariadb_host,
        mariadb_port=mariadb_port,
        mariadb_user=mariadb_user,
        mariadb_password=mariadb_password,
        mariadb_database=mariadb_database,
        read_mode=read_mode,
        suggestion_limit=suggestion_limit,
        max_words=max_words,
        random_seed=random_seed,
        env_file=env_file_used,
    )
