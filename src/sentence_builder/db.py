from __future__ import annotations

import contextlib
import sqlite3
import threading
from pathlib import Path
from typing import Any, Generator, Iterable, Sequence

import mysql.connector

from .errors import ConfigurationError
from .settings import SentenceBuilderSettings

# Child tables first so plain DELETEs never trip foreign keys.
CORPUS_TABLES = (
    "word_files",
    "word_relations_trigram",
    "word_relations_bigram",
    "words",
    "files",
)

SCHEMA_VERSION = "1"


class DatabaseEnvironment:
    """SQLite environment holding the corpus tables; schema matches the MariaDB one."""

    dialect = "sqlite"
    driver_errors: tuple[type[BaseException], ...] = (sqlite3.Error,)

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        self._conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON;")
        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
        # One transaction at a time; individual statements share the connection.
        self._writer_lock = threading.RLock()
        self._statement_lock = threading.RLock()
        self._bootstrap_schema()

    # ------------------------------------------------------------------ #
    # Schema management
    # ------------------------------------------------------------------ #
    def _bootstrap_schema(self) -> None:
        cur = self._conn.cursor()
        cur.executescript(
            """
            CREATE TABLE IF NOT EXISTS metadata (
                meta_key   TEXT PRIMARY KEY,
                meta_value TEXT
            );

            CREATE TABLE IF NOT EXISTS files (
                file_id     INTEGER PRIMARY KEY AUTOINCREMENT,
                filename    TEXT NOT NULL UNIQUE,
                word_count  INTEGER NOT NULL,
                import_date TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS words (
                word_id              INTEGER PRIMARY KEY AUTOINCREMENT,
                word_text            TEXT NOT NULL UNIQUE,
                total_count          INTEGER NOT NULL DEFAULT 0,
                sentence_start_count INTEGER NOT NULL DEFAULT 0,
                sentence_end_count   INTEGER NOT NULL DEFAULT 0,
                created_at           TEXT DEFAULT CURRENT_TIMESTAMP
            );
            CREATE INDEX IF NOT EXISTS idx_words_total
                ON words(total_count DESC);

            CREATE TABLE IF NOT EXISTS word_relations_bigram (
                from_word_id INTEGER NOT NULL,
                to_word_id   INTEGER NOT NULL,
                frequency    INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (from_word_id, to_word_id),
                FOREIGN KEY (from_word_id) REFERENCES words(word_id) ON DELETE CASCADE,
                FOREIGN KEY (to_word_id) REFERENCES words(word_id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_bigram_from
                ON word_relations_bigram(from_word_id, frequency DESC);

            CREATE TABLE IF NOT EXISTS word_relations_trigram (
                first_word_id  INTEGER NOT NULL,
                second_word_id INTEGER NOT NULL,
                next_word_id   INTEGER NOT NULL,
                frequency      INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (first_word_id, second_word_id, next_word_id),
                FOREIGN KEY (first_word_id) REFERENCES words(word_id) ON DELETE CASCADE,
                FOREIGN KEY (second_word_id) REFERENCES words(word_id) ON DELETE CASCADE,
                FOREIGN KEY (next_word_id) REFERENCES words(word_id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_trigram_ctx
                ON word_relations_trigram(first_word_id, second_word_id, frequency DESC);

            CREATE TABLE IF NOT EXISTS word_files (
                word_id       INTEGER NOT NULL,
                file_id       INTEGER NOT NULL,
                count_in_file INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (word_id, file_id),
                FOREIGN KEY (word_id) REFERENCES words(word_id) ON DELETE CASCADE,
                FOREIGN KEY (file_id) REFERENCES files(file_id) ON DELETE CASCADE
            );
            """
        )
        cur.close()
        if self.get_metadata("schema_version") is None:
            self.set_metadata("schema_version", SCHEMA_VERSION)

    # ------------------------------------------------------------------ #
    # Basic query helpers
    # ------------------------------------------------------------------ #
    def close(self) -> None:
        self._conn.close()

    def execute(self, sql: str, params: Sequence | None = None) -> int:
        with self._statement_lock:
            cur = self._conn.execute(sql, params or [])
            rowcount = cur.rowcount
            cur.close()
        return rowcount

    def executemany(self, sql: str, params_seq: Iterable[Sequence]) -> None:
        with self._statement_lock:
            self._conn.executemany(sql, params_seq)

    def query(self, sql: str, params: Sequence | None = None):
        with self._statement_lock:
            cur = self._conn.execute(sql, params or [])
            rows = cur.fetchall()
            cur.close()
        return rows

    @contextlib.contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        with self._writer_lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        add: Sequence[str] = (),
        replace: Sequence[str] = (),
    ) -> str:
        """Return the conflict clause that sums ``add`` columns and overwrites ``replace`` ones."""
        assignments = [f"{col} = {col} + excluded.{col}" for col in add]
        assignments += [f"{col} = excluded.{col}" for col in replace]
        return f"ON CONFLICT({', '.join(conflict_columns)}) DO UPDATE SET {', '.join(assignments)}"

    def describe(self) -> str:
        return f"sqlite:{self.path}"

    # ------------------------------------------------------------------ #
    # Metadata helpers
    # ------------------------------------------------------------------ #
    def get_metadata(self, key: str) -> str | None:
        rows = self.query("SELECT meta_value FROM metadata WHERE meta_key = ?", (key,))
        return rows[0]["meta_value"] if rows else None

    def set_metadata(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO metadata(meta_key, meta_value) VALUES (?, ?) "
            + self.upsert_clause(("meta_key",), replace=("meta_value",)),
            (key, value),
        )


class MariaDBEnvironment:
    """MariaDB/MySQL environment with the same surface as :class:`DatabaseEnvironment`.

    SQL is written once with ``?`` placeholders and translated to the
    ``%s`` paramstyle expected by mysql-connector.
    """

    dialect = "mariadb"
    driver_errors: tuple[type[BaseException], ...] = (mysql.connector.Error,)

    _DDL = (
        """
        CREATE TABLE IF NOT EXISTS metadata (
            meta_key VARCHAR(100) PRIMARY KEY,
            meta_value VARCHAR(255)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """,
        """
        CREATE TABLE IF NOT EXISTS files (
            file_id INT AUTO_INCREMENT PRIMARY KEY,
            filename VARCHAR(255) NOT NULL UNIQUE,
            word_count INT NOT NULL,
            import_date DATETIME DEFAULT CURRENT_TIMESTAMP
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """,
        """
        CREATE TABLE IF NOT EXISTS words (
            word_id INT AUTO_INCREMENT PRIMARY KEY,
            word_text VARCHAR(100) NOT NULL UNIQUE,
            total_count INT NOT NULL DEFAULT 0,
            sentence_start_count INT NOT NULL DEFAULT 0,
            sentence_end_count INT NOT NULL DEFAULT 0,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            INDEX idx_words_total (total_count)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """,
        """
        CREATE TABLE IF NOT EXISTS word_relations_bigram (
            from_word_id INT NOT NULL,
            to_word_id INT NOT NULL,
            frequency INT NOT NULL DEFAULT 1,
            PRIMARY KEY (from_word_id, to_word_id),
            INDEX idx_bigram_from (from_word_id, frequency),
            FOREIGN KEY (from_word_id) REFERENCES words(word_id) ON DELETE CASCADE,
            FOREIGN KEY (to_word_id) REFERENCES words(word_id) ON DELETE CASCADE
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """,
        """
        CREATE TABLE IF NOT EXISTS word_relations_trigram (
            first_word_id INT NOT NULL,
            second_word_id INT NOT NULL,
            next_word_id INT NOT NULL,
            frequency INT NOT NULL DEFAULT 1,
            PRIMARY KEY (first_word_id, second_word_id, next_word_id),
            INDEX idx_trigram_ctx (first_word_id, second_word_id, frequency),
            FOREIGN KEY (first_word_id) REFERENCES words(word_id) ON DELETE CASCADE,
            FOREIGN KEY (second_word_id) REFERENCES words(word_id) ON DELETE CASCADE,
            FOREIGN KEY (next_word_id) REFERENCES words(word_id) ON DELETE CASCADE
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """,
        """
        CREATE TABLE IF NOT EXISTS word_files (
            word_id INT NOT NULL,
            file_id INT NOT NULL,
            count_in_file INT NOT NULL DEFAULT 0,
            PRIMARY KEY (word_id, file_id),
            FOREIGN KEY (word_id) REFERENCES words(word_id) ON DELETE CASCADE,
            FOREIGN KEY (file_id) REFERENCES files(file_id) ON DELETE CASCADE
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """,
    )

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 3306,
        user: str = "sentencegen",
        password: str = "sentencegen",
        database: str = "sentencegen",
        *,
        connection: Any | None = None,
    ) -> None:
        self.path = f"{host}:{port}/{database}"
        self.user = user
        if connection is None:
            try:
                connection = mysql.connector.connect(
                    host=host,
                    port=port,
                    user=user,
                    password=password,
                    database=database,
                    autocommit=True,
                )
            except mysql.connector.Error as exc:
                raise ConfigurationError(
                    f"Unable to reach MariaDB at {self.path} as '{user}': {exc}"
                ) from exc
        self._conn = connection
        self._writer_lock = threading.RLock()
        self._statement_lock = threading.RLock()
        self._bootstrap_schema()

    def _bootstrap_schema(self) -> None:
        for statement in self._DDL:
            self.execute(statement)
        if self.get_metadata("schema_version") is None:
            self.set_metadata("schema_version", SCHEMA_VERSION)

    @staticmethod
    def _translate(sql: str) -> str:
        return sql.replace("?", "%s")

    def close(self) -> None:
        self._conn.close()

    def execute(self, sql: str, params: Sequence | None = None) -> int:
        with self._statement_lock:
            cursor = self._conn.cursor()
            cursor.execute(self._translate(sql), tuple(params or ()))
            rowcount = cursor.rowcount
            cursor.close()
        return rowcount

    def executemany(self, sql: str, params_seq: Iterable[Sequence]) -> None:
        with self._statement_lock:
            cursor = self._conn.cursor()
            cursor.executemany(self._translate(sql), [tuple(params) for params in params_seq])
            cursor.close()

    def query(self, sql: str, params: Sequence | None = None):
        with self._statement_lock:
            cursor = self._conn.cursor(dictionary=True)
            cursor.execute(self._translate(sql), tuple(params or ()))
            rows = cursor.fetchall()
            cursor.close()
        return rows

    @contextlib.contextmanager
    def transaction(self) -> Generator[Any, None, None]:
        with self._writer_lock:
            try:
                self._conn.start_transaction()
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        add: Sequence[str] = (),
        replace: Sequence[str] = (),
    ) -> str:
        # MariaDB resolves conflicts on any unique key; the column list is implied.
        assignments = [f"{col} = {col} + VALUES({col})" for col in add]
        assignments += [f"{col} = VALUES({col})" for col in replace]
        return f"ON DUPLICATE KEY UPDATE {', '.join(assignments)}"

    def describe(self) -> str:
        return f"mariadb://{self.user}@{self.path}"

    def get_metadata(self, key: str) -> str | None:
        rows = self.query("SELECT meta_value FROM metadata WHERE meta_key = ?", (key,))
        return rows[0]["meta_value"] if rows else None

    def set_metadata(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO metadata(meta_key, meta_value) VALUES (?, ?) "
            + self.upsert_clause(("meta_key",), replace=("meta_value",)),
            (key, value),
        )


def build_environment(
    settings: SentenceBuilderSettings,
    *,
    sqlite_path: str | Path | None = None,
) -> DatabaseEnvironment | MariaDBEnvironment:
    """Open the store selected by ``settings.backend``."""
    if settings.backend == "mariadb":
        return MariaDBEnvironment(
            host=settings.mariadb_host,
            port=settings.mariadb_port,
            user=settings.mariadb_user,
            password=settings.mariadb_password,
            database=settings.mariadb_database,
        )
    if settings.backend != "sqlite":
        raise ConfigurationError(f"Unsupported backend '{settings.backend}'")
    path = str(sqlite_path or settings.sqlite_path)
    if path != ":memory:":
        resolved = Path(path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        path = str(resolved)
    try:
        return DatabaseEnvironment(path)
    except sqlite3.Error as exc:
        raise ConfigurationError(f"Unable to open SQLite database at {path}: {exc}") from exc
