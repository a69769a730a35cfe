from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

_THREADS_DDL = """
CREATE TABLE IF NOT EXISTS threads (
    thread_id TEXT PRIMARY KEY,
    title TEXT,
    created_at TEXT NOT NULL,
    last_updated_at TEXT NOT NULL
);
"""

_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id TEXT NOT NULL,
    message_id TEXT,
    role TEXT,
    content_type TEXT NOT NULL,
    text_content TEXT,
    image_url TEXT,
    function_call_name TEXT,
    function_call_arguments TEXT,
    tool_name TEXT,
    tool_response TEXT,
    raw_content TEXT,
    serialized_message TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY(thread_id) REFERENCES threads(thread_id) ON DELETE CASCADE
);
"""

_CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_threads_updated ON threads(last_updated_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_messages_thread_id ON messages(thread_id, id);",
]


def resolve_db_path(db_path: str) -> str:
    """Normalise a configured database path to an absolute ``.db`` file path."""
    if db_path == MEMORY_DB:
        raise ValueError("In-memory databases are not shared across connections; use a file path")
    path = Path(db_path).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    if path.suffix != ".db":
        path = path.with_suffix(".db")
    return str(path)


@contextmanager
def open_connection(db_path: str, timeout: float) -> Iterator[sqlite3.Connection]:
    """Open an autocommit connection; writers start their own transactions."""
    connection = sqlite3.connect(db_path, timeout=timeout, isolation_level=None)
    try:
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        yield connection
    finally:
        connection.close()


@contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block inside ``BEGIN IMMEDIATE``; any exception rolls the whole block back."""
    connection.execute("BEGIN IMMEDIATE;")
    try:
        yield connection
    except BaseException:
        try:
            connection.execute("ROLLBACK;")
        except sqlite3.Error as rollback_error:
            logger.error("Rollback failed: %s", rollback_error)
        raise
    else:
        connection.execute("COMMIT;")


def init_schema(db_path: str, timeout: float) -> None:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    with open_connection(db_path, timeout) as connection:
        connection.execute("PRAGMA journal_mode = WAL;")
        with transaction(connection):
            connection.execute(_THREADS_DDL)
            connection.execute(_MESSAGES_DDL)
            for statement in _CREATE_INDEXES:
                connection.execute(statement)


def utc_now_str() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_ts(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
