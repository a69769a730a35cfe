from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Optional

from .database import open_connection, parse_ts, transaction, utc_now_str
from .models import ThreadRecord

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500

_SELECT_THREAD = "SELECT thread_id, title, created_at, last_updated_at FROM threads WHERE thread_id = ?"


class ThreadRegistry:
    """Creates thread rows on demand and tracks their timestamps.

    The ``*_in`` helpers run on a connection that already holds a write
    transaction so the message store can register a thread and attach its
    first messages atomically.
    """

    def __init__(self, db_path: str, *, busy_timeout: float = 30.0) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout

    async def ensure(self, thread_id: str) -> ThreadRecord:
        """Return the thread with ``thread_id``, creating it if needed."""
        return await asyncio.to_thread(self._write, self.ensure_in, thread_id)

    async def touch(self, thread_id: str) -> None:
        await asyncio.to_thread(self._write, self.touch_in, thread_id)

    async def get(self, thread_id: str) -> Optional[ThreadRecord]:
        def _get() -> Optional[ThreadRecord]:
            with open_connection(self._db_path, self._busy_timeout) as connection:
                row = connection.execute(_SELECT_THREAD, (thread_id,)).fetchone()
            return self._row_to_thread(row)

        return await asyncio.to_thread(_get)

    async def set_title(self, thread_id: str, title: Optional[str]) -> Optional[ThreadRecord]:
        cleaned = (title or "").strip()[:MAX_TITLE_LENGTH] or None

        def _update(connection: sqlite3.Connection, thread_id: str) -> Optional[ThreadRecord]:
            connection.execute("UPDATE threads SET title = ? WHERE thread_id = ?", (cleaned, thread_id))
            return self._row_to_thread(connection.execute(_SELECT_THREAD, (thread_id,)).fetchone())

        return await asyncio.to_thread(self._write, _update, thread_id)

    @classmethod
    def ensure_in(cls, connection: sqlite3.Connection, thread_id: str) -> ThreadRecord:
        now = utc_now_str()
        cursor = connection.execute(
            "INSERT INTO threads (thread_id, title, created_at, last_updated_at) VALUES (?, NULL, ?, ?)"
            " ON CONFLICT(thread_id) DO NOTHING",
            (thread_id, now, now),
        )
        if cursor.rowcount:
            logger.info("Created thread %s", thread_id)
        record = cls._row_to_thread(connection.execute(_SELECT_THREAD, (thread_id,)).fetchone())
        if record is None:
            raise sqlite3.IntegrityError(f"Thread {thread_id} missing after upsert")
        return record

    @staticmethod
    def touch_in(connection: sqlite3.Connection, thread_id: str) -> None:
        connection.execute(
            "UPDATE threads SET last_updated_at = ? WHERE thread_id = ?",
            (utc_now_str(), thread_id),
        )

    def _write(self, operation, thread_id: str):
        with open_connection(self._db_path, self._busy_timeout) as connection:
            with transaction(connection):
                return operation(connection, thread_id)

    @staticmethod
    def _row_to_thread(row: sqlite3.Row | None) -> Optional[ThreadRecord]:
        if row is None:
            return None
        return ThreadRecord(
            thread_id=row["thread_id"],
            title=row["title"],
            created_at=parse_ts(row["created_at"]),
            last_updated_at=parse_ts(row["last_updated_at"]),
        )
