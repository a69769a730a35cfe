from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    ChatMessage,
    HumanMessage,
    SystemMessage,
    message_to_dict,
    messages_from_dict,
)

from .classifier import LANGCHAIN_MESSAGE_TYPES, inspect_content, is_langchain_envelope
from .codec import ThreadHandle
from .database import init_schema, open_connection, parse_ts, resolve_db_path, transaction, utc_now_str
from .errors import HistoryReadError, HistoryWriteError
from .models import ContentType, MessageRecord
from .registry import ThreadRegistry

logger = logging.getLogger(__name__)

# What callers may append: LangChain messages, plain mappings or pre-serialized snapshots.
MessageInput = Union[BaseMessage, Mapping[str, Any], str]
# What reads yield: LangChain messages, or the mapping exactly as it was appended.
StoredMessage = Union[BaseMessage, dict[str, Any]]

_ROLE_BY_TYPE = {
    "human": "user",
    "ai": "assistant",
    "AIMessageChunk": "assistant",
    "HumanMessageChunk": "user",
    "system": "system",
    "tool": "tool",
    "function": "function",
}

_MESSAGE_BY_ROLE: dict[str, type[BaseMessage]] = {
    "user": HumanMessage,
    "human": HumanMessage,
    "assistant": AIMessage,
    "ai": AIMessage,
    "system": SystemMessage,
}

_MESSAGE_COLUMNS = (
    "id, thread_id, message_id, role, content_type, text_content, image_url, function_call_name, "
    "function_call_arguments, tool_name, tool_response, raw_content, serialized_message, created_at"
)

_INSERT_MESSAGE = (
    "INSERT INTO messages (thread_id, message_id, role, content_type, text_content, image_url, "
    "function_call_name, function_call_arguments, tool_name, tool_response, raw_content, "
    "serialized_message, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


class AppendCancelled(Exception):
    """Raised inside the writer thread when the awaiting caller was cancelled before commit."""


@dataclass(slots=True)
class _PendingRow:
    message_id: Optional[str]
    role: Optional[str]
    content_type: str
    text_content: Optional[str]
    image_url: Optional[str]
    function_call_name: Optional[str]
    function_call_arguments: Optional[str]
    tool_name: Optional[str]
    tool_response: Optional[str]
    raw_content: Optional[str]
    serialized_message: Optional[str]


class SQLiteHistoryStore:
    """SQLite-backed conversation history: threads and their ordered messages."""

    def __init__(self, db_path: str, *, busy_timeout: float = 30.0, page_size: int = 100) -> None:
        self._db_path = resolve_db_path(db_path)
        self._busy_timeout = busy_timeout
        self._page_size = max(1, page_size)
        self._registry = ThreadRegistry(self._db_path, busy_timeout=busy_timeout)

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def registry(self) -> ThreadRegistry:
        return self._registry

    async def init(self) -> None:
        """Initialise database schema."""
        await asyncio.to_thread(init_schema, self._db_path, self._busy_timeout)
        logger.info("History database initialised at %s", self._db_path)

    async def close(self) -> None:  # pragma: no cover - connections are per operation
        return None

    async def append(
        self,
        thread: Union[str, ThreadHandle],
        messages: Iterable[MessageInput],
    ) -> None:
        """Append ``messages`` in order as one atomic batch.

        The thread is created if it does not exist yet. Either every message of
        the batch is committed together with the thread's ``last_updated_at``
        bump, or none is.
        """
        thread_id = thread.assign_id() if isinstance(thread, ThreadHandle) else thread
        if not thread_id or not thread_id.strip():
            raise ValueError("thread_id must be a non-blank string")

        rows = [_build_row(message) for message in messages]
        cancelled = threading.Event()
        try:
            await asyncio.to_thread(self._append_sync, thread_id, rows, cancelled)
        except asyncio.CancelledError:
            cancelled.set()
            logger.warning("Append to thread %s cancelled; batch of %d will not commit", thread_id, len(rows))
            raise
        except sqlite3.Error as exc:
            logger.exception("Append of %d message(s) to thread %s rolled back", len(rows), thread_id)
            raise HistoryWriteError(thread_id, len(rows)) from exc
        logger.debug("Appended %d message(s) to thread %s", len(rows), thread_id)

    async def read(self, thread_id: str) -> AsyncIterator[StoredMessage]:
        """Yield the thread's messages in append order, page by page.

        Records whose snapshot cannot be decoded fall back to their text
        column; records with neither are skipped. Unknown threads yield nothing.
        """
        last_id = 0
        while True:
            rows = await self._fetch_page(thread_id, last_id)
            for row in rows:
                last_id = row["id"]
                message = reconstruct_message(row)
                if message is not None:
                    yield message
            if len(rows) < self._page_size:
                return

    async def get_messages(self, thread_id: str) -> list[StoredMessage]:
        return [message async for message in self.read(thread_id)]

    async def get_records(self, thread_id: str) -> list[MessageRecord]:
        try:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE thread_id = ? ORDER BY id ASC",
                (thread_id,),
            )
        except sqlite3.Error as exc:
            raise HistoryReadError(thread_id) from exc
        return [_row_to_record(row) for row in rows]

    async def count(self, thread_id: str) -> int:
        try:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT COUNT(*) AS total FROM messages WHERE thread_id = ?",
                (thread_id,),
            )
        except sqlite3.Error as exc:
            raise HistoryReadError(thread_id) from exc
        return int(rows[0]["total"])

    def _append_sync(self, thread_id: str, rows: list[_PendingRow], cancelled: threading.Event) -> None:
        now = utc_now_str()
        with open_connection(self._db_path, self._busy_timeout) as connection:
            with transaction(connection):
                ThreadRegistry.ensure_in(connection, thread_id)
                connection.executemany(
                    _INSERT_MESSAGE,
                    [
                        (
                            thread_id,
                            row.message_id,
                            row.role,
                            row.content_type,
                            row.text_content,
                            row.image_url,
                            row.function_call_name,
                            row.function_call_arguments,
                            row.tool_name,
                            row.tool_response,
                            row.raw_content,
                            row.serialized_message,
                            now,
                        )
                        for row in rows
                    ],
                )
                ThreadRegistry.touch_in(connection, thread_id)
                if cancelled.is_set():
                    raise AppendCancelled(thread_id)

    async def _fetch_page(self, thread_id: str, after_id: int) -> list[sqlite3.Row]:
        try:
            return await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE thread_id = ? AND id > ? ORDER BY id ASC LIMIT ?",
                (thread_id, after_id, self._page_size),
            )
        except sqlite3.Error as exc:
            raise HistoryReadError(thread_id) from exc

    def _fetchall(self, query: str, params: tuple = ()) -> list[sqlite3.Row]:
        with open_connection(self._db_path, self._busy_timeout) as connection:
            return connection.execute(query, params).fetchall()


def snapshot_message(message: MessageInput) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Return ``(serialized_message, role, message_id)`` for an appended message."""
    if isinstance(message, str):
        return message, None, None

    if isinstance(message, BaseMessage):
        payload: Any = message_to_dict(message)
        role = _role_for_message(message)
        message_id = message.id
    elif isinstance(message, Mapping):
        payload = dict(message)
        role = _role_for_mapping(message)
        message_id = _first_str(message, "messageId", "message_id", "id")
    else:
        logger.debug("Cannot snapshot message of type %s", type(message).__name__)
        return None, None, None

    try:
        serialized = json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        logger.debug("Message snapshot is not JSON serialisable: %s", exc)
        serialized = None
    return serialized, role, message_id or None


def reconstruct_message(row: Mapping[str, Any] | sqlite3.Row) -> Optional[StoredMessage]:
    serialized = row["serialized_message"]
    if serialized:
        try:
            return _decode_snapshot(serialized)
        except (TypeError, ValueError, KeyError) as exc:
            logger.debug("Stored snapshot %s is unreadable, falling back to text: %s", row["id"], exc)

    text = row["text_content"]
    if text is not None:
        try:
            return _minimal_message(row["role"], text)
        except ValueError as exc:
            logger.debug("Fallback reconstruction of %s failed: %s", row["id"], exc)

    logger.warning("Skipping unreadable message %s in thread %s", row["id"], row["thread_id"])
    return None


def _build_row(message: MessageInput) -> _PendingRow:
    serialized, role, message_id = snapshot_message(message)
    classified = inspect_content(serialized)
    return _PendingRow(
        message_id=message_id,
        role=role,
        content_type=classified.content_type.value,
        text_content=classified.text_content,
        image_url=classified.image_url,
        function_call_name=classified.function_call_name,
        function_call_arguments=_dumps_or_none(classified.function_call_arguments),
        tool_name=classified.tool_name,
        tool_response=_dumps_or_none(classified.tool_response),
        raw_content=_dumps_or_none(classified.raw_content),
        serialized_message=serialized,
    )


def _decode_snapshot(serialized: str) -> StoredMessage:
    payload = json.loads(serialized)
    if not isinstance(payload, dict):
        raise ValueError("snapshot is not a JSON object")
    if not is_langchain_envelope(payload):
        return payload
    try:
        return messages_from_dict([payload])[0]
    except (TypeError, ValueError, KeyError) as exc:
        # the snapshot itself parsed, so it is still what was appended
        logger.debug("Returning snapshot as a mapping, not a LangChain message: %s", exc)
        return payload


def _minimal_message(role: Optional[str], text: str) -> BaseMessage:
    message_cls = _MESSAGE_BY_ROLE.get((role or "").lower())
    if message_cls is not None:
        return message_cls(content=text)
    return ChatMessage(role=role or "user", content=text)


def _role_for_message(message: BaseMessage) -> str:
    if isinstance(message, ChatMessage):
        return message.role
    return _ROLE_BY_TYPE.get(message.type, message.type)


def _role_for_mapping(message: Mapping[str, Any]) -> Optional[str]:
    role = message.get("role")
    if isinstance(role, str) and role.strip():
        return role.strip()
    message_type = message.get("type")
    if (
        isinstance(message_type, str)
        and message_type in LANGCHAIN_MESSAGE_TYPES
        and isinstance(message.get("data"), Mapping)
    ):
        return _ROLE_BY_TYPE.get(message_type, message_type)
    return None


def _first_str(message: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = message.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _dumps_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps(str(value), ensure_ascii=False)


def _loads_or_none(value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _row_to_record(row: sqlite3.Row) -> MessageRecord:
    try:
        content_type = ContentType(row["content_type"])
    except ValueError:
        content_type = ContentType.UNKNOWN
    return MessageRecord(
        id=row["id"],
        thread_id=row["thread_id"],
        message_id=row["message_id"],
        role=row["role"],
        content_type=content_type,
        text_content=row["text_content"],
        image_url=row["image_url"],
        function_call_name=row["function_call_name"],
        function_call_arguments=_loads_or_none(row["function_call_arguments"]),
        tool_name=row["tool_name"],
        tool_response=_loads_or_none(row["tool_response"]),
        raw_content=_loads_or_none(row["raw_content"]),
        serialized_message=row["serialized_message"],
        created_at=parse_ts(row["created_at"]),
    )
