"""Conversation history package providing SQLite-backed persistence and APIs."""

from .codec import ThreadHandle, ThreadStateCodec, extract_thread_id
from .dependencies import get_history_store
from .store import SQLiteHistoryStore

__all__ = [
    "SQLiteHistoryStore",
    "ThreadHandle",
    "ThreadStateCodec",
    "extract_thread_id",
    "get_history_store",
]
