from __future__ import annotations

from fastapi import Request

from .store import SQLiteHistoryStore


def get_history_store(request: Request) -> SQLiteHistoryStore:
    store = getattr(request.app.state, "history_store", None)
    if store is None:
        raise RuntimeError("History store has not been initialised")
    return store
