from __future__ import annotations

from agent_api.errors import AgentApiError


class HistoryStoreError(AgentApiError):
    """Base error surfaced by the conversation history store."""

    status_code = 500
    error_code = "history_error"


class HistoryWriteError(HistoryStoreError):
    """An append batch failed and was rolled back."""

    status_code = 503
    error_code = "history_write_failed"

    def __init__(self, thread_id: str, message_count: int) -> None:
        super().__init__(
            f"Failed to append {message_count} message(s) to thread {thread_id}",
            details=f"thread_id={thread_id}",
        )
        self.thread_id = thread_id
        self.message_count = message_count


class HistoryReadError(HistoryStoreError):
    status_code = 503
    error_code = "history_read_failed"

    def __init__(self, thread_id: str) -> None:
        super().__init__(f"Failed to read thread {thread_id}", details=f"thread_id={thread_id}")
        self.thread_id = thread_id


class InvalidThreadTokenError(HistoryStoreError):
    """Raised for unrecognised thread tokens when strict token handling is enabled."""

    status_code = 400
    error_code = "invalid_thread_token"

    def __init__(self, token_kind: str) -> None:
        super().__init__("Thread token could not be decoded", details=f"kind={token_kind}")
        self.token_kind = token_kind
