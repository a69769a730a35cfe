from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidThreadTokenError

logger = logging.getLogger(__name__)

STORE_STATE_KEY = "storeState"

ThreadToken = Union[str, Mapping[str, Any], None]


def new_thread_id() -> str:
    return uuid4().hex


@dataclass(slots=True)
class ThreadHandle:
    """Working handle for one conversation; ``thread_id`` stays ``None`` until first use."""

    thread_id: Optional[str] = None

    @property
    def is_new(self) -> bool:
        return self.thread_id is None

    def assign_id(self) -> str:
        if self.thread_id is None:
            self.thread_id = new_thread_id()
        return self.thread_id


class ThreadState(BaseModel):
    """Canonical structured form of a thread token."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    store_state: str = Field(
        validation_alias=AliasChoices("storeState", "store_state", "threadId", "thread_id"),
        serialization_alias=STORE_STATE_KEY,
    )


def _non_blank(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_thread_id(state: Any, prior_thread_id: Optional[str] = None) -> Optional[str]:
    """Pull a thread id out of a token in any of its known shapes.

    Tries, in order: a plain string, an object with a ``storeState`` string, and
    an object that decodes as :class:`ThreadState`. Falls back to
    ``prior_thread_id`` so an unrecognised shape never drops an existing
    conversation; ``None`` means start a new thread.
    """
    if isinstance(state, str):
        thread_id = _non_blank(state)
        if thread_id:
            return thread_id
    elif isinstance(state, Mapping):
        thread_id = _non_blank(state.get(STORE_STATE_KEY))
        if thread_id:
            return thread_id
        try:
            decoded = ThreadState.model_validate(state)
        except ValidationError:
            logger.debug("Thread state did not decode as ThreadState: %s", sorted(map(str, state)))
        else:
            thread_id = _non_blank(decoded.store_state)
            if thread_id:
                return thread_id

    return _non_blank(prior_thread_id)


class ThreadStateCodec:
    """Converts thread handles to caller-facing tokens and back."""

    def __init__(self, *, strict: bool = False) -> None:
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def serialize(self, handle: ThreadHandle) -> str:
        return handle.assign_id()

    def to_state(self, handle: ThreadHandle) -> dict[str, str]:
        return ThreadState(store_state=handle.assign_id()).model_dump(by_alias=True)

    def deserialize(self, token: ThreadToken) -> ThreadHandle:
        if token is None:
            return ThreadHandle()

        if isinstance(token, str):
            stripped = token.strip()
            if not stripped:
                return ThreadHandle()
            if not stripped.startswith("{"):
                return ThreadHandle(thread_id=stripped)
            try:
                state: Any = json.loads(stripped)
            except ValueError:
                return self._unrecognised("json")
        else:
            state = token

        if isinstance(state, Mapping):
            thread_id = extract_thread_id(state)
            if thread_id:
                return ThreadHandle(thread_id=thread_id)
            return self._unrecognised("object")
        return self._unrecognised(type(state).__name__)

    def extract_thread_id(self, state: Any, prior_thread_id: Optional[str] = None) -> Optional[str]:
        return extract_thread_id(state, prior_thread_id)

    def _unrecognised(self, kind: str) -> ThreadHandle:
        if self._strict:
            raise InvalidThreadTokenError(kind)
        logger.warning("Ignoring unrecognised thread token (%s); starting a new thread", kind)
        return ThreadHandle()
