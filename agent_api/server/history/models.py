from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FUNCTION_CALL = "function_call"
    TOOL_RESPONSE = "tool_response"
    OTHER = "other"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class ThreadRecord:
    thread_id: str
    title: Optional[str]
    created_at: datetime
    last_updated_at: datetime


@dataclass(slots=True)
class ClassifiedContent:
    """Queryable columns derived from a message snapshot."""

    content_type: ContentType
    text_content: Optional[str] = None
    image_url: Optional[str] = None
    function_call_name: Optional[str] = None
    function_call_arguments: Any = None
    tool_name: Optional[str] = None
    tool_response: Any = None
    raw_content: Any = None


@dataclass(slots=True)
class MessageRecord:
    id: int
    thread_id: str
    message_id: Optional[str]
    role: Optional[str]
    content_type: ContentType
    text_content: Optional[str]
    image_url: Optional[str]
    function_call_name: Optional[str]
    function_call_arguments: Any
    tool_name: Optional[str]
    tool_response: Any
    raw_content: Any
    serialized_message: Optional[str]
    created_at: datetime
