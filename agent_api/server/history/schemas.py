from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .models import ContentType
from .registry import MAX_TITLE_LENGTH


class ThreadMessage(BaseModel):
    id: int
    message_id: Optional[str] = None
    role: Optional[str] = None
    content_type: ContentType
    text_content: Optional[str] = None
    image_url: Optional[str] = None
    function_call_name: Optional[str] = None
    function_call_arguments: Any = None
    tool_name: Optional[str] = None
    tool_response: Any = None
    raw_content: Any = None
    created_at: datetime


class ThreadSummary(BaseModel):
    thread_id: str
    title: Optional[str] = None
    created_at: datetime
    last_updated_at: datetime


class ThreadDetail(ThreadSummary):
    messages: list[ThreadMessage] = Field(default_factory=list)


class ThreadUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, description="Manual thread title override.")

    @field_validator("title")
    @classmethod
    def validate_title_length(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            return None
        if len(value) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title must be {MAX_TITLE_LENGTH} characters or fewer")
        return value
