# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


class AgentRequest(BaseModel):
    question: str = Field(..., description="The question to send to the agent")
    thread_id: Optional[Union[str, dict[str, Any]]] = Field(
        default=None,
        description="Thread token returned by a previous orchestrator call; a plain id or a legacy state object",
    )

    @field_validator("question")
    @classmethod
    def validate_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be blank")
        return value


class AgentResponse(BaseModel):
    response: str
    thread_id: Optional[str] = None
