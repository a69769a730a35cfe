# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from typing import Optional


class AgentApiError(Exception):
    """Base error carrying the HTTP status and error code it maps to."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class AgentUnavailableError(AgentApiError):
    """The requested agent is unknown or its model provider is not configured."""

    status_code = 503
    error_code = "agent_unavailable"


class AgentResponseError(AgentApiError):
    """The agent answered, but not in the shape the caller asked for."""

    status_code = 400
    error_code = "agent_response_invalid"

    def __init__(self, message: str, raw_response: str) -> None:
        super().__init__(message, details=f"Raw response: {raw_response}")
        self.raw_response = raw_response
