# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from langchain_core.language_models import BaseChatModel

from agent_api.config.configuration import (
    GEOGRAPHY_AGENT,
    MATH_AGENT,
    ORCHESTRATOR_AGENT,
    Settings,
)
from agent_api.errors import AgentUnavailableError
from agent_api.llms.llm import get_chat_model
from agent_api.server.history.codec import ThreadStateCodec
from agent_api.server.history.store import SQLiteHistoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentDefinition:
    key: str
    name: str
    instructions: str
    model: Optional[BaseChatModel]


@dataclass(frozen=True)
class AgentContext:
    """Everything a request handler needs, built once at startup and never mutated."""

    settings: Settings
    store: SQLiteHistoryStore
    codec: ThreadStateCodec
    agents: Mapping[str, AgentDefinition] = field(default_factory=dict)
    unavailable_reason: Optional[str] = None

    def get_agent(self, key: str) -> AgentDefinition:
        agent = self.agents.get(key)
        if agent is None:
            raise AgentUnavailableError(f"{key} agent not found or not supported")
        if agent.model is None:
            raise AgentUnavailableError(
                f"{agent.name} is not initialised",
                details=self.unavailable_reason,
            )
        return agent


def build_agent_context(
    settings: Settings,
    store: SQLiteHistoryStore,
    chat_model: Optional[BaseChatModel] = None,
) -> AgentContext:
    """Create the per-process agent context.

    A provider that is not configured does not stop the service from starting;
    the agents are registered without a model and report themselves unavailable.
    """
    reason: Optional[str] = None
    if chat_model is None:
        try:
            chat_model = get_chat_model(settings)
        except AgentUnavailableError as exc:
            reason = exc.message
            logger.warning("Agents are unavailable: %s", reason)

    agents: dict[str, AgentDefinition] = {}
    for key in (GEOGRAPHY_AGENT, MATH_AGENT, ORCHESTRATOR_AGENT):
        agent_settings = settings.agent(key)
        if agent_settings is None:
            continue
        agents[key] = AgentDefinition(
            key=key,
            name=agent_settings.name,
            instructions=agent_settings.instructions,
            model=chat_model,
        )

    return AgentContext(
        settings=settings,
        store=store,
        codec=ThreadStateCodec(strict=settings.strict_thread_tokens),
        agents=MappingProxyType(agents),
        unavailable_reason=reason,
    )
