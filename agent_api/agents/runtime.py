# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, convert_to_messages
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from agent_api.config.configuration import GEOGRAPHY_AGENT, MATH_AGENT, ORCHESTRATOR_AGENT
from agent_api.errors import AgentResponseError
from agent_api.server.history.codec import ThreadToken, extract_thread_id
from agent_api.server.history.title import ensure_thread_title

from .context import AgentContext, AgentDefinition

logger = logging.getLogger(__name__)


class GeographyResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    country: str = ""
    country_code: str = ""
    region: str = ""
    city: str = ""
    postal_code: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    time_zone: str = ""


@dataclass(slots=True)
class AgentReply:
    response: str
    thread_id: Optional[str] = None


class AgentRuntime:
    """Runs one conversational turn against the configured agents."""

    def __init__(self, context: AgentContext) -> None:
        self._context = context

    async def ask_orchestrator(self, question: str, token: ThreadToken = None) -> AgentReply:
        agent = self._context.get_agent(ORCHESTRATOR_AGENT)
        store = self._context.store
        codec = self._context.codec

        prior_thread_id = extract_thread_id(token)
        handle = codec.deserialize(token)
        history = await store.get_messages(handle.thread_id) if handle.thread_id else []

        prompt = [SystemMessage(content=agent.instructions), *_as_prompt_messages(history)]
        question_message = HumanMessage(content=question)
        prompt.append(question_message)

        result = await agent.model.ainvoke(prompt)
        await store.append(handle, [question_message, result])

        state = codec.serialize(handle)
        thread_id = codec.extract_thread_id(state, prior_thread_id)

        if thread_id:
            title_llm = agent.model if self._context.settings.llm_thread_titles else None
            await ensure_thread_title(store, thread_id, title_llm)

        return AgentReply(response=_content_text(result), thread_id=thread_id)

    async def ask_math(self, question: str) -> AgentReply:
        return AgentReply(response=await self._ask(self._context.get_agent(MATH_AGENT), question))

    async def ask_geography(self, question: str) -> GeographyResponse:
        raw = await self._ask(self._context.get_agent(GEOGRAPHY_AGENT), question)
        payload = _strip_code_fence(raw)
        if not payload:
            raise AgentResponseError("Empty geography response received", raw)
        try:
            return GeographyResponse.model_validate_json(payload)
        except ValidationError as exc:
            raise AgentResponseError("Failed to deserialize geography response", raw) from exc

    async def _ask(self, agent: AgentDefinition, question: str) -> str:
        result = await agent.model.ainvoke(
            [SystemMessage(content=agent.instructions), HumanMessage(content=question)]
        )
        text = _content_text(result)
        logger.debug("%s answered %d characters", agent.name, len(text))
        return text


def _as_prompt_messages(history: Iterable[Any]) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    for item in history:
        if isinstance(item, BaseMessage):
            messages.append(item)
            continue
        try:
            messages.extend(convert_to_messages([item]))
        except (ValueError, TypeError, KeyError, NotImplementedError) as exc:
            logger.debug("Leaving stored message out of the prompt: %s", exc)
    return messages


def _content_text(result: Any) -> str:
    content = result.content if isinstance(result, BaseMessage) else result
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return str(content)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.strip("`")
        if stripped.lower().startswith("json"):
            stripped = stripped[4:]
    return stripped.strip()
