from __future__ import annotations

import logging
from typing import Iterable, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from .models import ContentType, MessageRecord
from .store import SQLiteHistoryStore

logger = logging.getLogger(__name__)

_MAX_TITLE_LENGTH = 40
_FIRST_EXCHANGE = 4
DEFAULT_TITLE = "New conversation"


async def ensure_thread_title(
    store: SQLiteHistoryStore,
    thread_id: str,
    llm: Optional[BaseChatModel] = None,
) -> Optional[str]:
    """Generate and persist a thread title if one does not already exist."""
    thread = await store.registry.get(thread_id)
    if thread is None or thread.title:
        return None

    records = (await store.get_records(thread_id))[:_FIRST_EXCHANGE]
    messages = [record for record in records if record.content_type is ContentType.TEXT]
    if not messages:
        logger.debug("Thread %s has no text messages yet; skipping title generation", thread_id)
        return None

    fallback = _derive_fallback_title(messages)
    if llm is None:
        await store.registry.set_title(thread_id, fallback)
        return fallback

    try:
        ai_message = await llm.ainvoke([HumanMessage(content=_build_prompt(messages))])
    except Exception as exc:  # noqa: BLE001 - title generation should not fail the turn
        logger.warning("Failed to generate thread title via LLM: %s", exc)
        await store.registry.set_title(thread_id, fallback)
        return fallback

    content = getattr(ai_message, "content", ai_message)
    title = content.strip() if isinstance(content, str) else ""
    title = _truncate_to_limit(title.strip("\"'")) if title else fallback
    await store.registry.set_title(thread_id, title)
    return title


def _build_prompt(messages: Iterable[MessageRecord]) -> str:
    lines: list[str] = []
    for message in messages:
        if message.role == "user":
            lines.append(f"User: {message.text_content}")
        elif message.role == "assistant":
            lines.append(f"Assistant: {message.text_content}")
    joined = "\n".join(lines)
    return (
        "Read the conversation below and write a short title that summarises its topic.\n"
        "Rules:\n"
        f"1. At most {_MAX_TITLE_LENGTH} characters;\n"
        "2. No quotes and no trailing period;\n"
        f"3. If no topic can be identified, answer \"{DEFAULT_TITLE}\".\n\n"
        f"Conversation:\n{joined}\n\n"
        "Title:"
    )


def _derive_fallback_title(messages: Iterable[MessageRecord]) -> str:
    for message in messages:
        if message.role == "user" and message.text_content:
            return _truncate_to_limit(message.text_content)
    return DEFAULT_TITLE


def _truncate_to_limit(text: str) -> str:
    cleaned = " ".join(text.split())
    if len(cleaned) <= _MAX_TITLE_LENGTH:
        return cleaned or DEFAULT_TITLE
    trimmed = cleaned[: _MAX_TITLE_LENGTH - 1].rstrip()
    return f"{trimmed}…"
