from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import get_history_store
from .models import MessageRecord, ThreadRecord
from .schemas import ThreadDetail, ThreadMessage, ThreadSummary, ThreadUpdateRequest
from .store import SQLiteHistoryStore

router = APIRouter(prefix="/api/threads", tags=["threads"])


@router.get("/{thread_id}", response_model=ThreadDetail)
async def get_thread(
    thread_id: str,
    store: SQLiteHistoryStore = Depends(get_history_store),
) -> ThreadDetail:
    thread = await store.registry.get(thread_id)
    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    records = await store.get_records(thread_id)
    return _to_detail(thread, records)


@router.patch("/{thread_id}", response_model=ThreadDetail)
async def update_thread(
    thread_id: str,
    payload: ThreadUpdateRequest,
    store: SQLiteHistoryStore = Depends(get_history_store),
) -> ThreadDetail:
    thread = await store.registry.get(thread_id)
    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    thread = await store.registry.set_title(thread_id, payload.title) or thread
    records = await store.get_records(thread_id)
    return _to_detail(thread, records)


def _to_summary(record: ThreadRecord) -> ThreadSummary:
    return ThreadSummary(
        thread_id=record.thread_id,
        title=record.title,
        created_at=record.created_at,
        last_updated_at=record.last_updated_at,
    )


def _to_message(record: MessageRecord) -> ThreadMessage:
    return ThreadMessage(
        id=record.id,
        message_id=record.message_id,
        role=record.role,
        content_type=record.content_type,
        text_content=record.text_content,
        image_url=record.image_url,
        function_call_name=record.function_call_name,
        function_call_arguments=record.function_call_arguments,
        tool_name=record.tool_name,
        tool_response=record.tool_response,
        raw_content=record.raw_content,
        created_at=record.created_at,
    )


def _to_detail(thread: ThreadRecord, records: list[MessageRecord]) -> ThreadDetail:
    return ThreadDetail(
        **_to_summary(thread).model_dump(),
        messages=[_to_message(record) for record in records],
    )
