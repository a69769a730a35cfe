import asyncio
import sqlite3

import pytest
import pytest_asyncio

from agent_api.server.history.store import SQLiteHistoryStore


@pytest_asyncio.fixture
async def registry(tmp_path):
    store = SQLiteHistoryStore(str(tmp_path / "registry.db"))
    await store.init()
    return store.registry


def _thread_rows(registry, thread_id):
    with sqlite3.connect(registry._db_path) as connection:
        return connection.execute("SELECT COUNT(*) FROM threads WHERE thread_id = ?", (thread_id,)).fetchone()[0]


@pytest.mark.asyncio
async def test_ensure_is_idempotent(registry):
    first = await registry.ensure("thread-1")
    second = await registry.ensure("thread-1")

    assert first.thread_id == second.thread_id == "thread-1"
    assert first.created_at == second.created_at
    assert first.created_at == first.last_updated_at
    assert _thread_rows(registry, "thread-1") == 1


@pytest.mark.asyncio
async def test_concurrent_ensure_creates_one_row(registry):
    results = await asyncio.gather(*(registry.ensure("thread-race") for _ in range(10)))

    assert {record.created_at for record in results} == {results[0].created_at}
    assert _thread_rows(registry, "thread-race") == 1


@pytest.mark.asyncio
async def test_touch_bumps_last_updated_at(registry):
    created = await registry.ensure("thread-2")
    await asyncio.sleep(0.01)

    await registry.touch("thread-2")

    touched = await registry.get("thread-2")
    assert touched.created_at == created.created_at
    assert touched.last_updated_at > created.last_updated_at


@pytest.mark.asyncio
async def test_set_title(registry):
    await registry.ensure("thread-3")

    updated = await registry.set_title("thread-3", "  Trip to Paris  ")
    assert updated.title == "Trip to Paris"

    cleared = await registry.set_title("thread-3", "   ")
    assert cleared.title is None

    assert await registry.set_title("missing", "title") is None
