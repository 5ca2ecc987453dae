"""Tests for the SQLite key-value store."""

import pytest

from focus_engine.storage.database import Database
from focus_engine.storage.memory import MemoryStore


@pytest.fixture
async def db(tmp_path):
    database = Database(tmp_path / "focus_engine.db")
    await database.connect()
    yield database
    await database.close()


@pytest.mark.asyncio
async def test_set_get_delete(db):
    assert await db.get("missing") is None

    await db.set("focus-engine-tracking-state", '{"is_tracking": true}')
    assert await db.get("focus-engine-tracking-state") == '{"is_tracking": true}'

    await db.set("focus-engine-tracking-state", '{"is_tracking": false}')
    assert await db.get("focus-engine-tracking-state") == '{"is_tracking": false}'
    assert await db.keys() == ["focus-engine-tracking-state"]

    await db.delete("focus-engine-tracking-state")
    await db.delete("focus-engine-tracking-state")
    assert await db.get("focus-engine-tracking-state") is None


@pytest.mark.asyncio
async def test_values_survive_reconnect(tmp_path):
    path = tmp_path / "focus_engine.db"
    first = Database(path)
    await first.connect()
    await first.set("focus-engine-session-history", "[]")
    await first.close()

    second = Database(path)
    await second.connect()
    try:
        assert await second.get("focus-engine-session-history") == "[]"
        assert await second.check_integrity()
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_requires_connection(tmp_path):
    database = Database(tmp_path / "focus_engine.db")

    assert not database.is_connected
    with pytest.raises(RuntimeError):
        await database.get("anything")


@pytest.mark.asyncio
async def test_memory_store_contract():
    store = MemoryStore({"a": "1"})

    assert "a" in store
    await store.set("b", "2")
    assert await store.get("b") == "2"
    await store.delete("a")
    await store.delete("a")
    assert len(store) == 1
