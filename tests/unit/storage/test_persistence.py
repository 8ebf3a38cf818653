import json
import sqlite3

import pytest

from assistant_bridge.storage.persistence import (
    JSONFilePersistence,
    SQLitePersistence,
    create_persistence,
)


def _adapters(tmp_path):
    return [
        SQLitePersistence(str(tmp_path / "state.db")),
        JSONFilePersistence(str(tmp_path / "state.json")),
    ]


@pytest.mark.asyncio
async def test_missing_record_yields_empty_state(tmp_path):
    for adapter in _adapters(tmp_path):
        await adapter.init()

        assert await adapter.list_threads() == []
        assert await adapter.load_thread("thread_x") is None
        assert await adapter.load_messages("thread_x") == []
        assert await adapter.list_runs("thread_x") == []
        assert await adapter.load_run("thread_x", "run_x") is None


@pytest.mark.asyncio
async def test_round_trip_through_fresh_adapter(tmp_path):
    for adapter in _adapters(tmp_path):
        await adapter.init()
        await adapter.save_thread({"id": "thread_1", "created_at": 1, "metadata": {"k": "v"}})
        await adapter.save_message("thread_1", {"id": "msg_1", "role": "user", "seq": 1})
        await adapter.save_message("thread_1", {"id": "msg_2", "role": "assistant", "seq": 2})
        await adapter.save_message("thread_1", {"id": "msg_1", "role": "user", "seq": 1, "metadata": {"x": 1}})
        await adapter.save_run("thread_1", {"id": "run_1", "status": "completed"})

        fresh = type(adapter)(adapter.location)
        await fresh.init()

        assert await fresh.load_thread("thread_1") == {"id": "thread_1", "created_at": 1, "metadata": {"k": "v"}}
        messages = await fresh.load_messages("thread_1")
        assert [message["id"] for message in messages] == ["msg_1", "msg_2"]
        assert messages[0]["metadata"] == {"x": 1}
        assert await fresh.load_run("thread_1", "run_1") == {"id": "run_1", "status": "completed"}


@pytest.mark.asyncio
async def test_delete_thread_removes_all_collections(tmp_path):
    for adapter in _adapters(tmp_path):
        await adapter.init()
        await adapter.save_thread({"id": "thread_1"})
        await adapter.save_message("thread_1", {"id": "msg_1"})
        await adapter.save_run("thread_1", {"id": "run_1"})

        await adapter.delete_thread("thread_1")

        fresh = type(adapter)(adapter.location)
        await fresh.init()
        assert await fresh.list_threads() == []
        assert await fresh.load_messages("thread_1") == []
        assert await fresh.list_runs("thread_1") == []


@pytest.mark.asyncio
async def test_sqlite_keeps_one_row_per_collection(tmp_path):
    adapter = SQLitePersistence(str(tmp_path / "state"))
    await adapter.init()
    await adapter.save_thread({"id": "thread_1"})
    await adapter.save_thread({"id": "thread_2"})

    assert adapter.db_path.endswith("state.db")
    connection = sqlite3.connect(adapter.db_path)
    try:
        rows = dict(connection.execute("SELECT name, payload FROM collections").fetchall())
    finally:
        connection.close()

    assert set(rows) == {"threads", "messages", "runs"}
    assert set(json.loads(rows["threads"])) == {"thread_1", "thread_2"}


@pytest.mark.asyncio
async def test_json_file_is_a_single_document(tmp_path):
    adapter = JSONFilePersistence(str(tmp_path / "state.json"))
    await adapter.init()
    await adapter.save_run("thread_1", {"id": "run_1"})

    document = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))

    assert document == {"threads": {}, "messages": {}, "runs": {"thread_1": {"run_1": {"id": "run_1"}}}}


def test_create_persistence_selects_backend(tmp_path):
    assert isinstance(create_persistence("sqlite", str(tmp_path / "a.db")), SQLitePersistence)
    assert isinstance(create_persistence("json", str(tmp_path / "a.json")), JSONFilePersistence)
    with pytest.raises(ValueError):
        create_persistence("redis", str(tmp_path / "a"))
