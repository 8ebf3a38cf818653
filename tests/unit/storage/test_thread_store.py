import pytest

from assistant_bridge.errors import NotFoundError, ValidationError
from assistant_bridge.storage.models import RunRecord, new_id, now_ts
from assistant_bridge.storage.persistence import SQLitePersistence
from assistant_bridge.storage.store import ThreadStore, paginate


async def _store(path):
    store = ThreadStore(SQLitePersistence(str(path)))
    await store.load()
    return store


@pytest.mark.asyncio
async def test_create_thread_and_messages(tmp_path):
    store = await _store(tmp_path / "store.db")

    thread = await store.create_thread({"project": "demo"})
    assert thread.id.startswith("thread_")
    assert thread.metadata == {"project": "demo"}

    await store.append_message(thread.id, role="user", content="你好")
    await store.append_message(thread.id, role="assistant", content="你好，请问有什么可以帮你？", metadata={"run_id": "r"})

    messages = store.messages_snapshot(thread.id)
    assert [message.role for message in messages] == ["user", "assistant"]
    assert [message.seq for message in messages] == [1, 2]
    assert messages[0].text == "你好"
    assert messages[0].content == [{"type": "text", "text": {"value": "你好", "annotations": []}}]
    assert messages[1].metadata == {"run_id": "r"}


@pytest.mark.asyncio
async def test_metadata_patches_merge(tmp_path):
    store = await _store(tmp_path / "store.db")
    thread = await store.create_thread({"a": 1, "b": 2})

    updated = await store.update_thread_metadata(thread.id, {"b": 3, "c": 4})
    assert updated.metadata == {"a": 1, "b": 3, "c": 4}

    message = await store.append_message(thread.id, role="user", content="hi", metadata={"x": 1})
    message = await store.update_message_metadata(thread.id, message.id, {"y": 2})
    assert message.metadata == {"x": 1, "y": 2}
    assert message.text == "hi"


@pytest.mark.asyncio
async def test_unknown_ids_raise_not_found(tmp_path):
    store = await _store(tmp_path / "store.db")
    thread = await store.create_thread()

    with pytest.raises(NotFoundError):
        store.get_thread("thread_missing")
    with pytest.raises(NotFoundError):
        await store.append_message("thread_missing", role="user", content="hi")
    with pytest.raises(NotFoundError):
        store.get_message(thread.id, "msg_missing")
    with pytest.raises(NotFoundError):
        store.get_run(thread.id, "run_missing")
    with pytest.raises(NotFoundError):
        await store.delete_thread("thread_missing")


@pytest.mark.asyncio
async def test_invalid_role_is_rejected(tmp_path):
    store = await _store(tmp_path / "store.db")
    thread = await store.create_thread()

    with pytest.raises(ValidationError):
        await store.append_message(thread.id, role="tool", content="hi")


@pytest.mark.asyncio
async def test_message_pagination(tmp_path):
    store = await _store(tmp_path / "store.db")
    thread = await store.create_thread()
    ids = [(await store.append_message(thread.id, role="user", content=str(index))).id for index in range(5)]

    newest = store.list_messages(thread.id, limit=2)
    assert [message.id for message in newest.data] == [ids[4], ids[3]]
    assert newest.has_more is True

    oldest = store.list_messages(thread.id, order="asc", limit=10)
    assert [message.id for message in oldest.data] == ids
    assert oldest.has_more is False

    after = store.list_messages(thread.id, order="asc", after=ids[1], limit=2)
    assert [message.id for message in after.data] == [ids[2], ids[3]]
    assert after.has_more is True

    before = store.list_messages(thread.id, order="asc", before=ids[3])
    assert [message.id for message in before.data] == ids[:3]

    desc_after = store.list_messages(thread.id, after=ids[3])
    assert [message.id for message in desc_after.data] == [ids[2], ids[1], ids[0]]

    unknown = store.list_messages(thread.id, order="asc", after="msg_unknown", before="msg_other")
    assert [message.id for message in unknown.data] == ids


@pytest.mark.asyncio
async def test_pagination_rejects_bad_arguments(tmp_path):
    store = await _store(tmp_path / "store.db")
    thread = await store.create_thread()

    with pytest.raises(ValidationError):
        store.list_messages(thread.id, order="sideways")
    with pytest.raises(ValidationError):
        store.list_messages(thread.id, limit=0)
    with pytest.raises(ValidationError):
        store.list_messages(thread.id, limit=-5)


@pytest.mark.asyncio
async def test_large_limit_returns_every_message(tmp_path):
    store = await _store(tmp_path / "store.db")
    thread = await store.create_thread()
    for index in range(120):
        await store.append_message(thread.id, role="user", content=str(index))

    page = store.list_messages(thread.id, limit=150)

    assert len(page.data) == 120
    assert page.has_more is False
    assert page.data[0].text == "119"


@pytest.mark.parametrize("total, limit", [(0, 3), (2, 3), (3, 3), (7, 3)])
def test_page_size_and_has_more(total, limit):
    class Item:
        def __init__(self, index):
            self.id = f"item_{index}"
            self.created_at = index

    page = paginate([Item(index) for index in range(total)], key=lambda item: item.created_at, limit=limit)

    assert len(page.data) == min(limit, total)
    assert page.has_more is (total > limit)


@pytest.mark.asyncio
async def test_delete_thread_cascades(tmp_path):
    path = tmp_path / "store.db"
    store = await _store(path)
    thread = await store.create_thread()
    await store.append_message(thread.id, role="user", content="hi")
    await store.save_run(
        RunRecord(id=new_id("run"), thread_id=thread.id, assistant_id="helper", created_at=now_ts())
    )

    await store.delete_thread(thread.id)

    assert not store.has_thread(thread.id)
    reloaded = await _store(path)
    assert not reloaded.has_thread(thread.id)
    assert await reloaded.persistence.load_messages(thread.id) == []
    assert await reloaded.persistence.list_runs(thread.id) == []


@pytest.mark.asyncio
async def test_reload_restores_identical_state(tmp_path):
    path = tmp_path / "store.db"
    store = await _store(path)
    expected = {}
    for index in range(3):
        thread = await store.create_thread({"index": index})
        await store.append_message(thread.id, role="user", content=f"question {index}")
        await store.append_message(thread.id, role="assistant", content=f"answer {index}")
        run = RunRecord(
            id=new_id("run"),
            thread_id=thread.id,
            assistant_id="helper",
            created_at=now_ts(),
            status="in_progress",
            usage={"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3},
        )
        await store.save_run(run)
        expected[thread.id] = (
            thread.to_dict(),
            [message.to_dict() for message in store.messages_snapshot(thread.id)],
            run.to_dict(),
        )

    reloaded = await _store(path)
    for thread_id, (thread, messages, run) in expected.items():
        assert reloaded.get_thread(thread_id).to_dict() == thread
        assert [message.to_dict() for message in reloaded.messages_snapshot(thread_id)] == messages
        assert reloaded.get_run(thread_id, run["id"]).to_dict() == run

    await reloaded.load()
    for thread_id, (_, messages, run) in expected.items():
        assert [item.id for item in reloaded.list_runs(thread_id).data] == [run["id"]]
        assert len(reloaded.messages_snapshot(thread_id)) == len(messages)
