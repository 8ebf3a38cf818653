from __future__ import annotations

import logging
from typing import Any, Optional

from assistant_bridge.errors import NotFoundError, ValidationError

from .models import (
    MESSAGE_ROLES,
    MessageRecord,
    Page,
    RunRecord,
    ThreadRecord,
    new_id,
    now_ts,
    text_content,
)
from .persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
# Only the HTTP layer caps page sizes.
MAX_PAGE_SIZE = 100


class ThreadStore:
    """Authoritative in-memory view of threads, messages and runs.

    Every mutation is written through to the persistence adapter before the
    call returns. One store per engine instance; nothing here is global.
    """

    def __init__(self, persistence: PersistenceAdapter) -> None:
        self._persistence = persistence
        self._threads: dict[str, ThreadRecord] = {}
        self._messages: dict[str, list[MessageRecord]] = {}
        self._runs: dict[str, dict[str, RunRecord]] = {}

    @property
    def persistence(self) -> PersistenceAdapter:
        return self._persistence

    async def load(self) -> None:
        """Re-hydrate state from the persistence adapter."""
        await self._persistence.init()
        self._threads.clear()
        self._messages.clear()
        self._runs.clear()
        for raw_thread in await self._persistence.list_threads():
            thread = ThreadRecord.from_dict(raw_thread)
            self._threads[thread.id] = thread
            messages = [MessageRecord.from_dict(item) for item in await self._persistence.load_messages(thread.id)]
            messages.sort(key=lambda message: message.seq)
            self._messages[thread.id] = messages
            self._runs[thread.id] = {
                run.id: run
                for run in (RunRecord.from_dict(item) for item in await self._persistence.list_runs(thread.id))
            }
        logger.info(
            "Thread store loaded %d thread(s), %d message(s), %d run(s)",
            len(self._threads),
            sum(len(items) for items in self._messages.values()),
            sum(len(items) for items in self._runs.values()),
        )

    async def close(self) -> None:
        await self._persistence.close()

    # Threads

    async def create_thread(self, metadata: Optional[dict[str, Any]] = None) -> ThreadRecord:
        thread = ThreadRecord(id=new_id("thread"), created_at=now_ts(), metadata=dict(metadata or {}))
        self._threads[thread.id] = thread
        self._messages[thread.id] = []
        self._runs[thread.id] = {}
        await self._persistence.save_thread(thread.to_dict())
        return thread

    def get_thread(self, thread_id: str) -> ThreadRecord:
        thread = self._threads.get(thread_id)
        if thread is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        return thread

    def has_thread(self, thread_id: str) -> bool:
        return thread_id in self._threads

    async def update_thread_metadata(self, thread_id: str, patch: Optional[dict[str, Any]]) -> ThreadRecord:
        thread = self.get_thread(thread_id)
        thread.metadata = {**thread.metadata, **(patch or {})}
        await self._persistence.save_thread(thread.to_dict())
        return thread

    async def delete_thread(self, thread_id: str) -> None:
        self.get_thread(thread_id)
        del self._threads[thread_id]
        self._messages.pop(thread_id, None)
        self._runs.pop(thread_id, None)
        await self._persistence.delete_thread(thread_id)

    # Messages

    async def append_message(
        self,
        thread_id: str,
        *,
        role: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> MessageRecord:
        self.get_thread(thread_id)
        if role not in MESSAGE_ROLES:
            raise ValidationError(f"Unsupported message role {role!r}")
        if not isinstance(content, str):
            raise ValidationError("Message content must be a string")

        messages = self._messages.setdefault(thread_id, [])
        next_seq = messages[-1].seq + 1 if messages else 1
        message = MessageRecord(
            id=new_id("msg"),
            thread_id=thread_id,
            role=role,
            content=text_content(content),
            created_at=now_ts(),
            seq=next_seq,
            metadata=dict(metadata or {}),
        )
        messages.append(message)
        await self._persistence.save_message(thread_id, message.to_dict())
        return message

    def get_message(self, thread_id: str, message_id: str) -> MessageRecord:
        self.get_thread(thread_id)
        for message in self._messages.get(thread_id, []):
            if message.id == message_id:
                return message
        raise NotFoundError(f"Message {message_id} not found in thread {thread_id}")

    async def update_message_metadata(
        self, thread_id: str, message_id: str, patch: Optional[dict[str, Any]]
    ) -> MessageRecord:
        message = self.get_message(thread_id, message_id)
        message.metadata = {**message.metadata, **(patch or {})}
        await self._persistence.save_message(thread_id, message.to_dict())
        return message

    def messages_snapshot(self, thread_id: str) -> list[MessageRecord]:
        """Messages of a thread in append order, as a detached list."""
        self.get_thread(thread_id)
        return list(self._messages.get(thread_id, []))

    def list_messages(
        self,
        thread_id: str,
        *,
        order: str = "desc",
        limit: Optional[int] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> Page:
        self.get_thread(thread_id)
        return paginate(
            self._messages.get(thread_id, []),
            key=lambda message: (message.created_at, message.seq),
            order=order,
            limit=limit,
            after=after,
            before=before,
        )

    # Runs

    async def save_run(self, run: RunRecord) -> RunRecord:
        self.get_thread(run.thread_id)
        self._runs.setdefault(run.thread_id, {})[run.id] = run
        await self._persistence.save_run(run.thread_id, run.to_dict())
        return run

    def get_run(self, thread_id: str, run_id: str) -> RunRecord:
        self.get_thread(thread_id)
        run = self._runs.get(thread_id, {}).get(run_id)
        if run is None:
            raise NotFoundError(f"Run {run_id} not found in thread {thread_id}")
        return run

    def list_runs(
        self,
        thread_id: str,
        *,
        order: str = "desc",
        limit: Optional[int] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> Page:
        self.get_thread(thread_id)
        runs = list(self._runs.get(thread_id, {}).values())
        return paginate(
            runs,
            key=lambda run: run.created_at,
            order=order,
            limit=limit,
            after=after,
            before=before,
        )


def paginate(
    items: list[Any],
    *,
    key,
    order: str = "desc",
    limit: Optional[int] = None,
    after: Optional[str] = None,
    before: Optional[str] = None,
) -> Page:
    """Sort ``items`` and cut one page out of them.

    ``after``/``before`` are item ids resolved against the sorted sequence; an
    id that is not present is ignored.
    """
    if order not in ("asc", "desc"):
        raise ValidationError(f"order must be 'asc' or 'desc', got {order!r}")
    page_size = DEFAULT_PAGE_SIZE if limit is None else limit
    if page_size < 1:
        raise ValidationError("limit must be at least 1")

    # Insertion position breaks ties between items created in the same second.
    ranked = sorted(enumerate(items), key=lambda pair: (key(pair[1]), pair[0]), reverse=order == "desc")
    ordered = [item for _, item in ranked]
    ids = [item.id for item in ordered]
    if after is not None and after in ids:
        ordered = ordered[ids.index(after) + 1 :]
        ids = [item.id for item in ordered]
    if before is not None and before in ids:
        ordered = ordered[: ids.index(before)]

    return Page(data=ordered[:page_size], has_more=len(ordered) > page_size)
