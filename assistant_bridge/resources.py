from __future__ import annotations

import asyncio
import copy
import time
from typing import Any, Optional

from .config.agents import AgentDirectory, AgentProfile
from .errors import ValidationError
from .runs.engine import RunEngine
from .runs.states import is_terminal
from .storage.models import MESSAGE_ROLES, MessageRecord, Page, RunRecord, ThreadRecord
from .storage.store import ThreadStore


def _detached(page: Page) -> Page:
    return Page(data=copy.deepcopy(page.data), has_more=page.has_more)


class Messages:
    def __init__(self, store: ThreadStore) -> None:
        self._store = store

    async def create(
        self,
        thread_id: str,
        *,
        role: str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> MessageRecord:
        message = await self._store.append_message(thread_id, role=role, content=content, metadata=metadata)
        return copy.deepcopy(message)

    async def list(
        self,
        thread_id: str,
        *,
        order: str = "desc",
        limit: Optional[int] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> Page:
        page = self._store.list_messages(thread_id, order=order, limit=limit, after=after, before=before)
        return _detached(page)

    async def retrieve(self, thread_id: str, message_id: str) -> MessageRecord:
        return copy.deepcopy(self._store.get_message(thread_id, message_id))

    async def update(self, thread_id: str, message_id: str, metadata: Optional[dict[str, Any]]) -> MessageRecord:
        message = await self._store.update_message_metadata(thread_id, message_id, metadata)
        return copy.deepcopy(message)


class Runs:
    def __init__(self, engine: RunEngine) -> None:
        self._engine = engine

    async def create(
        self,
        thread_id: str,
        *,
        assistant_id: str,
        model: Optional[str] = None,
        instructions: Optional[str] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        metadata: Optional[dict[str, Any]] = None,
        stream: bool = False,
    ) -> RunRecord:
        run = await self._engine.create(
            thread_id,
            assistant_id=assistant_id,
            model=model,
            instructions=instructions,
            tools=tools,
            metadata=metadata,
            stream=stream,
        )
        return copy.deepcopy(run)

    async def retrieve(self, thread_id: str, run_id: str) -> RunRecord:
        return copy.deepcopy(self._engine.retrieve(thread_id, run_id))

    async def list(
        self,
        thread_id: str,
        *,
        limit: Optional[int] = None,
        order: str = "desc",
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> Page:
        return _detached(self._engine.list_runs(thread_id, limit=limit, order=order, after=after, before=before))

    async def cancel(self, thread_id: str, run_id: str) -> RunRecord:
        return copy.deepcopy(await self._engine.cancel(thread_id, run_id))

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, tool_outputs: Optional[list[dict[str, Any]]]
    ) -> RunRecord:
        return copy.deepcopy(await self._engine.submit_tool_outputs(thread_id, run_id, tool_outputs))

    async def poll(
        self,
        thread_id: str,
        run_id: str,
        *,
        interval: float = 0.05,
        timeout: Optional[float] = 60.0,
    ) -> RunRecord:
        """Retrieve the run until it reaches a terminal status."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            run = await self.retrieve(thread_id, run_id)
            if is_terminal(run.status):
                return run
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"Run {run_id} still {run.status} after {timeout}s")
            await asyncio.sleep(interval)


class Threads:
    def __init__(self, store: ThreadStore, engine: RunEngine) -> None:
        self._store = store
        self.messages = Messages(store)
        self.runs = Runs(engine)

    async def create(
        self,
        metadata: Optional[dict[str, Any]] = None,
        messages: Optional[list[dict[str, Any]]] = None,
    ) -> ThreadRecord:
        for item in messages or []:
            if not isinstance(item, dict) or item.get("role") not in MESSAGE_ROLES:
                raise ValidationError("initial messages need a valid 'role'")
            if not isinstance(item.get("content"), str):
                raise ValidationError("initial message content must be a string")
        thread = await self._store.create_thread(metadata)
        for item in messages or []:
            await self.messages.create(
                thread.id,
                role=item["role"],
                content=item["content"],
                metadata=item.get("metadata"),
            )
        return copy.deepcopy(thread)

    async def retrieve(self, thread_id: str) -> ThreadRecord:
        return copy.deepcopy(self._store.get_thread(thread_id))

    async def update(self, thread_id: str, metadata: Optional[dict[str, Any]] = None) -> ThreadRecord:
        return copy.deepcopy(await self._store.update_thread_metadata(thread_id, metadata))

    async def delete(self, thread_id: str) -> dict[str, Any]:
        await self._store.delete_thread(thread_id)
        return {"id": thread_id, "object": "thread.deleted", "deleted": True}


class Assistants:
    """Read-only view over the agent directory."""

    def __init__(self, directory: AgentDirectory) -> None:
        self._directory = directory

    async def list(self) -> list[AgentProfile]:
        return self._directory.list()

    async def retrieve(self, assistant_id: str) -> AgentProfile:
        return self._directory.get(assistant_id) or AgentProfile(id=assistant_id)
