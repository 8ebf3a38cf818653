from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Coroutine, Iterable, Optional

from assistant_bridge.config.configuration import BridgeConfiguration
from assistant_bridge.errors import (
    BridgeError,
    ExecutionError,
    InvalidStateError,
    TransportError,
    ValidationError,
)
from assistant_bridge.llms.backend import CompletionBackend, CompletionResult
from assistant_bridge.storage.models import MessageRecord, Page, RunRecord, new_id, now_ts
from assistant_bridge.storage.store import ThreadStore

from .detector import FunctionCallDetector
from .executor import CapabilityExecutor, execute_function_calls, format_function_results
from .states import CANCELLABLE_STATUSES, RunStatus, check_transition
from .tokens import add_usage, normalize_usage

logger = logging.getLogger(__name__)

# A run may spawn one follow-up run; follow-ups never spawn another.
MAX_FOLLOW_UP_DEPTH = 1

ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "System"}

_TIMESTAMP_FIELDS = {
    RunStatus.IN_PROGRESS: "started_at",
    RunStatus.COMPLETED: "completed_at",
    RunStatus.CANCELLED: "cancelled_at",
    RunStatus.FAILED: "failed_at",
}
_PROVENANCE_KEYS = ("knowledge_source_id", "knowledge_sources", "source")


def build_prompt(
    messages: Iterable[MessageRecord],
    *,
    window: int,
    instructions: Optional[str] = None,
) -> str:
    """Render the last ``window`` messages, oldest first, as a single prompt."""
    recent = list(messages)[-window:]
    lines = [f"{ROLE_LABELS.get(message.role, message.role.title())}: {message.text}" for message in recent]
    sections: list[str] = []
    if instructions:
        sections.append(instructions.strip())
    sections.append("\n".join(lines))
    return "\n\n".join(sections) + f"\n{ROLE_LABELS['assistant']}:"


def coerce_completion(value: Any) -> CompletionResult:
    """Accept a ``CompletionResult``, a bare string, or a provider JSON body."""
    if isinstance(value, CompletionResult):
        return value
    if isinstance(value, str):
        return CompletionResult(text=value, raw={"message": value})
    if isinstance(value, dict):
        text = value.get("text") or value.get("message") or value.get("response")
        if text is None and value.get("content") is not None:
            content = value["content"]
            text = content if isinstance(content, str) else json.dumps(content)
        if text is None:
            text = json.dumps(value, default=str)
        return CompletionResult(
            text=str(text),
            stop_reason=value.get("stop_reason") or value.get("stopReason"),
            usage=value.get("usage") or value.get("tokens"),
            raw=value,
        )
    raise TransportError(f"Backend returned an unsupported response type {type(value).__name__}")


def _jsonable(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


class RunEngine:
    """Emulates asynchronous assistant runs on top of a stateless backend.

    ``create`` returns a queued run immediately; the run is then driven by a
    background task: build a prompt from the thread history, call the backend
    once, execute any function calls found in the reply, feed successful
    results back through at most one follow-up run, and append the assistant
    reply. Failures during that drive are recorded on the run and never
    raised to a caller.
    """

    def __init__(
        self,
        store: ThreadStore,
        backend: CompletionBackend,
        capability: Optional[CapabilityExecutor] = None,
        *,
        config: Optional[BridgeConfiguration] = None,
        detector: Optional[FunctionCallDetector] = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self._capability = capability
        self._config = config or BridgeConfiguration()
        self._detector = detector or FunctionCallDetector()
        self._tasks: set[asyncio.Task] = set()

    @property
    def function_calling_enabled(self) -> bool:
        return self._config.enable_function_calling and self._capability is not None

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
        messages = self._store.messages_snapshot(thread_id)
        if not assistant_id:
            raise ValidationError("assistant_id is required")
        if not any(message.role == "user" for message in messages):
            raise ValidationError("no user message to respond to")
        if stream:
            logger.debug("Streaming requested for thread %s; runs always resolve to one completed turn", thread_id)

        run = self._new_run(
            thread_id,
            assistant_id=assistant_id,
            model=model,
            instructions=instructions,
            tools=tools,
            metadata=metadata,
        )
        await self._store.save_run(run)
        self._schedule(self._drive(run, depth=0))
        logger.info("Queued run %s on thread %s for assistant %s", run.id, thread_id, assistant_id)
        return run

    def retrieve(self, thread_id: str, run_id: str) -> RunRecord:
        return self._store.get_run(thread_id, run_id)

    def list_runs(
        self,
        thread_id: str,
        *,
        limit: Optional[int] = None,
        order: str = "desc",
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> Page:
        return self._store.list_runs(thread_id, limit=limit, order=order, after=after, before=before)

    async def cancel(self, thread_id: str, run_id: str) -> RunRecord:
        run = self._store.get_run(thread_id, run_id)
        if RunStatus(run.status) not in CANCELLABLE_STATUSES:
            raise InvalidStateError(f"Run {run_id} cannot be cancelled (status: {run.status})")
        if run.status == RunStatus.CANCELLING.value:
            return run

        if run.status == RunStatus.QUEUED.value:
            self._set_status(run, RunStatus.IN_PROGRESS)
        self._set_status(run, RunStatus.CANCELLING)
        await self._store.save_run(run)
        self._schedule(self._finish_cancel(run))
        logger.info("Cancelling run %s", run.id)
        return run

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, tool_outputs: Optional[list[dict[str, Any]]]
    ) -> RunRecord:
        run = self._store.get_run(thread_id, run_id)
        if run.status != RunStatus.REQUIRES_ACTION.value:
            raise InvalidStateError(f"Run {run_id} does not require action (status: {run.status})")
        outputs = list(tool_outputs or [])
        for item in outputs:
            if not isinstance(item, dict) or "output" not in item:
                raise ValidationError("each tool output needs an 'output' field")

        self._set_status(run, RunStatus.IN_PROGRESS)
        run.required_action = None
        run.metadata = {**run.metadata, "tool_outputs": outputs}
        await self._store.save_run(run)
        self._schedule(self._finish_submission(run))
        return run

    async def wait_for_pending(self) -> None:
        """Wait until every scheduled run driver has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _new_run(self, thread_id: str, *, assistant_id: str, model, instructions, tools, metadata) -> RunRecord:
        return RunRecord(
            id=new_id("run"),
            thread_id=thread_id,
            assistant_id=assistant_id,
            created_at=now_ts(),
            model=model,
            instructions=instructions,
            tools=list(tools or []),
            metadata=dict(metadata or {}),
        )

    @staticmethod
    def _set_status(run: RunRecord, status: RunStatus) -> None:
        check_transition(run.status, status.value)
        run.status = status.value
        stamp = _TIMESTAMP_FIELDS.get(status)
        if stamp is not None:
            setattr(run, stamp, now_ts())

    @staticmethod
    def _is_cancelling(run: RunRecord) -> bool:
        return run.status in (RunStatus.CANCELLING.value, RunStatus.CANCELLED.value)

    async def _drive(self, run: RunRecord, depth: int) -> None:
        try:
            await self._execute(run, depth)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - failures are recorded on the run, never raised
            logger.exception("Run %s failed", run.id)
            await self._record_failure(run, exc)

    async def _execute(self, run: RunRecord, depth: int) -> None:
        if run.status != RunStatus.QUEUED.value:
            logger.info("Run %s left the queue as %s before starting", run.id, run.status)
            return

        self._set_status(run, RunStatus.IN_PROGRESS)
        # The prompt only sees messages that exist when the run starts.
        history = self._store.messages_snapshot(run.thread_id)
        await self._store.save_run(run)

        prompt = build_prompt(history, window=self._config.history_window, instructions=run.instructions)
        result = await self._call_backend(prompt)
        if self._is_cancelling(run):
            logger.info("Run %s was cancelled during the backend call; discarding reply", run.id)
            return

        run.usage = normalize_usage(result.usage)

        if depth < MAX_FOLLOW_UP_DEPTH and self.function_calling_enabled:
            if await self._resolve_function_calls(run, result, depth):
                return

        await self._store.append_message(
            run.thread_id,
            role="assistant",
            content=result.text,
            metadata=self._reply_metadata(run, result),
        )
        await self._complete(run)

    async def _resolve_function_calls(self, run: RunRecord, result: CompletionResult, depth: int) -> bool:
        """Execute detected calls and chain a follow-up run.

        Returns True when a follow-up run produced the final reply.
        """
        calls = self._detector.detect(result.text)
        if not calls:
            return False
        logger.info("Run %s: detected %d function call(s)", run.id, len(calls))

        results = await execute_function_calls(calls, self._capability)
        if not any(item.success for item in results):
            return False
        if self._is_cancelling(run):
            logger.info("Run %s was cancelled; skipping follow-up", run.id)
            return True

        await self._store.append_message(
            run.thread_id,
            role="user",
            content=format_function_results(results),
            metadata={
                "run_id": run.id,
                "function_results": [asdict(item) for item in results],
            },
        )
        follow_up = self._new_run(
            run.thread_id,
            assistant_id=run.assistant_id,
            model=run.model,
            instructions=run.instructions,
            tools=run.tools,
            metadata={**run.metadata, "parent_run_id": run.id},
        )
        await self._store.save_run(follow_up)
        run.metadata = {**run.metadata, "follow_up_run_id": follow_up.id}
        logger.info("Run %s: feeding %d result(s) back through run %s", run.id, len(results), follow_up.id)

        await self._drive(follow_up, depth + 1)

        if self._is_cancelling(run):
            return True
        if follow_up.status != RunStatus.COMPLETED.value:
            reason = (follow_up.last_error or {}).get("message") or follow_up.status
            raise ExecutionError(f"Follow-up run {follow_up.id} did not complete: {reason}")

        run.usage = add_usage(run.usage, follow_up.usage)
        await self._complete(run)
        return True

    async def _call_backend(self, prompt: str) -> CompletionResult:
        timeout = self._config.backend_timeout
        try:
            if timeout is None:
                response = await self._backend.complete(prompt)
            else:
                response = await asyncio.wait_for(self._backend.complete(prompt), timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Backend call timed out after {timeout}s") from exc
        except BridgeError:
            raise
        except Exception as exc:  # noqa: BLE001 - normalise provider errors
            raise TransportError(f"Backend call failed: {exc}") from exc
        return coerce_completion(response)

    def _reply_metadata(self, run: RunRecord, result: CompletionResult) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "run_id": run.id,
            "assistant_id": run.assistant_id,
            "stop_reason": result.stop_reason,
            "tokens": result.usage,
            "raw_response": result.raw,
        }
        if run.metadata.get("parent_run_id"):
            metadata["parent_run_id"] = run.metadata["parent_run_id"]
        for key in _PROVENANCE_KEYS:
            if isinstance(result.raw, dict) and result.raw.get(key) is not None:
                metadata[key] = result.raw[key]
        return _jsonable(metadata)

    async def _complete(self, run: RunRecord) -> None:
        self._set_status(run, RunStatus.COMPLETED)
        await self._store.save_run(run)
        logger.info("Run %s completed (%s tokens)", run.id, (run.usage or {}).get("total_tokens", 0))

    async def _record_failure(self, run: RunRecord, exc: Exception) -> None:
        if run.status == RunStatus.QUEUED.value:
            self._set_status(run, RunStatus.IN_PROGRESS)
        if run.status != RunStatus.IN_PROGRESS.value:
            logger.info("Not recording failure on run %s in status %s", run.id, run.status)
            return
        self._set_status(run, RunStatus.FAILED)
        run.last_error = {
            "code": ExecutionError.code,
            "message": str(exc) or exc.__class__.__name__,
        }
        if not self._store.has_thread(run.thread_id):
            logger.warning("Thread %s vanished while run %s was in flight", run.thread_id, run.id)
            return
        try:
            await self._store.save_run(run)
        except Exception:  # noqa: BLE001 - nothing left to report the failure to
            logger.exception("Could not persist failure of run %s", run.id)

    async def _finish_cancel(self, run: RunRecord) -> None:
        await asyncio.sleep(self._config.cancel_delay)
        if run.status != RunStatus.CANCELLING.value:
            return
        self._set_status(run, RunStatus.CANCELLED)
        if self._store.has_thread(run.thread_id):
            await self._store.save_run(run)
        logger.info("Run %s cancelled", run.id)

    async def _finish_submission(self, run: RunRecord) -> None:
        await asyncio.sleep(self._config.submit_delay)
        if run.status != RunStatus.IN_PROGRESS.value:
            return
        self._set_status(run, RunStatus.COMPLETED)
        if self._store.has_thread(run.thread_id):
            await self._store.save_run(run)
