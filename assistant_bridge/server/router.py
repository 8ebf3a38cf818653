from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from assistant_bridge.client import AssistantBridge
from assistant_bridge.config.agents import AgentProfile
from assistant_bridge.storage.models import MessageRecord, Page, RunRecord, ThreadRecord
from assistant_bridge.storage.store import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

from .dependencies import get_bridge
from .schemas import (
    AssistantListResponse,
    AssistantObject,
    DeleteResponse,
    MessageCreateRequest,
    MessageListResponse,
    MessageObject,
    MetadataUpdateRequest,
    RunCreateRequest,
    RunListResponse,
    RunObject,
    SubmitToolOutputsRequest,
    ThreadCreateRequest,
    ThreadObject,
)

router = APIRouter(prefix="/v1/threads", tags=["threads"])
assistants_router = APIRouter(prefix="/v1/assistants", tags=["assistants"])

Order = Literal["asc", "desc"]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ThreadObject)
async def create_thread(
    payload: ThreadCreateRequest,
    bridge: AssistantBridge = Depends(get_bridge),
) -> ThreadObject:
    thread = await bridge.threads.create(
        metadata=payload.metadata,
        messages=[message.model_dump() for message in payload.messages],
    )
    return _to_thread(thread)


@router.get("/{thread_id}", response_model=ThreadObject)
async def retrieve_thread(
    thread_id: str,
    bridge: AssistantBridge = Depends(get_bridge),
) -> ThreadObject:
    return _to_thread(await bridge.threads.retrieve(thread_id))


@router.post("/{thread_id}", response_model=ThreadObject)
async def update_thread(
    thread_id: str,
    payload: MetadataUpdateRequest,
    bridge: AssistantBridge = Depends(get_bridge),
) -> ThreadObject:
    return _to_thread(await bridge.threads.update(thread_id, payload.metadata))


@router.delete("/{thread_id}", response_model=DeleteResponse)
async def delete_thread(
    thread_id: str,
    bridge: AssistantBridge = Depends(get_bridge),
) -> DeleteResponse:
    return DeleteResponse(**await bridge.threads.delete(thread_id))


@router.post("/{thread_id}/messages", status_code=status.HTTP_201_CREATED, response_model=MessageObject)
async def create_message(
    thread_id: str,
    payload: MessageCreateRequest,
    bridge: AssistantBridge = Depends(get_bridge),
) -> MessageObject:
    message = await bridge.threads.messages.create(
        thread_id,
        role=payload.role,
        content=payload.content,
        metadata=payload.metadata,
    )
    return _to_message(message)


@router.get("/{thread_id}/messages", response_model=MessageListResponse)
async def list_messages(
    thread_id: str,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    order: Order = Query(default="desc"),
    after: Optional[str] = Query(default=None, description="Return messages after this message id."),
    before: Optional[str] = Query(default=None, description="Return messages before this message id."),
    bridge: AssistantBridge = Depends(get_bridge),
) -> MessageListResponse:
    page = await bridge.threads.messages.list(thread_id, order=order, limit=limit, after=after, before=before)
    return MessageListResponse(data=[_to_message(message) for message in page.data], **_page_bounds(page))


@router.get("/{thread_id}/messages/{message_id}", response_model=MessageObject)
async def retrieve_message(
    thread_id: str,
    message_id: str,
    bridge: AssistantBridge = Depends(get_bridge),
) -> MessageObject:
    return _to_message(await bridge.threads.messages.retrieve(thread_id, message_id))


@router.post("/{thread_id}/messages/{message_id}", response_model=MessageObject)
async def update_message(
    thread_id: str,
    message_id: str,
    payload: MetadataUpdateRequest,
    bridge: AssistantBridge = Depends(get_bridge),
) -> MessageObject:
    return _to_message(await bridge.threads.messages.update(thread_id, message_id, payload.metadata))


@router.post("/{thread_id}/runs", status_code=status.HTTP_201_CREATED, response_model=RunObject)
async def create_run(
    thread_id: str,
    payload: RunCreateRequest,
    bridge: AssistantBridge = Depends(get_bridge),
) -> RunObject:
    run = await bridge.threads.runs.create(
        thread_id,
        assistant_id=payload.assistant_id,
        model=payload.model,
        instructions=payload.instructions,
        tools=payload.tools,
        metadata=payload.metadata,
        stream=payload.stream,
    )
    return _to_run(run)


@router.get("/{thread_id}/runs", response_model=RunListResponse)
async def list_runs(
    thread_id: str,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    order: Order = Query(default="desc"),
    after: Optional[str] = Query(default=None),
    before: Optional[str] = Query(default=None),
    bridge: AssistantBridge = Depends(get_bridge),
) -> RunListResponse:
    page = await bridge.threads.runs.list(thread_id, limit=limit, order=order, after=after, before=before)
    return RunListResponse(data=[_to_run(run) for run in page.data], **_page_bounds(page))


@router.get("/{thread_id}/runs/{run_id}", response_model=RunObject)
async def retrieve_run(
    thread_id: str,
    run_id: str,
    bridge: AssistantBridge = Depends(get_bridge),
) -> RunObject:
    return _to_run(await bridge.threads.runs.retrieve(thread_id, run_id))


@router.post("/{thread_id}/runs/{run_id}/cancel", response_model=RunObject)
async def cancel_run(
    thread_id: str,
    run_id: str,
    bridge: AssistantBridge = Depends(get_bridge),
) -> RunObject:
    return _to_run(await bridge.threads.runs.cancel(thread_id, run_id))


@router.post("/{thread_id}/runs/{run_id}/submit_tool_outputs", response_model=RunObject)
async def submit_tool_outputs(
    thread_id: str,
    run_id: str,
    payload: SubmitToolOutputsRequest,
    bridge: AssistantBridge = Depends(get_bridge),
) -> RunObject:
    outputs = [output.model_dump() for output in payload.tool_outputs]
    return _to_run(await bridge.threads.runs.submit_tool_outputs(thread_id, run_id, outputs))


@assistants_router.get("", response_model=AssistantListResponse)
async def list_assistants(bridge: AssistantBridge = Depends(get_bridge)) -> AssistantListResponse:
    profiles = await bridge.assistants.list()
    return AssistantListResponse(data=[_to_assistant(profile) for profile in profiles])


@assistants_router.get("/{assistant_id}", response_model=AssistantObject)
async def retrieve_assistant(
    assistant_id: str,
    bridge: AssistantBridge = Depends(get_bridge),
) -> AssistantObject:
    return _to_assistant(await bridge.assistants.retrieve(assistant_id))


def _page_bounds(page: Page) -> dict:
    return {"first_id": page.first_id, "last_id": page.last_id, "has_more": page.has_more}


def _to_thread(record: ThreadRecord) -> ThreadObject:
    return ThreadObject(id=record.id, created_at=record.created_at, metadata=record.metadata)


def _to_message(record: MessageRecord) -> MessageObject:
    return MessageObject(
        id=record.id,
        created_at=record.created_at,
        thread_id=record.thread_id,
        role=record.role,
        content=record.content,
        metadata=record.metadata,
    )


def _to_run(record: RunRecord) -> RunObject:
    data = record.to_dict()
    data.pop("object", None)
    return RunObject(**data)


def _to_assistant(profile: AgentProfile) -> AssistantObject:
    return AssistantObject(**profile.to_dict())
