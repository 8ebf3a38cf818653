from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class TextValue(BaseModel):
    value: str
    annotations: list[Any] = Field(default_factory=list)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: TextValue


class ThreadObject(BaseModel):
    id: str
    object: Literal["thread"] = "thread"
    created_at: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageObject(BaseModel):
    id: str
    object: Literal["thread.message"] = "thread.message"
    created_at: int
    thread_id: str
    role: str
    content: list[TextContent]
    metadata: dict[str, Any] = Field(default_factory=dict)


class RunError(BaseModel):
    code: str
    message: str


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class RunObject(BaseModel):
    id: str
    object: Literal["thread.run"] = "thread.run"
    created_at: int
    thread_id: str
    assistant_id: str
    status: str
    model: Optional[str] = None
    instructions: Optional[str] = None
    tools: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    usage: Optional[Usage] = None
    last_error: Optional[RunError] = None
    required_action: Optional[dict[str, Any]] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    failed_at: Optional[int] = None


class AssistantObject(BaseModel):
    id: str
    object: Literal["assistant"] = "assistant"
    name: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    model: Optional[str] = None


class MessageListResponse(BaseModel):
    object: Literal["list"] = "list"
    data: list[MessageObject]
    first_id: Optional[str] = None
    last_id: Optional[str] = None
    has_more: bool


class RunListResponse(BaseModel):
    object: Literal["list"] = "list"
    data: list[RunObject]
    first_id: Optional[str] = None
    last_id: Optional[str] = None
    has_more: bool


class AssistantListResponse(BaseModel):
    object: Literal["list"] = "list"
    data: list[AssistantObject]
    has_more: bool = False


class MessageCreateRequest(BaseModel):
    role: Literal["user", "assistant", "system"] = "user"
    content: str
    metadata: Optional[dict[str, Any]] = None


class ThreadCreateRequest(BaseModel):
    metadata: Optional[dict[str, Any]] = None
    messages: list[MessageCreateRequest] = Field(
        default_factory=list,
        description="Optional messages to seed the thread with.",
    )


class MetadataUpdateRequest(BaseModel):
    metadata: dict[str, Any] = Field(default_factory=dict)


class RunCreateRequest(BaseModel):
    assistant_id: str = Field(description="Identifier of the agent that should answer.")
    model: Optional[str] = None
    instructions: Optional[str] = None
    tools: Optional[list[dict[str, Any]]] = None
    metadata: Optional[dict[str, Any]] = None
    stream: bool = False

    @field_validator("assistant_id")
    @classmethod
    def validate_assistant_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("assistant_id must not be empty")
        return value


class ToolOutput(BaseModel):
    tool_call_id: Optional[str] = None
    output: str


class SubmitToolOutputsRequest(BaseModel):
    tool_outputs: list[ToolOutput]


class DeleteResponse(BaseModel):
    id: str
    object: Literal["thread.deleted"] = "thread.deleted"
    deleted: bool
