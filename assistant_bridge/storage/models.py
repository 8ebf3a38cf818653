from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional
from uuid import uuid4

MESSAGE_ROLES = ("user", "assistant", "system")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


def now_ts() -> int:
    return int(time.time())


@dataclass(slots=True)
class ThreadRecord:
    id: str
    created_at: int
    metadata: dict[str, Any] = field(default_factory=dict)
    object: str = "thread"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThreadRecord":
        return cls(
            id=data["id"],
            created_at=int(data.get("created_at") or 0),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(slots=True)
class MessageRecord:
    id: str
    thread_id: str
    role: str
    content: list[dict[str, Any]]
    created_at: int
    seq: int
    metadata: dict[str, Any] = field(default_factory=dict)
    object: str = "thread.message"

    @property
    def text(self) -> str:
        for part in self.content:
            if part.get("type") == "text":
                return part.get("text", {}).get("value", "")
        return ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageRecord":
        return cls(
            id=data["id"],
            thread_id=data["thread_id"],
            role=data["role"],
            content=list(data.get("content") or []),
            created_at=int(data.get("created_at") or 0),
            seq=int(data.get("seq") or 0),
            metadata=dict(data.get("metadata") or {}),
        )


def text_content(value: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"value": value, "annotations": []}}]


@dataclass(slots=True)
class RunRecord:
    id: str
    thread_id: str
    assistant_id: str
    created_at: int
    status: str = "queued"
    model: Optional[str] = None
    instructions: Optional[str] = None
    tools: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    usage: Optional[dict[str, int]] = None
    last_error: Optional[dict[str, str]] = None
    required_action: Optional[dict[str, Any]] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    failed_at: Optional[int] = None
    object: str = "thread.run"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunRecord":
        return cls(
            id=data["id"],
            thread_id=data["thread_id"],
            assistant_id=data.get("assistant_id") or "",
            created_at=int(data.get("created_at") or 0),
            status=data.get("status") or "queued",
            model=data.get("model"),
            instructions=data.get("instructions"),
            tools=list(data.get("tools") or []),
            metadata=dict(data.get("metadata") or {}),
            usage=data.get("usage"),
            last_error=data.get("last_error"),
            required_action=data.get("required_action"),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            cancelled_at=data.get("cancelled_at"),
            failed_at=data.get("failed_at"),
        )


@dataclass(slots=True)
class Page:
    data: list[Any]
    has_more: bool
    object: str = "list"

    @property
    def first_id(self) -> Optional[str]:
        return self.data[0].id if self.data else None

    @property
    def last_id(self) -> Optional[str]:
        return self.data[-1].id if self.data else None
