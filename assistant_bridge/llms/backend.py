from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage

from assistant_bridge.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CompletionResult:
    """One stateless completion returned by the language-model backend."""

    text: str
    stop_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    raw: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class CompletionBackend(Protocol):
    async def complete(self, prompt: str) -> CompletionResult: ...


class ChatModelBackend:
    """Drives a LangChain chat model as a single-prompt completion endpoint."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    async def complete(self, prompt: str) -> CompletionResult:
        try:
            message = await self._llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:  # noqa: BLE001 - every provider error is a transport failure here
            logger.warning("Chat model call failed: %s", exc)
            raise TransportError(f"Backend call failed: {exc}") from exc
        return _to_result(message)


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


def _to_result(message: BaseMessage) -> CompletionResult:
    response_metadata = dict(getattr(message, "response_metadata", None) or {})
    usage = getattr(message, "usage_metadata", None) or response_metadata.get("token_usage")
    stop_reason = response_metadata.get("finish_reason") or response_metadata.get("stop_reason")
    text = _message_text(message)
    return CompletionResult(
        text=text,
        stop_reason=stop_reason,
        usage=dict(usage) if usage else None,
        raw={
            "content": text,
            "response_metadata": response_metadata,
            "usage_metadata": dict(usage) if usage else None,
        },
    )
