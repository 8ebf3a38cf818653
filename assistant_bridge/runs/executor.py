from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Protocol, Union, runtime_checkable

from .detector import DetectedFunctionCall

logger = logging.getLogger(__name__)

FAILURE_MARKER = "Error:"
RESULT_PREVIEW_LIMIT = 1000


@dataclass(frozen=True)
class FunctionExecutionResult:
    name: str
    result: str
    success: bool


@runtime_checkable
class CapabilityExecutor(Protocol):
    """Performs a named action requested by model output.

    Supplied by the hosting application. Returning text that starts with
    ``FAILURE_MARKER`` reports a failed call without raising.
    """

    async def execute(self, function_name: str, arguments: dict[str, Any]) -> str: ...


CapabilityCallable = Callable[[str, dict[str, Any]], Union[str, Awaitable[str]]]


class CallableCapability:
    """Adapts a plain (sync or async) function to ``CapabilityExecutor``."""

    def __init__(self, func: CapabilityCallable) -> None:
        self._func = func

    async def execute(self, function_name: str, arguments: dict[str, Any]) -> str:
        result = self._func(function_name, arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


def as_capability(capability: Union[CapabilityExecutor, CapabilityCallable, None]) -> CapabilityExecutor | None:
    if capability is None or isinstance(capability, CapabilityExecutor):
        return capability
    if callable(capability):
        return CallableCapability(capability)
    raise TypeError(f"Unsupported capability executor: {capability!r}")


async def execute_function_calls(
    calls: Iterable[DetectedFunctionCall],
    capability: CapabilityExecutor,
) -> list[FunctionExecutionResult]:
    """Run detected calls one after another, in detection order.

    A failing call is recorded and never stops the remaining calls.
    """
    results: list[FunctionExecutionResult] = []
    for call in calls:
        logger.info("Executing detected function %s", call.name)
        try:
            output = await capability.execute(call.name, dict(call.arguments))
        except Exception as exc:  # noqa: BLE001 - capability failures are per-call results
            logger.warning("Function %s raised: %s", call.name, exc)
            results.append(FunctionExecutionResult(name=call.name, result=f"{FAILURE_MARKER} {exc}", success=False))
            continue

        text = output if isinstance(output, str) else str(output)
        success = not text.startswith(FAILURE_MARKER)
        if not success:
            logger.warning("Function %s reported failure", call.name)
        results.append(FunctionExecutionResult(name=call.name, result=text, success=success))
    return results


def format_function_results(results: Iterable[FunctionExecutionResult]) -> str:
    """Render execution results as the text fed back to the model."""
    lines: list[str] = []
    for result in results:
        status = "ok" if result.success else "failed"
        body = result.result[:RESULT_PREVIEW_LIMIT]
        if len(result.result) > RESULT_PREVIEW_LIMIT:
            body += "...\n[result truncated]"
        lines.append(f"[{status}] {result.name}:\n{body}")
    if not lines:
        return ""
    return "Function results:\n\n" + "\n\n".join(lines)
