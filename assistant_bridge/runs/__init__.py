"""Run emulation: state machine, function-call detection and execution."""

from .detector import DetectedFunctionCall, FunctionCallDetector, Recognizer, detect_function_calls
from .engine import RunEngine
from .executor import (
    CapabilityExecutor,
    FunctionExecutionResult,
    execute_function_calls,
    format_function_results,
)
from .states import RunStatus
from .tokens import normalize_usage

__all__ = [
    "CapabilityExecutor",
    "DetectedFunctionCall",
    "FunctionCallDetector",
    "FunctionExecutionResult",
    "Recognizer",
    "RunEngine",
    "RunStatus",
    "detect_function_calls",
    "execute_function_calls",
    "format_function_results",
    "normalize_usage",
]
