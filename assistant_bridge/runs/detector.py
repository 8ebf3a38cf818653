"""Recover structured function calls from free-form model output.

The backend has no native tool calling, so the model is asked to write calls
as plain text. Two families of shapes are understood:

* inline calls such as ``write_file path=a.txt content=...`` or
  ``read_file path=a.txt``, where a ``content`` body runs until the next call
  (or ``---``) at the start of a line, or the end of the text;
* an explicit envelope, ``[TOOL:name]{"json": "arguments"}[/TOOL]``.

Recognizers are tried in table order and every match of a recognizer is
reported before the next recognizer runs, so the result follows table order
rather than textual order.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8

_BODY_END = (
    r"(?=\n---|\nwrite_file|\nread_file|\nlist_directory|\nfind_file"
    r"|\nexecute_command|\n\[TOOL:|\Z)"
)
_OPENING_FENCE = re.compile(r"^```[\w+-]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\Z")
_CONTENT_PREFIX = re.compile(r"^content\s*=\s*", re.IGNORECASE)


@dataclass(frozen=True)
class DetectedFunctionCall:
    name: str
    arguments: dict[str, Any]
    confidence: float = DEFAULT_CONFIDENCE


@dataclass(frozen=True)
class Recognizer:
    """One (matcher, extractor) pair of the detection table.

    ``function_name`` is the fixed name reported for matches unless
    ``name_group`` points at the capture group holding the name.
    """

    function_name: str
    pattern: re.Pattern[str]
    extract: Callable[[re.Match[str]], dict[str, Any]]
    name_group: Optional[int] = None
    confidence: float = field(default=DEFAULT_CONFIDENCE)

    def calls(self, text: str) -> Iterable[DetectedFunctionCall]:
        for match in self.pattern.finditer(text):
            try:
                arguments = self.extract(match)
            except (ValueError, TypeError, IndexError) as exc:
                logger.warning("Could not extract arguments for %s: %s", self.function_name, exc)
                continue
            if not arguments:
                continue
            name = match.group(self.name_group) if self.name_group is not None else self.function_name
            logger.debug("Detected %s call at offset %d", name, match.start())
            yield DetectedFunctionCall(name=name, arguments=arguments, confidence=self.confidence)


def unwrap_body(raw: Optional[str]) -> str:
    """Strip surrounding blank lines and a fenced-code wrapper from a body."""
    body = (raw or "").strip()
    body = _OPENING_FENCE.sub("", body)
    body = _CLOSING_FENCE.sub("", body)
    return body.strip("\n")


def _inline_write(match: re.Match[str]) -> dict[str, Any]:
    return {"filePath": match.group(1).strip(), "content": unwrap_body(match.group(2))}


def _next_line_write(match: re.Match[str]) -> dict[str, Any]:
    body = _CONTENT_PREFIX.sub("", (match.group(2) or "").strip())
    return {"filePath": match.group(1).strip(), "content": unwrap_body(body)}


def _read_file(match: re.Match[str]) -> dict[str, Any]:
    return {"filePath": match.group(1).strip()}


def _list_directory(match: re.Match[str]) -> dict[str, Any]:
    return {"dirPath": match.group(1).strip()}


def _find_file(match: re.Match[str]) -> dict[str, Any]:
    start_dir = match.group(2)
    return {"fileName": match.group(1).strip(), "startDir": start_dir.strip() if start_dir else "."}


def _execute_command(match: re.Match[str]) -> dict[str, Any]:
    return {"command": match.group(1).strip()}


def _json_envelope(match: re.Match[str]) -> dict[str, Any]:
    try:
        arguments = json.loads(match.group(2).strip())
    except json.JSONDecodeError:
        return {}
    return arguments if isinstance(arguments, dict) else {}


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


DEFAULT_RECOGNIZERS: tuple[Recognizer, ...] = (
    Recognizer(
        "write_file",
        _compile(r"write_file\s+path\s*=\s*(\S+)[ \t]+content\s*=\s*([\s\S]*?)" + _BODY_END),
        _inline_write,
    ),
    Recognizer(
        "write_file",
        _compile(r"write_file\s+path\s*=\s*(\S+)[ \t]*\n([\s\S]*?)" + _BODY_END),
        _next_line_write,
    ),
    Recognizer("read_file", _compile(r"read_file\s+path\s*=\s*(\S+)"), _read_file),
    Recognizer("list_directory", _compile(r"list_directory\s+dirPath\s*=\s*(\S+)"), _list_directory),
    Recognizer(
        "find_file",
        _compile(r"find_file\s+fileName\s*=\s*(\S+)(?:\s+startDir\s*=\s*(\S+))?"),
        _find_file,
    ),
    Recognizer("execute_command", _compile(r"execute_command\s+command\s*=\s*([^\n]+)"), _execute_command),
    Recognizer(
        "json_tool",
        _compile(r"\[TOOL:(\w+)\]\s*([\s\S]*?)\s*\[/TOOL\]"),
        _json_envelope,
        name_group=1,
    ),
)


class FunctionCallDetector:
    """Applies an ordered recognizer table to model output."""

    def __init__(self, recognizers: Sequence[Recognizer] = DEFAULT_RECOGNIZERS) -> None:
        self._recognizers = tuple(recognizers)

    @property
    def recognizers(self) -> tuple[Recognizer, ...]:
        return self._recognizers

    def detect(self, text: Optional[str]) -> list[DetectedFunctionCall]:
        if not text:
            return []
        detected: list[DetectedFunctionCall] = []
        for recognizer in self._recognizers:
            detected.extend(recognizer.calls(text))
        return detected


_default_detector = FunctionCallDetector()


def detect_function_calls(text: Optional[str]) -> list[DetectedFunctionCall]:
    return _default_detector.detect(text)
