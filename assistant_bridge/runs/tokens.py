from __future__ import annotations

from typing import Any, Mapping, Optional

_PROMPT_KEYS = ("input", "user", "prompt_tokens", "input_tokens")
_COMPLETION_KEYS = ("output", "completion_tokens", "output_tokens")


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and value > 0:
        return int(value)
    return 0


def _first_count(usage: Mapping[str, Any], keys: tuple[str, ...]) -> int:
    for key in keys:
        count = _count(usage.get(key))
        if count:
            return count
    return 0


def normalize_usage(provider_usage: Optional[Any]) -> dict[str, int]:
    """Convert a provider usage object to ``prompt/completion/total`` counters.

    Missing or non-numeric fields count as zero and ``total_tokens`` is always
    recomputed, so ``total == prompt + completion`` holds for any input.
    """
    if provider_usage is None:
        usage: Mapping[str, Any] = {}
    elif isinstance(provider_usage, Mapping):
        usage = provider_usage
    else:
        usage = {key: getattr(provider_usage, key, None) for key in _PROMPT_KEYS + _COMPLETION_KEYS}

    prompt = _first_count(usage, _PROMPT_KEYS)
    completion = _first_count(usage, _COMPLETION_KEYS)
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
    }


def add_usage(*usages: Optional[Mapping[str, int]]) -> dict[str, int]:
    prompt = sum(_count((usage or {}).get("prompt_tokens")) for usage in usages)
    completion = sum(_count((usage or {}).get("completion_tokens")) for usage in usages)
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
    }
