from types import SimpleNamespace

import pytest

from assistant_bridge.runs.tokens import add_usage, normalize_usage


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"input": 12, "output": 30}, (12, 30)),
        ({"user": 7, "enrichment": None, "output": 3}, (7, 3)),
        ({"prompt_tokens": 5, "completion_tokens": 6, "total_tokens": 999}, (5, 6)),
        ({"input_tokens": 4, "output_tokens": 2, "total_tokens": 6}, (4, 2)),
        ({"input": None, "output": "many"}, (0, 0)),
        ({}, (0, 0)),
        (None, (0, 0)),
    ],
)
def test_normalize_usage(raw, expected):
    usage = normalize_usage(raw)

    assert (usage["prompt_tokens"], usage["completion_tokens"]) == expected
    assert usage["total_tokens"] == usage["prompt_tokens"] + usage["completion_tokens"]


def test_normalize_usage_reads_attributes():
    usage = normalize_usage(SimpleNamespace(prompt_tokens=3, completion_tokens=4))

    assert usage == {"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7}


def test_add_usage_sums_and_recomputes_total():
    total = add_usage(
        {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 100},
        None,
    )

    assert total == {"prompt_tokens": 11, "completion_tokens": 7, "total_tokens": 18}
