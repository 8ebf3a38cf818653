import pytest

from assistant_bridge.errors import InvalidStateError
from assistant_bridge.runs.states import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, RunStatus, check_transition, is_terminal


def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert ALLOWED_TRANSITIONS[status] == frozenset()
        assert is_terminal(status.value)


def test_happy_path_transitions():
    assert check_transition("queued", "in_progress") is RunStatus.IN_PROGRESS
    assert check_transition("in_progress", "completed") is RunStatus.COMPLETED
    assert check_transition("in_progress", "cancelling") is RunStatus.CANCELLING
    assert check_transition("cancelling", "cancelled") is RunStatus.CANCELLED


@pytest.mark.parametrize(
    "current, target",
    [
        ("queued", "completed"),
        ("queued", "cancelling"),
        ("completed", "in_progress"),
        ("failed", "completed"),
        ("cancelling", "completed"),
        ("cancelled", "cancelling"),
    ],
)
def test_illegal_transitions_raise(current, target):
    with pytest.raises(InvalidStateError):
        check_transition(current, target)
