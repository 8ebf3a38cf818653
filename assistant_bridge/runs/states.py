from __future__ import annotations

from enum import Enum

from assistant_bridge.errors import InvalidStateError


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED})
CANCELLABLE_STATUSES = frozenset({RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.CANCELLING})

ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.QUEUED: frozenset({RunStatus.IN_PROGRESS}),
    RunStatus.IN_PROGRESS: frozenset(
        {RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLING, RunStatus.REQUIRES_ACTION}
    ),
    RunStatus.REQUIRES_ACTION: frozenset({RunStatus.IN_PROGRESS, RunStatus.CANCELLING}),
    RunStatus.CANCELLING: frozenset({RunStatus.CANCELLED}),
    RunStatus.CANCELLED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.COMPLETED: frozenset(),
}


def is_terminal(status: str) -> bool:
    return RunStatus(status) in TERMINAL_STATUSES


def check_transition(current: str, target: str) -> RunStatus:
    """Return ``target`` as a status, or raise if the move is not allowed."""
    source = RunStatus(current)
    destination = RunStatus(target)
    if destination not in ALLOWED_TRANSITIONS[source]:
        raise InvalidStateError(f"Run cannot move from {source.value} to {destination.value}")
    return destination
