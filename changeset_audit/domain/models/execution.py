"""Execution lifecycle for one change-set. Transitions are validated."""

from enum import Enum
from typing import Dict, FrozenSet


class ExecutionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    DIFFING = "diffing"
    MUTATING = "mutating"
    AUDIT_WRITING = "audit_writing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"  # Failed before any storage write


_STATE_TRANSITIONS: Dict[ExecutionState, FrozenSet[ExecutionState]] = {
    ExecutionState.IDLE: frozenset({ExecutionState.VALIDATING}),
    ExecutionState.VALIDATING: frozenset({ExecutionState.DIFFING, ExecutionState.REJECTED}),
    ExecutionState.DIFFING: frozenset({ExecutionState.MUTATING, ExecutionState.REJECTED}),
    ExecutionState.MUTATING: frozenset({ExecutionState.AUDIT_WRITING, ExecutionState.ROLLED_BACK}),
    ExecutionState.AUDIT_WRITING: frozenset({ExecutionState.COMMITTED, ExecutionState.ROLLED_BACK}),
    ExecutionState.COMMITTED: frozenset(),
    ExecutionState.ROLLED_BACK: frozenset(),
    ExecutionState.REJECTED: frozenset(),
}

TERMINAL_STATES = frozenset(
    {ExecutionState.COMMITTED, ExecutionState.ROLLED_BACK, ExecutionState.REJECTED}
)


def can_transition(current: ExecutionState, new: ExecutionState) -> bool:
    return new in _STATE_TRANSITIONS.get(current, frozenset())
