from __future__ import annotations

from enum import Enum

from .errors import InvalidTransitionError


class MaintenanceStatus(str, Enum):
    """Supported states for a maintenance ticket's lifecycle."""

    SCHEDULED = "scheduled"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    AWAITING_PARTS = "awaiting_parts"
    COMPLETED = "completed"
    VERIFIED = "verified"
    CLOSED = "closed"


class MaintenanceTransition(str, Enum):
    """Named lifecycle transitions, each with its allowed source states."""

    APPROVE = "approve"
    START_WORK = "start_work"
    AWAIT_PARTS = "await_parts"
    RESUME = "resume"
    COMPLETE = "complete"
    VERIFY = "verify"
    CLOSE = "close"

    @property
    def sources(self) -> frozenset[MaintenanceStatus]:
        return _TRANSITIONS[self][0]

    @property
    def target(self) -> MaintenanceStatus:
        return _TRANSITIONS[self][1]


_TRANSITIONS: dict[MaintenanceTransition, tuple[frozenset[MaintenanceStatus], MaintenanceStatus]] = {
    MaintenanceTransition.APPROVE: (
        frozenset({MaintenanceStatus.SCHEDULED, MaintenanceStatus.PENDING_APPROVAL}),
        MaintenanceStatus.APPROVED,
    ),
    MaintenanceTransition.START_WORK: (
        frozenset({MaintenanceStatus.APPROVED, MaintenanceStatus.SCHEDULED}),
        MaintenanceStatus.IN_PROGRESS,
    ),
    MaintenanceTransition.AWAIT_PARTS: (
        frozenset({MaintenanceStatus.IN_PROGRESS}),
        MaintenanceStatus.AWAITING_PARTS,
    ),
    MaintenanceTransition.RESUME: (
        frozenset({MaintenanceStatus.AWAITING_PARTS}),
        MaintenanceStatus.IN_PROGRESS,
    ),
    MaintenanceTransition.COMPLETE: (
        frozenset({MaintenanceStatus.IN_PROGRESS}),
        MaintenanceStatus.COMPLETED,
    ),
    MaintenanceTransition.VERIFY: (
        frozenset({MaintenanceStatus.COMPLETED}),
        MaintenanceStatus.VERIFIED,
    ),
    MaintenanceTransition.CLOSE: (
        frozenset({MaintenanceStatus.VERIFIED}),
        MaintenanceStatus.CLOSED,
    ),
}


class MaintenanceStateMachine:
    """Validate maintenance lifecycle transitions."""

    INITIAL_STATES: frozenset[MaintenanceStatus] = frozenset(
        {MaintenanceStatus.PENDING_APPROVAL, MaintenanceStatus.SCHEDULED}
    )

    @classmethod
    def initial_state(cls) -> MaintenanceStatus:
        return MaintenanceStatus.PENDING_APPROVAL

    @classmethod
    def allowed(cls, current: MaintenanceStatus) -> list[MaintenanceTransition]:
        return [transition for transition in MaintenanceTransition if current in transition.sources]

    @classmethod
    def can_apply(cls, transition: MaintenanceTransition, current: MaintenanceStatus) -> bool:
        return current in transition.sources

    @classmethod
    def can_transition(cls, current: MaintenanceStatus, new: MaintenanceStatus) -> bool:
        if current == new:
            return True
        return any(transition.target == new for transition in cls.allowed(current))

    @classmethod
    def assert_transition(cls, current: MaintenanceStatus, new: MaintenanceStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransitionError(f"Invalid maintenance status transition: {current.value} -> {new.value}")

    @classmethod
    def is_terminal(cls, status: MaintenanceStatus) -> bool:
        return not cls.allowed(status)
