import pytest

from fleetcare.maintenance.errors import InvalidTransitionError
from fleetcare.maintenance.state import MaintenanceStateMachine, MaintenanceStatus, MaintenanceTransition


def test_state_machine_allows_expected_transitions():
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.PENDING_APPROVAL, MaintenanceStatus.APPROVED)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.IN_PROGRESS, MaintenanceStatus.AWAITING_PARTS)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.AWAITING_PARTS, MaintenanceStatus.IN_PROGRESS)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.IN_PROGRESS, MaintenanceStatus.COMPLETED)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.COMPLETED, MaintenanceStatus.VERIFIED)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.VERIFIED, MaintenanceStatus.CLOSED)
    assert MaintenanceStateMachine.can_transition(MaintenanceStatus.CLOSED, MaintenanceStatus.CLOSED)


def test_state_machine_blocks_invalid_transitions():
    assert not MaintenanceStateMachine.can_transition(MaintenanceStatus.PENDING_APPROVAL, MaintenanceStatus.IN_PROGRESS)
    assert not MaintenanceStateMachine.can_transition(MaintenanceStatus.COMPLETED, MaintenanceStatus.IN_PROGRESS)
    assert not MaintenanceStateMachine.can_transition(MaintenanceStatus.CLOSED, MaintenanceStatus.SCHEDULED)
    with pytest.raises(InvalidTransitionError):
        MaintenanceStateMachine.assert_transition(MaintenanceStatus.VERIFIED, MaintenanceStatus.IN_PROGRESS)


def test_invalid_transition_is_a_value_error():
    with pytest.raises(ValueError):
        MaintenanceStateMachine.assert_transition(MaintenanceStatus.CLOSED, MaintenanceStatus.APPROVED)


def test_transition_sources_and_targets():
    assert MaintenanceTransition.APPROVE.sources == {MaintenanceStatus.SCHEDULED, MaintenanceStatus.PENDING_APPROVAL}
    assert MaintenanceTransition.START_WORK.sources == {MaintenanceStatus.APPROVED, MaintenanceStatus.SCHEDULED}
    assert MaintenanceTransition.VERIFY.target is MaintenanceStatus.VERIFIED
    assert MaintenanceStateMachine.can_apply(MaintenanceTransition.RESUME, MaintenanceStatus.AWAITING_PARTS)
    assert not MaintenanceStateMachine.can_apply(MaintenanceTransition.APPROVE, MaintenanceStatus.IN_PROGRESS)


def test_allowed_transitions_and_terminal_state():
    assert MaintenanceStateMachine.allowed(MaintenanceStatus.SCHEDULED) == [
        MaintenanceTransition.APPROVE,
        MaintenanceTransition.START_WORK,
    ]
    assert MaintenanceStateMachine.is_terminal(MaintenanceStatus.CLOSED)
    assert not MaintenanceStateMachine.is_terminal(MaintenanceStatus.VERIFIED)
    assert MaintenanceStateMachine.initial_state() is MaintenanceStatus.PENDING_APPROVAL
