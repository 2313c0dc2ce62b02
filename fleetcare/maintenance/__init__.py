"""Maintenance ticket lifecycle, audit history and recurring schedules."""

from .audit import AuditRecorder
from .errors import (
    InvalidInputError,
    InvalidTransitionError,
    MaintenanceError,
    MaintenanceNotFoundError,
    MaintenanceStoreError,
)
from .models import (
    MaintenanceAuditEvent,
    MaintenanceSchedule,
    MaintenanceTicket,
    PersistedOccurrence,
    VirtualOccurrence,
)
from .repository import MaintenanceRepository
from .schedule import ScheduleExpander, virtual_ticket_number
from .sequence import SequenceAllocator
from .service import MaintenanceService
from .state import MaintenanceStateMachine, MaintenanceStatus, MaintenanceTransition

__all__ = [
    "AuditRecorder",
    "InvalidInputError",
    "InvalidTransitionError",
    "MaintenanceAuditEvent",
    "MaintenanceError",
    "MaintenanceNotFoundError",
    "MaintenanceRepository",
    "MaintenanceSchedule",
    "MaintenanceService",
    "MaintenanceStateMachine",
    "MaintenanceStatus",
    "MaintenanceStoreError",
    "MaintenanceTicket",
    "MaintenanceTransition",
    "PersistedOccurrence",
    "ScheduleExpander",
    "SequenceAllocator",
    "VirtualOccurrence",
    "virtual_ticket_number",
]
