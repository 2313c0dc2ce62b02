from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from .state import MaintenanceStatus


class MaintenanceType(str, Enum):
    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"
    PREDICTIVE = "predictive"
    INSPECTION = "inspection"
    UPGRADE = "upgrade"


class MaintenancePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AssetType(str, Enum):
    """Levels of the site → container → rack → unit hierarchy."""

    SITE = "site"
    CONTAINER = "container"
    RACK = "rack"
    ASIC = "asic"


class ActorRole(str, Enum):
    OPERATOR = "operator"
    ADMIN = "admin"
    CLIENT = "client"


class AuditEventType(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    APPROVED = "approved"
    STARTED = "started"
    COMPLETED = "completed"
    VERIFIED = "verified"
    PART_ADDED = "part_added"
    ATTACHMENT_ADDED = "attachment_added"
    COMMENT_ADDED = "comment_added"


class AuditOrder(str, Enum):
    OLDEST_FIRST = "oldest_first"
    NEWEST_FIRST = "newest_first"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class CommentType(str, Enum):
    NOTE = "note"
    UPDATE = "update"
    QUESTION = "question"
    RESOLUTION = "resolution"


class AttachmentCategory(str, Enum):
    PHOTO = "photo"
    DOCUMENT = "document"
    REPORT = "report"
    OTHER = "other"


SCHEDULABLE_TYPES = frozenset({MaintenanceType.PREVENTIVE, MaintenanceType.INSPECTION})


@dataclass(slots=True)
class PartUsage:
    """A part consumed while performing maintenance.

    ``part_id`` links the usage to a stocked :class:`MaintenancePart`; free-form
    usages without it do not touch inventory.
    """

    part_name: str
    quantity: int
    part_number: str | None = None
    cost: float | None = None
    part_id: str | None = None


@dataclass(slots=True)
class MaintenancePartDraft:
    part_name: str
    site_id: str
    quantity_available: int = 0
    part_number: str | None = None
    unit_cost: float | None = None
    description: str = ""


@dataclass(slots=True)
class MaintenancePart:
    """Spare part stock held at a site.

    ``quantity_reserved`` counts units promised to open work and never
    exceeds ``quantity_available``.
    """

    id: str
    part_name: str
    site_id: str
    quantity_available: int
    created_at: datetime
    updated_at: datetime
    quantity_reserved: int = 0
    part_number: str | None = None
    unit_cost: float | None = None
    description: str = ""


@dataclass(slots=True)
class MaintenanceTicketDraft:
    """Caller supplied fields for a new maintenance ticket."""

    title: str
    asset_type: AssetType
    asset_id: str
    site_id: str
    created_by: str
    created_by_role: ActorRole = ActorRole.OPERATOR
    description: str = ""
    maintenance_type: MaintenanceType = MaintenanceType.CORRECTIVE
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    status: MaintenanceStatus = MaintenanceStatus.PENDING_APPROVAL
    scheduled_date: datetime | None = None
    estimated_duration: float | None = None
    assigned_to: list[str] = field(default_factory=list)
    estimated_cost: float = 0.0
    cost_currency: str = "USD"
    is_urgent: bool = False
    is_recurring: bool = False
    recurring_schedule_id: str | None = None
    client_visible: bool = True
    originating_ticket_id: str | None = None


@dataclass(slots=True)
class MaintenanceTicket:
    """Aggregate representing a persisted unit of maintenance work."""

    id: str
    ticket_number: int
    title: str
    maintenance_type: MaintenanceType
    priority: MaintenancePriority
    status: MaintenanceStatus
    asset_type: AssetType
    asset_id: str
    site_id: str
    created_by: str
    created_by_role: ActorRole
    created_at: datetime
    updated_at: datetime
    description: str = ""
    scheduled_date: datetime | None = None
    estimated_duration: float | None = None
    assigned_to: list[str] = field(default_factory=list)
    approved_by: str | None = None
    approved_at: datetime | None = None
    work_started_at: datetime | None = None
    work_completed_at: datetime | None = None
    work_performed: str | None = None
    labor_hours: float | None = None
    parts_used: list[PartUsage] = field(default_factory=list)
    verified_by: str | None = None
    verified_at: datetime | None = None
    verification_notes: str | None = None
    closed_at: datetime | None = None
    estimated_cost: float = 0.0
    actual_cost: float = 0.0
    cost_currency: str = "USD"
    is_urgent: bool = False
    is_recurring: bool = False
    recurring_schedule_id: str | None = None
    client_visible: bool = True
    originating_ticket_id: str | None = None


@dataclass(slots=True)
class TicketTemplate:
    """Fields copied onto every occurrence generated from a schedule."""

    title: str
    description: str = ""
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    estimated_duration: float = 0.0
    assigned_to: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MaintenanceScheduleDraft:
    """Caller supplied fields for a new recurrence definition."""

    name: str
    asset_type: AssetType
    asset_id: str
    site_id: str
    maintenance_type: MaintenanceType
    frequency: Frequency
    start_date: datetime
    ticket_template: TicketTemplate
    created_by: str
    frequency_value: int = 1
    end_date: datetime | None = None
    next_scheduled_date: datetime | None = None
    description: str = ""


@dataclass(slots=True)
class MaintenanceSchedule:
    """Recurrence definition; its future occurrences are computed, not stored."""

    id: str
    name: str
    asset_type: AssetType
    asset_id: str
    site_id: str
    maintenance_type: MaintenanceType
    frequency: Frequency
    frequency_value: int
    start_date: datetime
    next_scheduled_date: datetime
    ticket_template: TicketTemplate
    created_by: str
    created_at: datetime
    updated_at: datetime
    end_date: datetime | None = None
    last_generated_date: datetime | None = None
    description: str = ""
    is_active: bool = True


@dataclass(slots=True)
class MaintenanceAuditEvent:
    """Immutable history entry for one action on a ticket."""

    id: str
    maintenance_ticket_id: str
    event_type: AuditEventType
    description: str
    performed_by: str
    performed_by_role: ActorRole
    created_at: datetime
    previous_value: str | None = None
    new_value: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class MaintenanceComment:
    id: str
    maintenance_ticket_id: str
    author: str
    author_role: ActorRole
    content: str
    created_at: datetime
    comment_type: CommentType = CommentType.NOTE


@dataclass(slots=True)
class MaintenanceAttachment:
    id: str
    maintenance_ticket_id: str
    file_name: str
    file_url: str
    uploaded_by: str
    created_at: datetime
    file_type: str = ""
    file_size: int = 0
    category: AttachmentCategory = AttachmentCategory.OTHER


@dataclass(slots=True, frozen=True)
class VirtualOccurrence:
    """Computed projection of a schedule onto one future date; never persisted."""

    id: str
    ticket_number: int
    schedule_id: str
    scheduled_date: datetime
    title: str
    description: str
    maintenance_type: MaintenanceType
    priority: MaintenancePriority
    asset_type: AssetType
    asset_id: str
    site_id: str
    estimated_duration: float
    assigned_to: tuple[str, ...]
    created_by: str
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    is_recurring: bool = True


@dataclass(slots=True, frozen=True)
class PersistedOccurrence:
    """A real ticket shown on the calendar."""

    ticket: MaintenanceTicket

    @property
    def scheduled_date(self) -> datetime:
        return self.ticket.scheduled_date or self.ticket.created_at


Occurrence = Union[PersistedOccurrence, VirtualOccurrence]


@dataclass(slots=True)
class MaintenanceStats:
    """Dashboard counters across tickets and active schedules."""

    total: int = 0
    scheduled: int = 0
    in_progress: int = 0
    completed: int = 0
    awaiting_parts: int = 0
    by_type: dict[str, int] = field(default_factory=lambda: {kind.value: 0 for kind in MaintenanceType})
