from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from fleetcare.maintenance.models import (
    ActorRole,
    AssetType,
    AttachmentCategory,
    AuditEventType,
    CommentType,
    Frequency,
    MaintenancePriority,
    MaintenanceType,
)
from fleetcare.maintenance.state import MaintenanceStatus


class PartUsagePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    part_name: str = Field(default="", max_length=255)
    quantity: int = Field(..., gt=0)
    part_number: str | None = Field(default=None, max_length=100)
    cost: float | None = Field(default=None, ge=0)
    part_id: str | None = None


class TicketCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="")
    maintenance_type: MaintenanceType = MaintenanceType.CORRECTIVE
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    status: MaintenanceStatus = MaintenanceStatus.PENDING_APPROVAL
    asset_type: AssetType
    asset_id: str = Field(..., min_length=1)
    site_id: str = Field(..., min_length=1)
    scheduled_date: datetime | None = None
    estimated_duration: float | None = Field(default=None, ge=0)
    assigned_to: list[str] = Field(default_factory=list)
    estimated_cost: float = Field(default=0.0, ge=0)
    cost_currency: str = Field(default="USD", min_length=3, max_length=3)
    is_urgent: bool = False
    client_visible: bool = True
    originating_ticket_id: str | None = None


class TicketUpdateRequest(BaseModel):
    """Plain field edits. Status only moves through the lifecycle endpoints."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    maintenance_type: MaintenanceType | None = None
    priority: MaintenancePriority | None = None
    scheduled_date: datetime | None = None
    estimated_duration: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)
    cost_currency: str | None = Field(default=None, min_length=3, max_length=3)
    is_urgent: bool | None = None
    client_visible: bool | None = None


class TransitionRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CompleteWorkRequest(BaseModel):
    work_performed: str = Field(..., min_length=1)
    labor_hours: float = Field(..., ge=0)


class VerifyRequest(BaseModel):
    notes: str = Field(default="", max_length=2000)


class AssignRequest(BaseModel):
    assigned_to: list[str]


class CommentCreateRequest(BaseModel):
    content: str = Field(..., min_length=1)
    comment_type: CommentType = CommentType.NOTE


class AttachmentCreateRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1)
    file_type: str = ""
    file_size: int = Field(default=0, ge=0)
    category: AttachmentCategory = AttachmentCategory.OTHER


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_number: int
    title: str
    description: str
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
    scheduled_date: datetime | None
    estimated_duration: float | None
    assigned_to: list[str]
    approved_by: str | None
    approved_at: datetime | None
    work_started_at: datetime | None
    work_completed_at: datetime | None
    work_performed: str | None
    labor_hours: float | None
    parts_used: list[PartUsagePayload]
    verified_by: str | None
    verified_at: datetime | None
    verification_notes: str | None
    closed_at: datetime | None
    estimated_cost: float
    actual_cost: float
    cost_currency: str
    is_urgent: bool
    is_recurring: bool
    recurring_schedule_id: str | None
    client_visible: bool
    originating_ticket_id: str | None


class AuditEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    maintenance_ticket_id: str
    event_type: AuditEventType
    description: str
    performed_by: str
    performed_by_role: ActorRole
    previous_value: str | None
    new_value: str | None
    metadata: dict[str, Any]
    created_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    maintenance_ticket_id: str
    author: str
    author_role: ActorRole
    content: str
    comment_type: CommentType
    created_at: datetime


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    maintenance_ticket_id: str
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    category: AttachmentCategory
    uploaded_by: str
    created_at: datetime


class TicketTemplatePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    estimated_duration: float = Field(default=0.0, ge=0)
    assigned_to: list[str] = Field(default_factory=list)


class ScheduleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    asset_type: AssetType
    asset_id: str = Field(..., min_length=1)
    site_id: str = Field(..., min_length=1)
    maintenance_type: MaintenanceType = MaintenanceType.PREVENTIVE
    frequency: Frequency
    frequency_value: int = Field(default=1, ge=1)
    start_date: datetime
    end_date: datetime | None = None
    next_scheduled_date: datetime | None = None
    ticket_template: TicketTemplatePayload


class ScheduleUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    frequency: Frequency | None = None
    frequency_value: int | None = Field(default=None, ge=1)
    end_date: datetime | None = None
    next_scheduled_date: datetime | None = None
    last_generated_date: datetime | None = None
    ticket_template: TicketTemplatePayload | None = None
    is_active: bool | None = None


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    asset_type: AssetType
    asset_id: str
    site_id: str
    maintenance_type: MaintenanceType
    frequency: Frequency
    frequency_value: int
    start_date: datetime
    end_date: datetime | None
    next_scheduled_date: datetime
    last_generated_date: datetime | None
    ticket_template: TicketTemplatePayload
    is_active: bool
    created_by: str
    created_at: datetime
    updated_at: datetime


class OccurrenceResponse(BaseModel):
    """One calendar entry: a persisted ticket or a virtual schedule occurrence."""

    kind: Literal["ticket", "virtual"]
    id: str
    ticket_number: int
    title: str
    status: MaintenanceStatus
    maintenance_type: MaintenanceType
    priority: MaintenancePriority
    asset_type: AssetType
    asset_id: str
    asset_name: str | None = None
    site_id: str
    scheduled_date: datetime
    is_recurring: bool
    schedule_id: str | None


class StatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    scheduled: int
    in_progress: int
    completed: int
    awaiting_parts: int
    by_type: dict[str, int]


class PartCreateRequest(BaseModel):
    part_name: str = Field(..., min_length=1, max_length=255)
    site_id: str = Field(..., min_length=1)
    quantity_available: int = Field(default=0, ge=0)
    part_number: str | None = Field(default=None, max_length=100)
    unit_cost: float | None = Field(default=None, ge=0)
    description: str = Field(default="")


class PartUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    part_name: str | None = Field(default=None, min_length=1, max_length=255)
    site_id: str | None = Field(default=None, min_length=1)
    quantity_available: int | None = Field(default=None, ge=0)
    quantity_reserved: int | None = Field(default=None, ge=0)
    part_number: str | None = Field(default=None, max_length=100)
    unit_cost: float | None = Field(default=None, ge=0)
    description: str | None = None


class PartQuantityRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class PartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    part_name: str
    site_id: str
    quantity_available: int
    quantity_reserved: int
    part_number: str | None
    unit_cost: float | None
    description: str
    created_at: datetime
    updated_at: datetime
