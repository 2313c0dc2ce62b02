from __future__ import annotations

import logging
import uuid
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from opentelemetry import trace
from pydantic_core import to_jsonable_python

from .audit import AuditRecorder
from .collaborators import AssetDirectory, OriginatingTicketCloser
from .documents import merge_document
from .errors import InvalidInputError, InvalidTransitionError, MaintenanceNotFoundError, MaintenanceStoreError
from .inventory import PartsInventory
from .models import (
    SCHEDULABLE_TYPES,
    ActorRole,
    AssetType,
    AttachmentCategory,
    AuditEventType,
    AuditOrder,
    CommentType,
    MaintenanceAttachment,
    MaintenanceAuditEvent,
    MaintenanceComment,
    MaintenanceSchedule,
    MaintenanceScheduleDraft,
    MaintenanceStats,
    MaintenanceTicket,
    MaintenanceTicketDraft,
    Occurrence,
    PartUsage,
    VirtualOccurrence,
)
from .repository import MaintenanceRepository
from .schedule import ScheduleExpander, ensure_utc, merge_occurrences
from .sequence import SequenceAllocator
from .state import MaintenanceStateMachine, MaintenanceStatus, MaintenanceTransition

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_TICKET_FIELDS = frozenset(f.name for f in fields(MaintenanceTicket))
_IMMUTABLE_TICKET_FIELDS = frozenset({"id", "ticket_number", "created_at", "updated_at", "created_by", "created_by_role"})
_LIFECYCLE_TICKET_FIELDS = frozenset(
    {
        "status",
        "approved_by",
        "approved_at",
        "work_started_at",
        "work_completed_at",
        "work_performed",
        "labor_hours",
        "verified_by",
        "verified_at",
        "verification_notes",
        "closed_at",
        "parts_used",
    }
)
_SCHEDULE_FIELDS = frozenset(f.name for f in fields(MaintenanceSchedule))
_IMMUTABLE_SCHEDULE_FIELDS = frozenset({"id", "created_at", "updated_at", "created_by"})

_TRANSITION_EVENTS: dict[MaintenanceTransition, AuditEventType] = {
    MaintenanceTransition.APPROVE: AuditEventType.APPROVED,
    MaintenanceTransition.START_WORK: AuditEventType.STARTED,
    MaintenanceTransition.AWAIT_PARTS: AuditEventType.STATUS_CHANGED,
    MaintenanceTransition.RESUME: AuditEventType.STATUS_CHANGED,
    MaintenanceTransition.COMPLETE: AuditEventType.COMPLETED,
    MaintenanceTransition.VERIFY: AuditEventType.VERIFIED,
    MaintenanceTransition.CLOSE: AuditEventType.STATUS_CHANGED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MaintenanceService:
    """Lifecycle orchestration for maintenance tickets and recurrence schedules.

    Every state change goes through the transition table in
    :mod:`fleetcare.maintenance.state` and is persisted together with exactly
    one audit event.
    """

    def __init__(
        self,
        repository: MaintenanceRepository,
        *,
        allocator: SequenceAllocator | None = None,
        recorder: AuditRecorder | None = None,
        expander: ScheduleExpander | None = None,
        originating_tickets: OriginatingTicketCloser | None = None,
        assets: AssetDirectory | None = None,
        inventory: PartsInventory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._allocator = allocator or SequenceAllocator(repository)
        self._recorder = recorder or AuditRecorder(repository, clock=clock)
        self._expander = expander or ScheduleExpander()
        self._originating_tickets = originating_tickets
        self._assets = assets
        self._inventory = inventory
        self._clock = clock

    # Tickets

    async def create_ticket(self, draft: MaintenanceTicketDraft) -> MaintenanceTicket:
        if not draft.title or not draft.title.strip():
            raise InvalidInputError("Maintenance ticket title is required")
        if not draft.asset_id or not draft.asset_id.strip():
            raise InvalidInputError("Maintenance ticket asset reference is required")
        if draft.status not in MaintenanceStateMachine.INITIAL_STATES:
            raise InvalidInputError(f"Maintenance tickets cannot be created in status {draft.status.value}")

        with tracer.start_as_current_span("maintenance.create_ticket"):
            ticket_number = await self._allocator.next_number()
            now = self._clock()
            values = {f.name: getattr(draft, f.name) for f in fields(draft)}
            values["assigned_to"] = list(draft.assigned_to)
            ticket = MaintenanceTicket(
                id=str(uuid.uuid4()),
                ticket_number=ticket_number,
                created_at=now,
                updated_at=now,
                **values,
            )
            audit = self._recorder.build(
                ticket.id,
                AuditEventType.CREATED,
                f"Maintenance ticket #{ticket_number} created: {ticket.title}",
                actor=ticket.created_by,
                actor_role=ticket.created_by_role,
                new_value=ticket.status.value,
                metadata={
                    "ticket_number": ticket_number,
                    "maintenance_type": ticket.maintenance_type.value,
                    "priority": ticket.priority.value,
                },
            )
            await self._repository.insert_ticket(ticket, audit)

        logger.info("Created maintenance ticket #%d (%s) on %s %s", ticket_number, ticket.id, ticket.asset_type.value, ticket.asset_id)
        return ticket

    async def get_ticket(self, ticket_id: str) -> MaintenanceTicket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise MaintenanceNotFoundError(f"Maintenance ticket {ticket_id} not found")
        return ticket

    async def list_tickets(
        self,
        *,
        site_id: str | None = None,
        asset_id: str | None = None,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[MaintenanceTicket]:
        """Return tickets newest first; ``created_before`` pages past a previous batch."""

        return await self._repository.list_tickets(
            site_id=site_id,
            asset_id=asset_id,
            created_before=created_before,
            limit=limit,
        )

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        actor: str,
        actor_role: ActorRole,
    ) -> MaintenanceTicket:
        """Merge the supplied fields into a ticket.

        ``None`` values are treated as absent and never overwrite stored data.
        Status and the fields stamped by lifecycle transitions are rejected;
        those only change through ``approve``, ``start_work`` and the other
        transition methods.
        """

        clean = {key: value for key, value in changes.items() if value is not None}
        if not clean:
            raise InvalidInputError("No fields provided for update")
        unknown = set(clean) - _TICKET_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown maintenance ticket fields: {', '.join(sorted(unknown))}")
        immutable = set(clean) & _IMMUTABLE_TICKET_FIELDS
        if immutable:
            raise InvalidInputError(f"Fields cannot be updated: {', '.join(sorted(immutable))}")
        managed = set(clean) & _LIFECYCLE_TICKET_FIELDS
        if managed:
            raise InvalidInputError(
                f"Fields are set by lifecycle transitions, use the transition operations instead: {', '.join(sorted(managed))}"
            )

        await self.get_ticket(ticket_id)
        audit = self._recorder.build(
            ticket_id,
            AuditEventType.STATUS_CHANGED,
            "Maintenance ticket updated",
            actor=actor,
            actor_role=actor_role,
            metadata={"updates": to_jsonable_python(clean)},
        )
        updated = await self._repository.update_ticket(ticket_id, clean, updated_at=self._clock(), audit=audit)
        if updated is None:
            raise MaintenanceNotFoundError(f"Maintenance ticket {ticket_id} not found")
        return updated

    async def approve(self, ticket_id: str, *, actor: str, actor_role: ActorRole = ActorRole.ADMIN) -> MaintenanceTicket:
        now = self._clock()
        return await self._apply_transition(
            ticket_id,
            MaintenanceTransition.APPROVE,
            actor=actor,
            actor_role=actor_role,
            changes={"approved_by": actor, "approved_at": now},
            description=f"Maintenance approved by {actor}",
        )

    async def start_work(self, ticket_id: str, *, actor: str, actor_role: ActorRole = ActorRole.OPERATOR) -> MaintenanceTicket:
        return await self._apply_transition(
            ticket_id,
            MaintenanceTransition.START_WORK,
            actor=actor,
            actor_role=actor_role,
            changes={"work_started_at": self._clock()},
            description=f"Maintenance work started by {actor}",
        )

    async def await_parts(
        self,
        ticket_id: str,
        *,
        actor: str,
        actor_role: ActorRole = ActorRole.OPERATOR,
        reason: str | None = None,
    ) -> MaintenanceTicket:
        return await self._apply_transition(
            ticket_id,
            MaintenanceTransition.AWAIT_PARTS,
            actor=actor,
            actor_role=actor_role,
            changes={},
            description=f"Maintenance work paused by {actor} awaiting parts",
            metadata={"reason": reason} if reason else None,
        )

    async def resume_work(self, ticket_id: str, *, actor: str, actor_role: ActorRole = ActorRole.OPERATOR) -> MaintenanceTicket:
        return await self._apply_transition(
            ticket_id,
            MaintenanceTransition.RESUME,
            actor=actor,
            actor_role=actor_role,
            changes={},
            description=f"Maintenance work resumed by {actor}",
        )

    async def complete_work(
        self,
        ticket_id: str,
        *,
        actor: str,
        work_performed: str,
        labor_hours: float,
        actor_role: ActorRole = ActorRole.OPERATOR,
    ) -> MaintenanceTicket:
        if not work_performed or not work_performed.strip():
            raise InvalidInputError("Describe the work performed before completing maintenance")
        if labor_hours < 0:
            raise InvalidInputError("Labor hours cannot be negative")
        return await self._apply_transition(
            ticket_id,
            MaintenanceTransition.COMPLETE,
            actor=actor,
            actor_role=actor_role,
            changes={
                "work_completed_at": self._clock(),
                "work_performed": work_performed,
                "labor_hours": labor_hours,
            },
            description=f"Maintenance work completed by {actor}",
            metadata={"labor_hours": labor_hours},
        )

    async def verify(
        self,
        ticket_id: str,
        *,
        actor: str,
        notes: str,
        actor_role: ActorRole = ActorRole.ADMIN,
    ) -> MaintenanceTicket:
        """Verify completed work and close the issue ticket this one was spawned from."""

        updated = await self._apply_transition(
            ticket_id,
            MaintenanceTransition.VERIFY,
            actor=actor,
            actor_role=actor_role,
            changes={"verified_by": actor, "verified_at": self._clock(), "verification_notes": notes},
            description=f"Maintenance verified by {actor}",
            metadata={"verification_notes": notes},
        )
        if updated.originating_ticket_id:
            if self._originating_tickets is None:
                logger.warning(
                    "Maintenance ticket %s verified but no originating ticket closer is configured for %s",
                    ticket_id,
                    updated.originating_ticket_id,
                )
            else:
                try:
                    await self._originating_tickets.close_ticket(updated.originating_ticket_id)
                except (MaintenanceNotFoundError, MaintenanceStoreError):
                    # Verification is committed; the issue ticket stays open.
                    logger.exception(
                        "Maintenance ticket %s verified but originating ticket %s could not be closed",
                        ticket_id,
                        updated.originating_ticket_id,
                    )
        return updated

    async def close(self, ticket_id: str, *, actor: str, actor_role: ActorRole = ActorRole.ADMIN) -> MaintenanceTicket:
        return await self._apply_transition(
            ticket_id,
            MaintenanceTransition.CLOSE,
            actor=actor,
            actor_role=actor_role,
            changes={"closed_at": self._clock()},
            description=f"Maintenance closed by {actor}",
        )

    async def assign(
        self,
        ticket_id: str,
        assignees: Sequence[str],
        *,
        actor: str,
        actor_role: ActorRole = ActorRole.ADMIN,
    ) -> MaintenanceTicket:
        current = await self.get_ticket(ticket_id)
        assigned = list(dict.fromkeys(name for name in assignees if name))
        audit = self._recorder.build(
            ticket_id,
            AuditEventType.ASSIGNED,
            f"Maintenance assigned to {', '.join(assigned) or 'nobody'}",
            actor=actor,
            actor_role=actor_role,
            previous_value=", ".join(current.assigned_to) or None,
            new_value=", ".join(assigned) or None,
            metadata={"assigned_to": assigned},
        )
        return await self._write(ticket_id, {"assigned_to": assigned}, audit)

    async def add_part(
        self,
        ticket_id: str,
        part: PartUsage,
        *,
        actor: str,
        actor_role: ActorRole = ActorRole.OPERATOR,
    ) -> MaintenanceTicket:
        """Record a part used on the ticket and add its cost to ``actual_cost``.

        A usage carrying ``part_id`` is taken out of stock first; its name,
        number and unit cost default to the stocked part's.
        """

        if part.quantity <= 0:
            raise InvalidInputError("Part quantity must be positive")
        current = await self.get_ticket(ticket_id)
        if part.part_id is not None:
            if self._inventory is None:
                raise InvalidInputError("Parts inventory is not configured")
            stocked = await self._inventory.consume_part(part.part_id, part.quantity)
            part = replace(
                part,
                part_name=part.part_name or stocked.part_name,
                part_number=part.part_number or stocked.part_number,
                cost=stocked.unit_cost if part.cost is None else part.cost,
            )
        if not part.part_name.strip():
            raise InvalidInputError("Part name is required")
        part_cost = (part.cost or 0.0) * part.quantity
        audit = self._recorder.build(
            ticket_id,
            AuditEventType.PART_ADDED,
            f"Part added: {part.quantity} x {part.part_name}",
            actor=actor,
            actor_role=actor_role,
            metadata={
                "part_name": part.part_name,
                "part_number": part.part_number,
                "part_id": part.part_id,
                "quantity": part.quantity,
                "cost": part_cost,
            },
        )
        changes = {
            "parts_used": [*current.parts_used, part],
            "actual_cost": current.actual_cost + part_cost,
        }
        return await self._write(ticket_id, changes, audit)

    async def add_comment(
        self,
        ticket_id: str,
        *,
        author: str,
        content: str,
        author_role: ActorRole = ActorRole.OPERATOR,
        comment_type: CommentType = CommentType.NOTE,
    ) -> MaintenanceComment:
        if not content or not content.strip():
            raise InvalidInputError("Comment content is required")
        await self.get_ticket(ticket_id)
        comment = MaintenanceComment(
            id=str(uuid.uuid4()),
            maintenance_ticket_id=ticket_id,
            author=author,
            author_role=author_role,
            content=content,
            comment_type=comment_type,
            created_at=self._clock(),
        )
        audit = self._recorder.build(
            ticket_id,
            AuditEventType.COMMENT_ADDED,
            f"Comment added by {author}",
            actor=author,
            actor_role=author_role,
            metadata={"comment_id": comment.id, "comment_type": comment_type.value},
        )
        await self._repository.insert_comment(comment, audit)
        return comment

    async def list_comments(self, ticket_id: str) -> list[MaintenanceComment]:
        return await self._repository.list_comments(ticket_id)

    async def add_attachment(
        self,
        ticket_id: str,
        *,
        file_name: str,
        file_url: str,
        uploaded_by: str,
        uploaded_by_role: ActorRole = ActorRole.OPERATOR,
        file_type: str = "",
        file_size: int = 0,
        category: AttachmentCategory = AttachmentCategory.OTHER,
    ) -> MaintenanceAttachment:
        if not file_name or not file_url:
            raise InvalidInputError("Attachment file name and url are required")
        await self.get_ticket(ticket_id)
        attachment = MaintenanceAttachment(
            id=str(uuid.uuid4()),
            maintenance_ticket_id=ticket_id,
            file_name=file_name,
            file_url=file_url,
            file_type=file_type,
            file_size=file_size,
            category=category,
            uploaded_by=uploaded_by,
            created_at=self._clock(),
        )
        audit = self._recorder.build(
            ticket_id,
            AuditEventType.ATTACHMENT_ADDED,
            f"Attachment added: {file_name}",
            actor=uploaded_by,
            actor_role=uploaded_by_role,
            metadata={"attachment_id": attachment.id, "category": category.value},
        )
        await self._repository.insert_attachment(attachment, audit)
        return attachment

    async def list_attachments(self, ticket_id: str) -> list[MaintenanceAttachment]:
        return await self._repository.list_attachments(ticket_id)

    async def get_audit_log(
        self, ticket_id: str, *, order: AuditOrder = AuditOrder.OLDEST_FIRST
    ) -> list[MaintenanceAuditEvent]:
        return await self._recorder.list_for(ticket_id, order)

    async def asset_display_name(self, asset_type: AssetType, asset_id: str) -> str:
        if self._assets is None:
            return asset_id
        name = await self._assets.display_name(asset_type, asset_id)
        return name or asset_id

    # Schedules

    async def create_schedule(self, draft: MaintenanceScheduleDraft) -> MaintenanceSchedule:
        now = self._clock()
        schedule = MaintenanceSchedule(
            id=str(uuid.uuid4()),
            name=draft.name,
            description=draft.description,
            asset_type=draft.asset_type,
            asset_id=draft.asset_id,
            site_id=draft.site_id,
            maintenance_type=draft.maintenance_type,
            frequency=draft.frequency,
            frequency_value=draft.frequency_value,
            start_date=draft.start_date,
            end_date=draft.end_date,
            next_scheduled_date=draft.next_scheduled_date or draft.start_date,
            ticket_template=draft.ticket_template,
            created_by=draft.created_by,
            created_at=now,
            updated_at=now,
        )
        _validate_schedule(schedule)
        await self._repository.insert_schedule(schedule)
        logger.info(
            "Created %s maintenance schedule %s for %s %s",
            schedule.frequency.value,
            schedule.id,
            schedule.asset_type.value,
            schedule.asset_id,
        )
        return schedule

    async def get_schedule(self, schedule_id: str) -> MaintenanceSchedule:
        schedule = await self._repository.get_schedule(schedule_id)
        if schedule is None:
            raise MaintenanceNotFoundError(f"Maintenance schedule {schedule_id} not found")
        return schedule

    async def list_schedules(self, *, active_only: bool = False) -> list[MaintenanceSchedule]:
        return await self._repository.list_schedules(active_only=active_only)

    async def update_schedule(self, schedule_id: str, changes: Mapping[str, Any]) -> MaintenanceSchedule:
        clean = {key: value for key, value in changes.items() if value is not None}
        if not clean:
            raise InvalidInputError("No fields provided for update")
        unknown = set(clean) - _SCHEDULE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown maintenance schedule fields: {', '.join(sorted(unknown))}")
        immutable = set(clean) & _IMMUTABLE_SCHEDULE_FIELDS
        if immutable:
            raise InvalidInputError(f"Fields cannot be updated: {', '.join(sorted(immutable))}")

        current = await self.get_schedule(schedule_id)
        _validate_schedule(merge_document(current, clean))
        updated = await self._repository.update_schedule(schedule_id, clean, updated_at=self._clock())
        if updated is None:
            raise MaintenanceNotFoundError(f"Maintenance schedule {schedule_id} not found")
        return updated

    async def deactivate_schedule(self, schedule_id: str) -> MaintenanceSchedule:
        schedule = await self.update_schedule(schedule_id, {"is_active": False})
        logger.info("Deactivated maintenance schedule %s", schedule_id)
        return schedule

    async def expand_schedule(self, schedule_id: str) -> list[VirtualOccurrence]:
        return self._expander.expand(await self.get_schedule(schedule_id))

    async def calendar(self, *, site_id: str | None = None) -> list[Occurrence]:
        """Real tickets merged with the virtual occurrences of active schedules."""

        tickets = await self._repository.list_tickets(site_id=site_id)
        schedules = await self._repository.list_schedules(active_only=True)
        if site_id is not None:
            schedules = [schedule for schedule in schedules if schedule.site_id == site_id]
        return merge_occurrences(tickets, self._expander.expand_all(schedules))

    async def get_stats(self) -> MaintenanceStats:
        tickets = await self._repository.list_tickets()
        schedules = await self._repository.list_schedules(active_only=True)

        stats = MaintenanceStats(total=len(tickets) + len(schedules))
        for ticket in tickets:
            if ticket.status in (
                MaintenanceStatus.SCHEDULED,
                MaintenanceStatus.PENDING_APPROVAL,
                MaintenanceStatus.APPROVED,
            ):
                stats.scheduled += 1
            elif ticket.status is MaintenanceStatus.IN_PROGRESS:
                stats.in_progress += 1
            elif ticket.status in (MaintenanceStatus.COMPLETED, MaintenanceStatus.VERIFIED, MaintenanceStatus.CLOSED):
                stats.completed += 1
            elif ticket.status is MaintenanceStatus.AWAITING_PARTS:
                stats.awaiting_parts += 1
            stats.by_type[ticket.maintenance_type.value] += 1

        for schedule in schedules:
            stats.scheduled += 1
            stats.by_type[schedule.maintenance_type.value] += 1
        return stats

    async def _apply_transition(
        self,
        ticket_id: str,
        transition: MaintenanceTransition,
        *,
        actor: str,
        actor_role: ActorRole,
        changes: Mapping[str, Any],
        description: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> MaintenanceTicket:
        with tracer.start_as_current_span(f"maintenance.{transition.value}") as span:
            span.set_attribute("maintenance.ticket_id", ticket_id)
            current = await self.get_ticket(ticket_id)
            if not MaintenanceStateMachine.can_apply(transition, current.status):
                raise InvalidTransitionError(
                    f"Cannot {transition.value} maintenance ticket {ticket_id} in status {current.status.value}"
                )

            target = transition.target
            audit = self._recorder.build(
                ticket_id,
                _TRANSITION_EVENTS[transition],
                description,
                actor=actor,
                actor_role=actor_role,
                previous_value=current.status.value,
                new_value=target.value,
                metadata={"action": transition.value, **(metadata or {})},
            )
            updated = await self._write(ticket_id, {**changes, "status": target}, audit)

        logger.info(
            "Maintenance ticket #%d %s -> %s by %s",
            updated.ticket_number,
            current.status.value,
            target.value,
            actor,
        )
        return updated

    async def _write(
        self, ticket_id: str, changes: Mapping[str, Any], audit: MaintenanceAuditEvent
    ) -> MaintenanceTicket:
        updated = await self._repository.update_ticket(ticket_id, changes, updated_at=self._clock(), audit=audit)
        if updated is None:
            raise MaintenanceNotFoundError(f"Maintenance ticket {ticket_id} not found")
        return updated


def _validate_schedule(schedule: MaintenanceSchedule) -> None:
    if not schedule.name or not schedule.name.strip():
        raise InvalidInputError("Maintenance schedule name is required")
    if not schedule.ticket_template.title.strip():
        raise InvalidInputError("Maintenance schedule ticket template needs a title")
    if not schedule.asset_id:
        raise InvalidInputError("Maintenance schedule asset reference is required")
    if schedule.maintenance_type not in SCHEDULABLE_TYPES:
        raise InvalidInputError(f"Schedules only support preventive or inspection maintenance, got {schedule.maintenance_type.value}")
    if schedule.frequency_value < 1:
        raise InvalidInputError("Schedule frequency value must be a positive integer")
    start = ensure_utc(schedule.start_date)
    if ensure_utc(schedule.next_scheduled_date) < start:
        raise InvalidInputError("Next scheduled date cannot precede the schedule start date")
    if schedule.end_date is not None and ensure_utc(schedule.end_date) < start:
        raise InvalidInputError("Schedule end date cannot precede its start date")
