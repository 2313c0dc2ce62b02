from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

import pytest

from fleetcare.maintenance.documents import merge_document
from fleetcare.maintenance.errors import MaintenanceStoreError
from fleetcare.maintenance.inventory import PartsInventory
from fleetcare.maintenance.models import (
    MaintenanceAttachment,
    MaintenanceAuditEvent,
    MaintenanceComment,
    MaintenancePart,
    MaintenanceSchedule,
    MaintenanceTicket,
)
from fleetcare.maintenance.service import MaintenanceService


class InMemoryMaintenanceRepository:
    """Dictionary backed stand-in for ``MaintenanceRepository``."""

    def __init__(self, *, counter_available: bool = True) -> None:
        self.counter_available = counter_available
        self.counters: dict[str, int] = {}
        self.tickets: dict[str, MaintenanceTicket] = {}
        self.schedules: dict[str, MaintenanceSchedule] = {}
        self.audit_events: list[MaintenanceAuditEvent] = []
        self.comments: list[MaintenanceComment] = []
        self.attachments: list[MaintenanceAttachment] = []
        self.parts: dict[str, MaintenancePart] = {}

    async def increment_counter(self, name: str, floor: int) -> int:
        if not self.counter_available:
            raise MaintenanceStoreError("counter table unavailable")
        self.counters[name] = self.counters.get(name, floor) + 1
        return self.counters[name]

    async def insert_ticket(self, ticket: MaintenanceTicket, audit: MaintenanceAuditEvent) -> None:
        self.tickets[ticket.id] = ticket
        self.audit_events.append(audit)

    async def get_ticket(self, ticket_id: str) -> MaintenanceTicket | None:
        return self.tickets.get(ticket_id)

    async def list_tickets(
        self,
        *,
        site_id: str | None = None,
        asset_id: str | None = None,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[MaintenanceTicket]:
        tickets = [
            ticket
            for ticket in self.tickets.values()
            if (site_id is None or ticket.site_id == site_id)
            and (asset_id is None or ticket.asset_id == asset_id)
            and (created_before is None or ticket.created_at < created_before)
        ]
        tickets.sort(key=lambda ticket: ticket.created_at, reverse=True)
        return tickets if limit is None else tickets[:limit]

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        updated_at: datetime,
        audit: MaintenanceAuditEvent,
    ) -> MaintenanceTicket | None:
        current = self.tickets.get(ticket_id)
        if current is None:
            return None
        updated = merge_document(current, {**changes, "updated_at": updated_at})
        self.tickets[ticket_id] = updated
        self.audit_events.append(audit)
        return updated

    async def insert_audit_event(self, event: MaintenanceAuditEvent) -> None:
        self.audit_events.append(event)

    async def list_audit_events(self, ticket_id: str, *, newest_first: bool = False) -> list[MaintenanceAuditEvent]:
        events = [event for event in self.audit_events if event.maintenance_ticket_id == ticket_id]
        return list(reversed(events)) if newest_first else events

    async def insert_comment(self, comment: MaintenanceComment, audit: MaintenanceAuditEvent) -> None:
        self.comments.append(comment)
        self.audit_events.append(audit)

    async def list_comments(self, ticket_id: str) -> list[MaintenanceComment]:
        return [comment for comment in self.comments if comment.maintenance_ticket_id == ticket_id]

    async def insert_attachment(self, attachment: MaintenanceAttachment, audit: MaintenanceAuditEvent) -> None:
        self.attachments.append(attachment)
        self.audit_events.append(audit)

    async def list_attachments(self, ticket_id: str) -> list[MaintenanceAttachment]:
        return [item for item in self.attachments if item.maintenance_ticket_id == ticket_id]

    async def insert_schedule(self, schedule: MaintenanceSchedule) -> None:
        self.schedules[schedule.id] = schedule

    async def get_schedule(self, schedule_id: str) -> MaintenanceSchedule | None:
        return self.schedules.get(schedule_id)

    async def list_schedules(self, *, active_only: bool = False) -> list[MaintenanceSchedule]:
        if active_only:
            active = [schedule for schedule in self.schedules.values() if schedule.is_active]
            return sorted(active, key=lambda schedule: schedule.next_scheduled_date)
        return sorted(self.schedules.values(), key=lambda schedule: schedule.created_at, reverse=True)

    async def update_schedule(
        self,
        schedule_id: str,
        changes: Mapping[str, Any],
        *,
        updated_at: datetime,
    ) -> MaintenanceSchedule | None:
        current = self.schedules.get(schedule_id)
        if current is None:
            return None
        updated = merge_document(current, {**changes, "updated_at": updated_at})
        self.schedules[schedule_id] = updated
        return updated

    async def insert_part(self, part: MaintenancePart) -> None:
        self.parts[part.id] = part

    async def get_part(self, part_id: str) -> MaintenancePart | None:
        return self.parts.get(part_id)

    async def list_parts(self, *, site_id: str | None = None) -> list[MaintenancePart]:
        parts = [part for part in self.parts.values() if site_id is None or part.site_id == site_id]
        return sorted(parts, key=lambda part: part.part_name)

    async def update_part(
        self,
        part_id: str,
        apply: Callable[[MaintenancePart], Mapping[str, Any]],
        *,
        updated_at: datetime,
    ) -> MaintenancePart | None:
        current = self.parts.get(part_id)
        if current is None:
            return None
        updated = merge_document(current, {**apply(current), "updated_at": updated_at})
        self.parts[part_id] = updated
        return updated

    async def delete_part(self, part_id: str) -> bool:
        return self.parts.pop(part_id, None) is not None


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def repository() -> InMemoryMaintenanceRepository:
    return InMemoryMaintenanceRepository()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def service(repository: InMemoryMaintenanceRepository, clock: StepClock) -> MaintenanceService:
    return MaintenanceService(repository, clock=clock)


@pytest.fixture
def inventory(repository: InMemoryMaintenanceRepository, clock: StepClock) -> PartsInventory:
    return PartsInventory(repository, clock=clock)
