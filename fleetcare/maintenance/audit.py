from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Protocol

from .models import ActorRole, AuditEventType, AuditOrder, MaintenanceAuditEvent


class AuditStore(Protocol):
    async def insert_audit_event(self, event: MaintenanceAuditEvent) -> None:
        ...

    async def list_audit_events(self, ticket_id: str, *, newest_first: bool = False) -> list[MaintenanceAuditEvent]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditRecorder:
    """Append-only log of the actions performed on maintenance tickets.

    Events are never updated or deleted. The events of a ticket, read
    oldest first, reconstruct its full history.
    """

    def __init__(self, store: AuditStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def build(
        self,
        ticket_id: str,
        event_type: AuditEventType,
        description: str,
        *,
        actor: str,
        actor_role: ActorRole,
        previous_value: str | None = None,
        new_value: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> MaintenanceAuditEvent:
        """Create an event without writing it; the caller persists it with its primary change."""

        return MaintenanceAuditEvent(
            id=str(uuid.uuid4()),
            maintenance_ticket_id=ticket_id,
            event_type=event_type,
            description=description,
            performed_by=actor,
            performed_by_role=actor_role,
            previous_value=previous_value,
            new_value=new_value,
            metadata=dict(metadata or {}),
            created_at=self._clock(),
        )

    async def record(self, event: MaintenanceAuditEvent) -> str:
        await self._store.insert_audit_event(event)
        return event.id

    async def list_for(self, ticket_id: str, order: AuditOrder) -> list[MaintenanceAuditEvent]:
        return await self._store.list_audit_events(ticket_id, newest_first=order is AuditOrder.NEWEST_FIRST)
