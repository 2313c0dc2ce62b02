from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Mapping

import asyncpg

from .documents import encode, from_document, merge_document, to_document
from .errors import MaintenanceStoreError
from .models import (
    MaintenanceAttachment,
    MaintenanceAuditEvent,
    MaintenanceComment,
    MaintenancePart,
    MaintenanceSchedule,
    MaintenanceTicket,
)


class MaintenanceRepository:
    """Data access layer for maintenance tickets, schedules and their history.

    Every record is stored as a JSONB document next to the scalar columns used
    for filtering and ordering. Writes that carry an audit event run inside one
    transaction so the history never diverges from the ticket.
    """

    _CREATE_COUNTERS_SQL = """
    CREATE TABLE IF NOT EXISTS counters (
        id TEXT PRIMARY KEY,
        last_ticket_number INTEGER NOT NULL
    )
    """

    _CREATE_TICKETS_SQL = """
    CREATE TABLE IF NOT EXISTS maintenance_tickets (
        id TEXT PRIMARY KEY,
        ticket_number INTEGER NOT NULL,
        status TEXT NOT NULL,
        asset_type TEXT NOT NULL,
        asset_id TEXT NOT NULL,
        site_id TEXT NOT NULL,
        document JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_SCHEDULES_SQL = """
    CREATE TABLE IF NOT EXISTS maintenance_schedules (
        id TEXT PRIMARY KEY,
        asset_id TEXT NOT NULL,
        site_id TEXT NOT NULL,
        is_active BOOLEAN NOT NULL,
        next_scheduled_date TIMESTAMPTZ NOT NULL,
        document JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_AUDIT_SQL = """
    CREATE TABLE IF NOT EXISTS maintenance_audit_events (
        id TEXT PRIMARY KEY,
        maintenance_ticket_id TEXT NOT NULL REFERENCES maintenance_tickets(id),
        event_type TEXT NOT NULL,
        document JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        seq BIGSERIAL
    )
    """

    _CREATE_COMMENTS_SQL = """
    CREATE TABLE IF NOT EXISTS maintenance_comments (
        id TEXT PRIMARY KEY,
        maintenance_ticket_id TEXT NOT NULL REFERENCES maintenance_tickets(id),
        document JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_ATTACHMENTS_SQL = """
    CREATE TABLE IF NOT EXISTS maintenance_attachments (
        id TEXT PRIMARY KEY,
        maintenance_ticket_id TEXT NOT NULL REFERENCES maintenance_tickets(id),
        document JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_PARTS_SQL = """
    CREATE TABLE IF NOT EXISTS maintenance_parts (
        id TEXT PRIMARY KEY,
        site_id TEXT NOT NULL,
        part_name TEXT NOT NULL,
        quantity_available INTEGER NOT NULL CHECK (quantity_available >= 0),
        quantity_reserved INTEGER NOT NULL CHECK (quantity_reserved >= 0),
        document JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_INDEXES_SQL = """
    CREATE INDEX IF NOT EXISTS ix_maintenance_tickets_site_id ON maintenance_tickets (site_id, created_at DESC);
    CREATE INDEX IF NOT EXISTS ix_maintenance_tickets_asset_id ON maintenance_tickets (asset_id, created_at DESC);
    CREATE INDEX IF NOT EXISTS ix_maintenance_schedules_active ON maintenance_schedules (is_active, next_scheduled_date);
    CREATE INDEX IF NOT EXISTS ix_maintenance_audit_events_ticket ON maintenance_audit_events (maintenance_ticket_id, created_at);
    CREATE INDEX IF NOT EXISTS ix_maintenance_parts_site_id ON maintenance_parts (site_id, part_name);
    """

    _INCREMENT_COUNTER_SQL = """
    INSERT INTO counters (id, last_ticket_number)
    VALUES ($1, $2 + 1)
    ON CONFLICT (id) DO UPDATE
    SET last_ticket_number = counters.last_ticket_number + 1
    RETURNING last_ticket_number
    """

    _INSERT_TICKET_SQL = """
    INSERT INTO maintenance_tickets (id, ticket_number, status, asset_type, asset_id, site_id, document, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9)
    """

    _SELECT_TICKET_SQL = """
    SELECT document FROM maintenance_tickets WHERE id = $1
    """

    _SELECT_TICKET_FOR_UPDATE_SQL = """
    SELECT document FROM maintenance_tickets WHERE id = $1 FOR UPDATE
    """

    _LIST_TICKETS_SQL = """
    SELECT document FROM maintenance_tickets
    WHERE ($1::text IS NULL OR site_id = $1)
      AND ($2::text IS NULL OR asset_id = $2)
      AND ($3::timestamptz IS NULL OR created_at < $3)
    ORDER BY created_at DESC
    LIMIT $4
    """

    _UPDATE_TICKET_SQL = """
    UPDATE maintenance_tickets
    SET status = $2,
        asset_type = $3,
        asset_id = $4,
        site_id = $5,
        document = $6::jsonb,
        updated_at = $7
    WHERE id = $1
    """

    _INSERT_AUDIT_SQL = """
    INSERT INTO maintenance_audit_events (id, maintenance_ticket_id, event_type, document, created_at)
    VALUES ($1, $2, $3, $4::jsonb, $5)
    """

    _SELECT_AUDIT_ASC_SQL = """
    SELECT document FROM maintenance_audit_events
    WHERE maintenance_ticket_id = $1
    ORDER BY created_at ASC, seq ASC
    """

    _SELECT_AUDIT_DESC_SQL = """
    SELECT document FROM maintenance_audit_events
    WHERE maintenance_ticket_id = $1
    ORDER BY created_at DESC, seq DESC
    """

    _INSERT_COMMENT_SQL = """
    INSERT INTO maintenance_comments (id, maintenance_ticket_id, document, created_at)
    VALUES ($1, $2, $3::jsonb, $4)
    """

    _SELECT_COMMENTS_SQL = """
    SELECT document FROM maintenance_comments
    WHERE maintenance_ticket_id = $1
    ORDER BY created_at ASC
    """

    _INSERT_ATTACHMENT_SQL = """
    INSERT INTO maintenance_attachments (id, maintenance_ticket_id, document, created_at)
    VALUES ($1, $2, $3::jsonb, $4)
    """

    _SELECT_ATTACHMENTS_SQL = """
    SELECT document FROM maintenance_attachments
    WHERE maintenance_ticket_id = $1
    ORDER BY created_at ASC
    """

    _INSERT_SCHEDULE_SQL = """
    INSERT INTO maintenance_schedules (id, asset_id, site_id, is_active, next_scheduled_date, document, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8)
    """

    _SELECT_SCHEDULE_SQL = """
    SELECT document FROM maintenance_schedules WHERE id = $1
    """

    _SELECT_SCHEDULE_FOR_UPDATE_SQL = """
    SELECT document FROM maintenance_schedules WHERE id = $1 FOR UPDATE
    """

    _LIST_SCHEDULES_SQL = """
    SELECT document FROM maintenance_schedules
    ORDER BY created_at DESC
    """

    _LIST_ACTIVE_SCHEDULES_SQL = """
    SELECT document FROM maintenance_schedules
    WHERE is_active = TRUE
    ORDER BY next_scheduled_date ASC
    """

    _UPDATE_SCHEDULE_SQL = """
    UPDATE maintenance_schedules
    SET asset_id = $2,
        site_id = $3,
        is_active = $4,
        next_scheduled_date = $5,
        document = $6::jsonb,
        updated_at = $7
    WHERE id = $1
    """

    _INSERT_PART_SQL = """
    INSERT INTO maintenance_parts (id, site_id, part_name, quantity_available, quantity_reserved, document, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8)
    """

    _SELECT_PART_SQL = """
    SELECT document FROM maintenance_parts WHERE id = $1
    """

    _SELECT_PART_FOR_UPDATE_SQL = """
    SELECT document FROM maintenance_parts WHERE id = $1 FOR UPDATE
    """

    _LIST_PARTS_SQL = """
    SELECT document FROM maintenance_parts
    WHERE ($1::text IS NULL OR site_id = $1)
    ORDER BY part_name ASC
    """

    _UPDATE_PART_SQL = """
    UPDATE maintenance_parts
    SET site_id = $2,
        part_name = $3,
        quantity_available = $4,
        quantity_reserved = $5,
        document = $6::jsonb,
        updated_at = $7
    WHERE id = $1
    """

    _DELETE_PART_SQL = """
    DELETE FROM maintenance_parts WHERE id = $1 RETURNING id
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        async with self._connection() as connection:
            await connection.execute(self._CREATE_COUNTERS_SQL)
            await connection.execute(self._CREATE_TICKETS_SQL)
            await connection.execute(self._CREATE_SCHEDULES_SQL)
            await connection.execute(self._CREATE_AUDIT_SQL)
            await connection.execute(self._CREATE_COMMENTS_SQL)
            await connection.execute(self._CREATE_ATTACHMENTS_SQL)
            await connection.execute(self._CREATE_PARTS_SQL)
            await connection.execute(self._CREATE_INDEXES_SQL)

    async def increment_counter(self, name: str, floor: int) -> int:
        """Atomically bump the named counter, seeding it at ``floor``."""

        async with self._connection() as connection:
            value = await connection.fetchval(self._INCREMENT_COUNTER_SQL, name, floor)
        return int(value)

    async def insert_ticket(self, ticket: MaintenanceTicket, audit: MaintenanceAuditEvent) -> None:
        async with self._connection() as connection:
            async with connection.transaction():
                await connection.execute(
                    self._INSERT_TICKET_SQL,
                    ticket.id,
                    ticket.ticket_number,
                    ticket.status.value,
                    ticket.asset_type.value,
                    ticket.asset_id,
                    ticket.site_id,
                    encode(to_document(ticket)),
                    ticket.created_at,
                    ticket.updated_at,
                )
                await self._insert_audit(connection, audit)

    async def get_ticket(self, ticket_id: str) -> MaintenanceTicket | None:
        async with self._connection() as connection:
            row = await connection.fetchrow(self._SELECT_TICKET_SQL, ticket_id)
        if row is None:
            return None
        return from_document(MaintenanceTicket, row["document"])

    async def list_tickets(
        self,
        *,
        site_id: str | None = None,
        asset_id: str | None = None,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[MaintenanceTicket]:
        async with self._connection() as connection:
            rows = await connection.fetch(self._LIST_TICKETS_SQL, site_id, asset_id, created_before, limit)
        return [from_document(MaintenanceTicket, row["document"]) for row in rows]

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        updated_at: datetime,
        audit: MaintenanceAuditEvent,
    ) -> MaintenanceTicket | None:
        async with self._connection() as connection:
            async with connection.transaction():
                row = await connection.fetchrow(self._SELECT_TICKET_FOR_UPDATE_SQL, ticket_id)
                if row is None:
                    return None
                current = from_document(MaintenanceTicket, row["document"])
                updated = merge_document(current, {**changes, "updated_at": updated_at})
                await connection.execute(
                    self._UPDATE_TICKET_SQL,
                    ticket_id,
                    updated.status.value,
                    updated.asset_type.value,
                    updated.asset_id,
                    updated.site_id,
                    encode(to_document(updated)),
                    updated.updated_at,
                )
                await self._insert_audit(connection, audit)
        return updated

    async def insert_audit_event(self, event: MaintenanceAuditEvent) -> None:
        async with self._connection() as connection:
            await self._insert_audit(connection, event)

    async def list_audit_events(self, ticket_id: str, *, newest_first: bool = False) -> list[MaintenanceAuditEvent]:
        query = self._SELECT_AUDIT_DESC_SQL if newest_first else self._SELECT_AUDIT_ASC_SQL
        async with self._connection() as connection:
            rows = await connection.fetch(query, ticket_id)
        return [from_document(MaintenanceAuditEvent, row["document"]) for row in rows]

    async def insert_comment(self, comment: MaintenanceComment, audit: MaintenanceAuditEvent) -> None:
        async with self._connection() as connection:
            async with connection.transaction():
                await connection.execute(
                    self._INSERT_COMMENT_SQL,
                    comment.id,
                    comment.maintenance_ticket_id,
                    encode(to_document(comment)),
                    comment.created_at,
                )
                await self._insert_audit(connection, audit)

    async def list_comments(self, ticket_id: str) -> list[MaintenanceComment]:
        async with self._connection() as connection:
            rows = await connection.fetch(self._SELECT_COMMENTS_SQL, ticket_id)
        return [from_document(MaintenanceComment, row["document"]) for row in rows]

    async def insert_attachment(self, attachment: MaintenanceAttachment, audit: MaintenanceAuditEvent) -> None:
        async with self._connection() as connection:
            async with connection.transaction():
                await connection.execute(
                    self._INSERT_ATTACHMENT_SQL,
                    attachment.id,
                    attachment.maintenance_ticket_id,
                    encode(to_document(attachment)),
                    attachment.created_at,
                )
                await self._insert_audit(connection, audit)

    async def list_attachments(self, ticket_id: str) -> list[MaintenanceAttachment]:
        async with self._connection() as connection:
            rows = await connection.fetch(self._SELECT_ATTACHMENTS_SQL, ticket_id)
        return [from_document(MaintenanceAttachment, row["document"]) for row in rows]

    async def insert_schedule(self, schedule: MaintenanceSchedule) -> None:
        async with self._connection() as connection:
            await connection.execute(
                self._INSERT_SCHEDULE_SQL,
                schedule.id,
                schedule.asset_id,
                schedule.site_id,
                schedule.is_active,
                schedule.next_scheduled_date,
                encode(to_document(schedule)),
                schedule.created_at,
                schedule.updated_at,
            )

    async def get_schedule(self, schedule_id: str) -> MaintenanceSchedule | None:
        async with self._connection() as connection:
            row = await connection.fetchrow(self._SELECT_SCHEDULE_SQL, schedule_id)
        if row is None:
            return None
        return from_document(MaintenanceSchedule, row["document"])

    async def list_schedules(self, *, active_only: bool = False) -> list[MaintenanceSchedule]:
        query = self._LIST_ACTIVE_SCHEDULES_SQL if active_only else self._LIST_SCHEDULES_SQL
        async with self._connection() as connection:
            rows = await connection.fetch(query)
        return [from_document(MaintenanceSchedule, row["document"]) for row in rows]

    async def update_schedule(
        self,
        schedule_id: str,
        changes: Mapping[str, Any],
        *,
        updated_at: datetime,
    ) -> MaintenanceSchedule | None:
        async with self._connection() as connection:
            async with connection.transaction():
                row = await connection.fetchrow(self._SELECT_SCHEDULE_FOR_UPDATE_SQL, schedule_id)
                if row is None:
                    return None
                current = from_document(MaintenanceSchedule, row["document"])
                updated = merge_document(current, {**changes, "updated_at": updated_at})
                await connection.execute(
                    self._UPDATE_SCHEDULE_SQL,
                    schedule_id,
                    updated.asset_id,
                    updated.site_id,
                    updated.is_active,
                    updated.next_scheduled_date,
                    encode(to_document(updated)),
                    updated.updated_at,
                )
        return updated

    async def insert_part(self, part: MaintenancePart) -> None:
        async with self._connection() as connection:
            await connection.execute(
                self._INSERT_PART_SQL,
                part.id,
                part.site_id,
                part.part_name,
                part.quantity_available,
                part.quantity_reserved,
                encode(to_document(part)),
                part.created_at,
                part.updated_at,
            )

    async def get_part(self, part_id: str) -> MaintenancePart | None:
        async with self._connection() as connection:
            row = await connection.fetchrow(self._SELECT_PART_SQL, part_id)
        if row is None:
            return None
        return from_document(MaintenancePart, row["document"])

    async def list_parts(self, *, site_id: str | None = None) -> list[MaintenancePart]:
        async with self._connection() as connection:
            rows = await connection.fetch(self._LIST_PARTS_SQL, site_id)
        return [from_document(MaintenancePart, row["document"]) for row in rows]

    async def update_part(
        self,
        part_id: str,
        apply: Callable[[MaintenancePart], Mapping[str, Any]],
        *,
        updated_at: datetime,
    ) -> MaintenancePart | None:
        """Lock the part row and write the changes ``apply`` derives from it.

        ``apply`` receives the locked row. Exceptions it raises roll the
        transaction back.
        """

        async with self._connection() as connection:
            async with connection.transaction():
                row = await connection.fetchrow(self._SELECT_PART_FOR_UPDATE_SQL, part_id)
                if row is None:
                    return None
                current = from_document(MaintenancePart, row["document"])
                updated = merge_document(current, {**apply(current), "updated_at": updated_at})
                await connection.execute(
                    self._UPDATE_PART_SQL,
                    part_id,
                    updated.site_id,
                    updated.part_name,
                    updated.quantity_available,
                    updated.quantity_reserved,
                    encode(to_document(updated)),
                    updated.updated_at,
                )
        return updated

    async def delete_part(self, part_id: str) -> bool:
        async with self._connection() as connection:
            deleted = await connection.fetchval(self._DELETE_PART_SQL, part_id)
        return deleted is not None

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        try:
            async with self._pool.acquire() as connection:
                yield connection
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise MaintenanceStoreError(f"Maintenance store failure: {exc}") from exc

    async def _insert_audit(self, connection: Any, event: MaintenanceAuditEvent) -> None:
        await connection.execute(
            self._INSERT_AUDIT_SQL,
            event.id,
            event.maintenance_ticket_id,
            event.event_type.value,
            encode(to_document(event)),
            event.created_at,
        )
