"""Interfaces to systems outside the maintenance aggregate."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

import asyncpg

from .errors import MaintenanceNotFoundError, MaintenanceStoreError
from .models import AssetType

logger = logging.getLogger(__name__)


class OriginatingTicketCloser(Protocol):
    """Closes the issue ticket a maintenance ticket was spawned from."""

    async def close_ticket(self, ticket_id: str) -> None:
        ...


class AssetDirectory(Protocol):
    """Resolve an asset reference to a display name. Used for presentation only."""

    async def display_name(self, asset_type: AssetType, asset_id: str) -> str | None:
        ...


class PostgresIssueTicketCloser:
    """Close issue tickets stored in the shared ``tickets`` table."""

    _CLOSE_TICKET_SQL = """
    UPDATE tickets
    SET status = 'closed',
        resolved_at = $2,
        updated_at = $2
    WHERE id = $1
    RETURNING id
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def close_ticket(self, ticket_id: str) -> None:
        now = datetime.now(timezone.utc)
        try:
            async with self._pool.acquire() as connection:
                row = await connection.fetchrow(self._CLOSE_TICKET_SQL, ticket_id, now)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise MaintenanceStoreError(f"Failed to close originating ticket {ticket_id}: {exc}") from exc
        if row is None:
            raise MaintenanceNotFoundError(f"Originating ticket {ticket_id} not found")
        logger.info("Closed originating ticket %s", ticket_id)
