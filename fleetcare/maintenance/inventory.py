"""Spare part stock kept per site."""

from __future__ import annotations

import logging
import uuid
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Protocol

from .errors import InvalidInputError, MaintenanceNotFoundError
from .models import MaintenancePart, MaintenancePartDraft

logger = logging.getLogger(__name__)

_PART_FIELDS = frozenset(f.name for f in fields(MaintenancePart))
_IMMUTABLE_PART_FIELDS = frozenset({"id", "created_at", "updated_at"})


class PartStore(Protocol):
    async def insert_part(self, part: MaintenancePart) -> None:
        ...

    async def get_part(self, part_id: str) -> MaintenancePart | None:
        ...

    async def list_parts(self, *, site_id: str | None = None) -> list[MaintenancePart]:
        ...

    async def update_part(
        self,
        part_id: str,
        apply: Callable[[MaintenancePart], Mapping[str, Any]],
        *,
        updated_at: datetime,
    ) -> MaintenancePart | None:
        ...

    async def delete_part(self, part_id: str) -> bool:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_quantities(available: int, reserved: int) -> None:
    if available < 0:
        raise InvalidInputError("Available quantity cannot be negative")
    if reserved < 0:
        raise InvalidInputError("Reserved quantity cannot be negative")
    if reserved > available:
        raise InvalidInputError(f"Reserved quantity {reserved} exceeds available quantity {available}")


def _positive(quantity: int) -> None:
    if quantity <= 0:
        raise InvalidInputError("Quantity must be positive")


class PartsInventory:
    """Catalogue of stocked parts with reserve and consume bookkeeping.

    Reserving holds units for planned work without removing them from stock.
    Consuming removes units from stock and releases up to the same number of
    reserved units.
    """

    def __init__(self, store: PartStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    async def create_part(self, draft: MaintenancePartDraft) -> MaintenancePart:
        if not draft.part_name or not draft.part_name.strip():
            raise InvalidInputError("Part name is required")
        if not draft.site_id or not draft.site_id.strip():
            raise InvalidInputError("Part site is required")
        if draft.unit_cost is not None and draft.unit_cost < 0:
            raise InvalidInputError("Unit cost cannot be negative")
        _check_quantities(draft.quantity_available, 0)

        now = self._clock()
        part = MaintenancePart(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            **{f.name: getattr(draft, f.name) for f in fields(draft)},
        )
        await self._store.insert_part(part)
        logger.info("Stocked part %s (%s) at %s with %d available", part.part_name, part.id, part.site_id, part.quantity_available)
        return part

    async def get_part(self, part_id: str) -> MaintenancePart:
        part = await self._store.get_part(part_id)
        if part is None:
            raise MaintenanceNotFoundError(f"Maintenance part {part_id} not found")
        return part

    async def list_parts(self, *, site_id: str | None = None) -> list[MaintenancePart]:
        """Return parts ordered by name, optionally limited to one site."""

        return await self._store.list_parts(site_id=site_id)

    async def update_part(self, part_id: str, changes: Mapping[str, Any]) -> MaintenancePart:
        clean = {key: value for key, value in changes.items() if value is not None}
        if not clean:
            raise InvalidInputError("No fields provided for update")
        unknown = set(clean) - _PART_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown maintenance part fields: {', '.join(sorted(unknown))}")
        immutable = set(clean) & _IMMUTABLE_PART_FIELDS
        if immutable:
            raise InvalidInputError(f"Fields cannot be updated: {', '.join(sorted(immutable))}")
        if "part_name" in clean and not str(clean["part_name"]).strip():
            raise InvalidInputError("Part name is required")
        if clean.get("unit_cost") is not None and clean["unit_cost"] < 0:
            raise InvalidInputError("Unit cost cannot be negative")

        def apply(current: MaintenancePart) -> Mapping[str, Any]:
            _check_quantities(
                clean.get("quantity_available", current.quantity_available),
                clean.get("quantity_reserved", current.quantity_reserved),
            )
            return clean

        return await self._modify(part_id, apply)

    async def delete_part(self, part_id: str) -> None:
        if not await self._store.delete_part(part_id):
            raise MaintenanceNotFoundError(f"Maintenance part {part_id} not found")
        logger.info("Deleted maintenance part %s", part_id)

    async def reserve_part(self, part_id: str, quantity: int) -> MaintenancePart:
        _positive(quantity)

        def apply(current: MaintenancePart) -> Mapping[str, Any]:
            unreserved = current.quantity_available - current.quantity_reserved
            if quantity > unreserved:
                raise InvalidInputError(
                    f"Cannot reserve {quantity} x {current.part_name}: only {unreserved} unreserved"
                )
            return {"quantity_reserved": current.quantity_reserved + quantity}

        part = await self._modify(part_id, apply)
        logger.info("Reserved %d x %s (%s)", quantity, part.part_name, part_id)
        return part

    async def consume_part(self, part_id: str, quantity: int) -> MaintenancePart:
        _positive(quantity)

        def apply(current: MaintenancePart) -> Mapping[str, Any]:
            if quantity > current.quantity_available:
                raise InvalidInputError(
                    f"Cannot consume {quantity} x {current.part_name}: only {current.quantity_available} available"
                )
            return {
                "quantity_available": current.quantity_available - quantity,
                "quantity_reserved": max(current.quantity_reserved - quantity, 0),
            }

        part = await self._modify(part_id, apply)
        logger.info("Consumed %d x %s (%s), %d left", quantity, part.part_name, part_id, part.quantity_available)
        return part

    async def _modify(
        self,
        part_id: str,
        apply: Callable[[MaintenancePart], Mapping[str, Any]],
    ) -> MaintenancePart:
        updated = await self._store.update_part(part_id, apply, updated_at=self._clock())
        if updated is None:
            raise MaintenanceNotFoundError(f"Maintenance part {part_id} not found")
        return updated
