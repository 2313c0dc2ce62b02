"""Expansion of recurrence definitions into virtual calendar occurrences.

Everything here is pure: no I/O, no clock. Expanding the same schedule
snapshot twice yields identical occurrences.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from .errors import InvalidInputError
from .models import (
    Frequency,
    MaintenanceSchedule,
    MaintenanceTicket,
    Occurrence,
    PersistedOccurrence,
    VirtualOccurrence,
)

DEFAULT_MAX_OCCURRENCES = 50
VIRTUAL_NUMBER_BASE = 9000
VIRTUAL_NUMBER_BAND = 1000

_MONTHS_PER_STEP = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def virtual_ticket_number(schedule_id: str) -> int:
    """Fold a schedule id into the 9000-9999 band.

    Polynomial rolling hash (``h * 31 + code unit``) over the UTF-16 code units
    of the id, wrapped to a signed 32-bit integer. Different schedules may share
    a number.
    """

    value = 0
    encoded = schedule_id.encode("utf-16-le")
    for offset in range(0, len(encoded), 2):
        unit = int.from_bytes(encoded[offset : offset + 2], "little")
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return VIRTUAL_NUMBER_BASE + abs(value) % VIRTUAL_NUMBER_BAND


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the end of the target month."""

    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance(anchor: datetime, frequency: Frequency, steps: int) -> datetime:
    """Return ``anchor`` moved forward by ``steps`` units of ``frequency``."""

    if frequency is Frequency.DAILY:
        return anchor + timedelta(days=steps)
    if frequency is Frequency.WEEKLY:
        return anchor + timedelta(weeks=steps)
    return add_months(anchor, _MONTHS_PER_STEP[frequency] * steps)


def occurrence_id(schedule_id: str, when: datetime) -> str:
    when = ensure_utc(when)
    millis = int(when.replace(microsecond=0).timestamp()) * 1000 + when.microsecond // 1000
    return f"recurring-{schedule_id}-{millis}"


class ScheduleExpander:
    """Generate a bounded list of virtual occurrences for a schedule.

    Occurrences start at ``next_scheduled_date`` and stop at the first date past
    the horizon or after ``max_occurrences`` items. The horizon is ``end_date``
    when set, otherwise ``start_date`` plus ``horizon`` (one calendar year when
    no explicit horizon is configured). A date falling exactly on the horizon is
    included.
    """

    def __init__(
        self,
        *,
        max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
        horizon: timedelta | None = None,
    ) -> None:
        if max_occurrences < 1:
            raise ValueError("max_occurrences must be positive")
        self._max_occurrences = max_occurrences
        self._horizon = horizon

    def horizon_for(self, schedule: MaintenanceSchedule) -> datetime:
        if schedule.end_date is not None:
            return ensure_utc(schedule.end_date)
        start = ensure_utc(schedule.start_date)
        if self._horizon is not None:
            return start + self._horizon
        return add_months(start, 12)

    def expand(self, schedule: MaintenanceSchedule) -> list[VirtualOccurrence]:
        if not schedule.is_active:
            return []
        if schedule.frequency_value < 1:
            raise InvalidInputError(f"Schedule {schedule.id} has non-positive frequency value")

        anchor = ensure_utc(schedule.next_scheduled_date)
        horizon = self.horizon_for(schedule)
        number = virtual_ticket_number(schedule.id)

        occurrences: list[VirtualOccurrence] = []
        while len(occurrences) < self._max_occurrences:
            when = advance(anchor, schedule.frequency, schedule.frequency_value * len(occurrences))
            if when > horizon:
                break
            occurrences.append(self._occurrence(schedule, when, number))
        return occurrences

    def expand_all(self, schedules: Iterable[MaintenanceSchedule]) -> list[VirtualOccurrence]:
        occurrences: list[VirtualOccurrence] = []
        for schedule in schedules:
            occurrences.extend(self.expand(schedule))
        return occurrences

    @staticmethod
    def _occurrence(schedule: MaintenanceSchedule, when: datetime, number: int) -> VirtualOccurrence:
        template = schedule.ticket_template
        return VirtualOccurrence(
            id=occurrence_id(schedule.id, when),
            ticket_number=number,
            schedule_id=schedule.id,
            scheduled_date=when,
            title=template.title,
            description=template.description,
            maintenance_type=schedule.maintenance_type,
            priority=template.priority,
            asset_type=schedule.asset_type,
            asset_id=schedule.asset_id,
            site_id=schedule.site_id,
            estimated_duration=template.estimated_duration,
            assigned_to=tuple(template.assigned_to),
            created_by=schedule.created_by,
        )


def occurrence_date(item: Occurrence) -> datetime:
    match item:
        case PersistedOccurrence(ticket=ticket):
            return ensure_utc(ticket.scheduled_date or ticket.created_at)
        case VirtualOccurrence(scheduled_date=when):
            return ensure_utc(when)
    raise TypeError(f"Unsupported occurrence: {item!r}")


def merge_occurrences(
    tickets: Sequence[MaintenanceTicket],
    virtual: Sequence[VirtualOccurrence],
) -> list[Occurrence]:
    """Combine real tickets and virtual occurrences ordered by date.

    A virtual occurrence is dropped when a persisted ticket already exists for
    the same schedule and date.
    """

    materialized = {
        (ticket.recurring_schedule_id, ensure_utc(ticket.scheduled_date))
        for ticket in tickets
        if ticket.recurring_schedule_id and ticket.scheduled_date is not None
    }
    merged: list[Occurrence] = [PersistedOccurrence(ticket) for ticket in tickets]
    merged.extend(
        item for item in virtual if (item.schedule_id, ensure_utc(item.scheduled_date)) not in materialized
    )
    return sorted(merged, key=occurrence_date)
