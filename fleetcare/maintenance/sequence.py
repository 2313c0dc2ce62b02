from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from .errors import MaintenanceStoreError

logger = logging.getLogger(__name__)

COUNTER_NAME = "maintenanceTicket"
DEFAULT_FLOOR = 5000


class CounterStore(Protocol):
    async def increment_counter(self, name: str, floor: int) -> int:
        ...


class SequenceAllocator:
    """Hand out human-facing maintenance ticket numbers from a shared counter.

    The counter row is seeded at ``floor`` so the first number issued is
    ``floor + 1``. When the store is unavailable a seconds timestamp is returned
    instead, so ticket creation never blocks on numbering. Fallback numbers are
    not guaranteed to be monotonic with the counter.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        floor: int = DEFAULT_FLOOR,
        counter_name: str = COUNTER_NAME,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._floor = floor
        self._counter_name = counter_name
        self._clock = clock

    async def next_number(self) -> int:
        try:
            return await self._store.increment_counter(self._counter_name, self._floor)
        except MaintenanceStoreError:
            fallback = int(self._clock())
            logger.warning(
                "Ticket counter %r unavailable, falling back to timestamp number %d",
                self._counter_name,
                fallback,
                exc_info=True,
            )
            return fallback
