from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status

from fleetcare.maintenance.errors import (
    InvalidInputError,
    InvalidTransitionError,
    MaintenanceNotFoundError,
    MaintenanceStoreError,
)


@contextmanager
def service_errors() -> Iterator[None]:
    """Translate maintenance errors raised inside the block into HTTP errors."""

    try:
        yield
    except MaintenanceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except MaintenanceStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
