from __future__ import annotations


class MaintenanceError(RuntimeError):
    """Base error for maintenance service issues."""


class MaintenanceNotFoundError(MaintenanceError):
    """Raised when a ticket or schedule could not be located."""


class InvalidInputError(MaintenanceError, ValueError):
    """Raised when a request is rejected before anything is written."""


class InvalidTransitionError(InvalidInputError):
    """Raised when a lifecycle transition is attempted from an illegal state."""


class MaintenanceStoreError(MaintenanceError):
    """Raised when the backing store fails to read or write."""
