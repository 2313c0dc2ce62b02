"""Conversion between maintenance dataclasses and JSON documents."""

from __future__ import annotations

import json
from typing import Any, Mapping, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from .errors import InvalidInputError
from .models import (
    MaintenanceAttachment,
    MaintenanceAuditEvent,
    MaintenanceComment,
    MaintenancePart,
    MaintenanceSchedule,
    MaintenanceTicket,
)

T = TypeVar("T")

_ADAPTERS: dict[type, TypeAdapter[Any]] = {
    model: TypeAdapter(model)
    for model in (
        MaintenanceTicket,
        MaintenanceSchedule,
        MaintenanceAuditEvent,
        MaintenanceComment,
        MaintenanceAttachment,
        MaintenancePart,
    )
}


def _adapter(model: type[T]) -> TypeAdapter[T]:
    return _ADAPTERS[model]


def to_document(record: Any) -> dict[str, Any]:
    """Dump a record to JSON-compatible primitives."""

    return _adapter(type(record)).dump_python(record, mode="json")


def from_document(model: type[T], document: Mapping[str, Any] | str) -> T:
    if isinstance(document, str):
        document = json.loads(document)
    return _adapter(model).validate_python(dict(document))


def merge_document(record: T, changes: Mapping[str, Any]) -> T:
    """Return a copy of ``record`` with ``changes`` applied and validated.

    Values in ``changes`` may be domain objects or their wire representation
    (``"high"`` for a priority, ISO strings for timestamps).
    """

    model = type(record)
    merged = {**to_document(record), **to_jsonable_python(dict(changes))}
    try:
        return _adapter(model).validate_python(merged)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid {model.__name__} fields: {exc.error_count()} error(s)") from exc


def encode(document: Mapping[str, Any]) -> str:
    return json.dumps(document, sort_keys=True)
