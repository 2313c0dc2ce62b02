from datetime import datetime, timezone

import pytest

from fleetcare.maintenance.audit import AuditRecorder
from fleetcare.maintenance.models import ActorRole, AuditEventType, AuditOrder


@pytest.mark.asyncio
async def test_record_and_list_in_both_orders(repository, clock):
    recorder = AuditRecorder(repository, clock=clock)

    first = recorder.build("m-1", AuditEventType.CREATED, "created", actor="ops", actor_role=ActorRole.OPERATOR)
    second = recorder.build(
        "m-1",
        AuditEventType.APPROVED,
        "approved",
        actor="boss",
        actor_role=ActorRole.ADMIN,
        previous_value="pending_approval",
        new_value="approved",
    )
    other = recorder.build("m-2", AuditEventType.CREATED, "created", actor="ops", actor_role=ActorRole.OPERATOR)
    for event in (first, second, other):
        assert await recorder.record(event) == event.id

    oldest = await recorder.list_for("m-1", AuditOrder.OLDEST_FIRST)
    newest = await recorder.list_for("m-1", AuditOrder.NEWEST_FIRST)

    assert [event.id for event in oldest] == [first.id, second.id]
    assert [event.id for event in newest] == [second.id, first.id]
    assert oldest[1].previous_value == "pending_approval"
    assert oldest[1].new_value == "approved"


def test_build_stamps_clock_and_copies_metadata(repository):
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    recorder = AuditRecorder(repository, clock=lambda: now)
    metadata = {"action": "approve"}

    event = recorder.build(
        "m-1",
        AuditEventType.APPROVED,
        "approved",
        actor="boss",
        actor_role=ActorRole.ADMIN,
        metadata=metadata,
    )
    metadata["action"] = "changed"

    assert event.created_at == now
    assert event.metadata == {"action": "approve"}
    assert event.id
