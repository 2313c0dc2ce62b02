from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from fleetcare.dependencies import maintenance as maintenance_deps
from fleetcare.dependencies.auth import Role, User
from fleetcare.main import create_app
from fleetcare.maintenance.errors import InvalidInputError, InvalidTransitionError, MaintenanceNotFoundError
from fleetcare.maintenance.models import (
    ActorRole,
    AssetType,
    AuditEventType,
    AuditOrder,
    MaintenanceAuditEvent,
    MaintenancePriority,
    MaintenanceTicket,
    MaintenanceTicketDraft,
    MaintenanceType,
    PartUsage,
)
from fleetcare.maintenance.state import MaintenanceStatus


def _make_ticket(*, status: MaintenanceStatus = MaintenanceStatus.PENDING_APPROVAL) -> MaintenanceTicket:
    now = datetime.now(timezone.utc)
    return MaintenanceTicket(
        id="m-1",
        ticket_number=5001,
        title="Fan replacement",
        maintenance_type=MaintenanceType.CORRECTIVE,
        priority=MaintenancePriority.HIGH,
        status=status,
        asset_type=AssetType.ASIC,
        asset_id="asic-42",
        site_id="site-a",
        created_by="operator",
        created_by_role=ActorRole.OPERATOR,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def maintenance_client():
    app = create_app()
    service = AsyncMock()

    admin = User("admin", (Role.ADMIN, Role.OPERATOR, Role.CLIENT))
    operator = User("operator", (Role.OPERATOR, Role.CLIENT))
    client_user = User("client", (Role.CLIENT,))

    async def override_service():
        return service

    app.dependency_overrides[maintenance_deps.get_maintenance_service] = override_service
    app.dependency_overrides[maintenance_deps.require_admin] = lambda: admin
    app.dependency_overrides[maintenance_deps.require_operator] = lambda: operator
    app.dependency_overrides[maintenance_deps.require_client] = lambda: client_user

    client = TestClient(app)
    try:
        yield client, service
    finally:
        app.dependency_overrides.clear()


def test_create_ticket_endpoint_returns_created(maintenance_client):
    client, service = maintenance_client
    service.create_ticket = AsyncMock(return_value=_make_ticket())

    response = client.post(
        "/maintenance/tickets",
        json={
            "title": "Fan replacement",
            "maintenance_type": "corrective",
            "priority": "high",
            "asset_type": "asic",
            "asset_id": "asic-42",
            "site_id": "site-a",
        },
    )

    assert response.status_code == 201
    assert response.json()["ticket_number"] == 5001
    draft = service.create_ticket.await_args.args[0]
    assert isinstance(draft, MaintenanceTicketDraft)
    assert draft.created_by == "operator"
    assert draft.created_by_role is ActorRole.OPERATOR
    assert draft.priority is MaintenancePriority.HIGH


def test_create_ticket_requires_title(maintenance_client):
    client, service = maintenance_client

    response = client.post(
        "/maintenance/tickets",
        json={"title": "", "asset_type": "asic", "asset_id": "asic-42", "site_id": "site-a"},
    )

    assert response.status_code == 422
    service.create_ticket.assert_not_awaited()


def test_list_tickets_passes_filters(maintenance_client):
    client, service = maintenance_client
    service.list_tickets = AsyncMock(return_value=[_make_ticket()])

    response = client.get("/maintenance/tickets", params={"site_id": "site-a", "limit": 10})

    assert response.status_code == 200
    assert len(response.json()) == 1
    service.list_tickets.assert_awaited_with(site_id="site-a", asset_id=None, created_before=None, limit=10)


def test_get_ticket_returns_not_found(maintenance_client):
    client, service = maintenance_client
    service.get_ticket = AsyncMock(side_effect=MaintenanceNotFoundError("Maintenance ticket m-9 not found"))

    response = client.get("/maintenance/tickets/m-9")

    assert response.status_code == 404


def test_update_ticket_sends_only_provided_fields(maintenance_client):
    client, service = maintenance_client
    service.update_ticket = AsyncMock(return_value=_make_ticket())

    response = client.patch("/maintenance/tickets/m-1", json={"title": "Fan replacement (rack 3)", "description": None})

    assert response.status_code == 200
    service.update_ticket.assert_awaited_with(
        "m-1",
        {"title": "Fan replacement (rack 3)"},
        actor="operator",
        actor_role=ActorRole.OPERATOR,
    )


def test_update_ticket_rejects_empty_payload(maintenance_client):
    client, _ = maintenance_client

    response = client.patch("/maintenance/tickets/m-1", json={})

    assert response.status_code == 400


@pytest.mark.parametrize("payload", [{"status": "verified"}, {"status": "completed", "title": "done"}, {"verified_by": "operator"}])
def test_update_ticket_rejects_lifecycle_fields(maintenance_client, payload):
    client, service = maintenance_client

    response = client.patch("/maintenance/tickets/m-1", json=payload)

    assert response.status_code == 422
    service.update_ticket.assert_not_awaited()


def test_approve_returns_conflict_on_invalid_transition(maintenance_client):
    client, service = maintenance_client
    service.approve = AsyncMock(side_effect=InvalidTransitionError("nope"))

    response = client.post("/maintenance/tickets/m-1/approve")

    assert response.status_code == 409


def test_approve_uses_admin_identity(maintenance_client):
    client, service = maintenance_client
    service.approve = AsyncMock(return_value=_make_ticket(status=MaintenanceStatus.APPROVED))

    response = client.post("/maintenance/tickets/m-1/approve")

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    service.approve.assert_awaited_with("m-1", actor="admin", actor_role=ActorRole.ADMIN)


def test_await_parts_accepts_optional_reason(maintenance_client):
    client, service = maintenance_client
    service.await_parts = AsyncMock(return_value=_make_ticket(status=MaintenanceStatus.AWAITING_PARTS))

    without_body = client.post("/maintenance/tickets/m-1/await-parts")
    with_body = client.post("/maintenance/tickets/m-1/await-parts", json={"reason": "fan on backorder"})

    assert without_body.status_code == 200
    assert with_body.status_code == 200
    assert service.await_parts.await_args_list[0].kwargs["reason"] is None
    assert service.await_parts.await_args_list[1].kwargs["reason"] == "fan on backorder"


def test_complete_work_forwards_payload(maintenance_client):
    client, service = maintenance_client
    service.complete_work = AsyncMock(return_value=_make_ticket(status=MaintenanceStatus.COMPLETED))

    response = client.post(
        "/maintenance/tickets/m-1/complete",
        json={"work_performed": "replaced fan", "labor_hours": 2.5},
    )

    assert response.status_code == 200
    service.complete_work.assert_awaited_with(
        "m-1",
        actor="operator",
        actor_role=ActorRole.OPERATOR,
        work_performed="replaced fan",
        labor_hours=2.5,
    )


def test_verify_maps_invalid_input_to_unprocessable(maintenance_client):
    client, service = maintenance_client
    service.verify = AsyncMock(side_effect=InvalidInputError("bad"))

    response = client.post("/maintenance/tickets/m-1/verify", json={"notes": "ok"})

    assert response.status_code == 422


def test_add_part_builds_part_usage(maintenance_client):
    client, service = maintenance_client
    service.add_part = AsyncMock(return_value=_make_ticket())

    response = client.post(
        "/maintenance/tickets/m-1/parts",
        json={"part_name": "120mm fan", "quantity": 2, "cost": 15.5},
    )

    assert response.status_code == 200
    part = service.add_part.await_args.args[1]
    assert part == PartUsage(part_name="120mm fan", quantity=2, part_number=None, cost=15.5)


def test_get_audit_endpoint_passes_order(maintenance_client):
    client, service = maintenance_client
    event = MaintenanceAuditEvent(
        id="a-1",
        maintenance_ticket_id="m-1",
        event_type=AuditEventType.CREATED,
        description="Maintenance ticket #5001 created: Fan replacement",
        performed_by="operator",
        performed_by_role=ActorRole.OPERATOR,
        created_at=datetime.now(timezone.utc),
        new_value="pending_approval",
    )
    service.get_audit_log = AsyncMock(return_value=[event])

    response = client.get("/maintenance/tickets/m-1/audit", params={"order": "newest_first"})

    assert response.status_code == 200
    assert response.json()[0]["event_type"] == "created"
    service.get_audit_log.assert_awaited_with("m-1", order=AuditOrder.NEWEST_FIRST)


def test_missing_service_returns_unavailable():
    app = create_app()
    client = TestClient(app)

    response = client.get("/maintenance/tickets")

    assert response.status_code == 503


def test_ping_reports_service_state():
    app = create_app()
    client = TestClient(app)

    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "maintenance": "unavailable"}
