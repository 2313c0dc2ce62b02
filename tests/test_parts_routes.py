from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from fleetcare.dependencies import maintenance as maintenance_deps
from fleetcare.dependencies.auth import Role, User
from fleetcare.main import create_app
from fleetcare.maintenance.errors import InvalidInputError, MaintenanceNotFoundError
from fleetcare.maintenance.models import MaintenancePart, MaintenancePartDraft

NOW = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def _make_part(**overrides) -> MaintenancePart:
    values = {
        "id": "part-1",
        "part_name": "120mm fan",
        "site_id": "site-a",
        "quantity_available": 10,
        "part_number": "FAN-120",
        "unit_cost": 15.5,
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return MaintenancePart(**values)


@pytest.fixture
def parts_client():
    app = create_app()
    inventory = AsyncMock()

    admin = User("admin", (Role.ADMIN, Role.OPERATOR, Role.CLIENT))
    operator = User("operator", (Role.OPERATOR, Role.CLIENT))
    client_user = User("client", (Role.CLIENT,))

    async def override_inventory():
        return inventory

    app.dependency_overrides[maintenance_deps.get_parts_inventory] = override_inventory
    app.dependency_overrides[maintenance_deps.require_admin] = lambda: admin
    app.dependency_overrides[maintenance_deps.require_operator] = lambda: operator
    app.dependency_overrides[maintenance_deps.require_client] = lambda: client_user

    client = TestClient(app)
    try:
        yield client, inventory
    finally:
        app.dependency_overrides.clear()


def test_create_part_builds_draft(parts_client):
    client, inventory = parts_client
    inventory.create_part = AsyncMock(return_value=_make_part())

    response = client.post(
        "/maintenance/parts",
        json={"part_name": "120mm fan", "site_id": "site-a", "quantity_available": 10, "unit_cost": 15.5},
    )

    assert response.status_code == 201
    assert response.json()["quantity_reserved"] == 0
    draft = inventory.create_part.await_args.args[0]
    assert draft == MaintenancePartDraft(part_name="120mm fan", site_id="site-a", quantity_available=10, unit_cost=15.5)


def test_create_part_rejects_negative_stock(parts_client):
    client, inventory = parts_client

    response = client.post("/maintenance/parts", json={"part_name": "fan", "site_id": "site-a", "quantity_available": -1})

    assert response.status_code == 422
    inventory.create_part.assert_not_awaited()


def test_list_parts_filters_by_site(parts_client):
    client, inventory = parts_client
    inventory.list_parts = AsyncMock(return_value=[_make_part()])

    response = client.get("/maintenance/parts", params={"site_id": "site-a"})

    assert response.status_code == 200
    assert response.json()[0]["part_name"] == "120mm fan"
    inventory.list_parts.assert_awaited_with(site_id="site-a")


def test_update_part_sends_only_provided_fields(parts_client):
    client, inventory = parts_client
    inventory.update_part = AsyncMock(return_value=_make_part(unit_cost=18.0))

    response = client.patch("/maintenance/parts/part-1", json={"unit_cost": 18.0, "description": None})

    assert response.status_code == 200
    inventory.update_part.assert_awaited_with("part-1", {"unit_cost": 18.0})


def test_update_part_rejects_unknown_fields(parts_client):
    client, inventory = parts_client

    response = client.patch("/maintenance/parts/part-1", json={"id": "part-2"})

    assert response.status_code == 422
    inventory.update_part.assert_not_awaited()


def test_delete_part(parts_client):
    client, inventory = parts_client
    inventory.delete_part = AsyncMock(return_value=None)

    response = client.delete("/maintenance/parts/part-1")

    assert response.status_code == 204
    inventory.delete_part.assert_awaited_with("part-1")


def test_delete_missing_part_is_not_found(parts_client):
    client, inventory = parts_client
    inventory.delete_part = AsyncMock(side_effect=MaintenanceNotFoundError("Maintenance part part-9 not found"))

    response = client.delete("/maintenance/parts/part-9")

    assert response.status_code == 404


def test_reserve_and_consume_forward_quantity(parts_client):
    client, inventory = parts_client
    inventory.reserve_part = AsyncMock(return_value=_make_part(quantity_reserved=3))
    inventory.consume_part = AsyncMock(return_value=_make_part(quantity_available=7))

    reserved = client.post("/maintenance/parts/part-1/reserve", json={"quantity": 3})
    consumed = client.post("/maintenance/parts/part-1/consume", json={"quantity": 3})

    assert reserved.status_code == 200
    assert reserved.json()["quantity_reserved"] == 3
    assert consumed.json()["quantity_available"] == 7
    inventory.reserve_part.assert_awaited_with("part-1", 3)
    inventory.consume_part.assert_awaited_with("part-1", 3)


def test_reserve_beyond_stock_is_unprocessable(parts_client):
    client, inventory = parts_client
    inventory.reserve_part = AsyncMock(side_effect=InvalidInputError("Cannot reserve 20 x 120mm fan: only 10 unreserved"))

    response = client.post("/maintenance/parts/part-1/reserve", json={"quantity": 20})

    assert response.status_code == 422


def test_zero_quantity_is_rejected_before_inventory(parts_client):
    client, inventory = parts_client

    response = client.post("/maintenance/parts/part-1/consume", json={"quantity": 0})

    assert response.status_code == 422
    inventory.consume_part.assert_not_awaited()


def test_missing_inventory_returns_unavailable():
    app = create_app()
    client = TestClient(app)

    response = client.get("/maintenance/parts")

    assert response.status_code == 503
