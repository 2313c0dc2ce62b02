from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Response, status

from fleetcare.api.errors import service_errors
from fleetcare.api.schemas import PartCreateRequest, PartQuantityRequest, PartResponse, PartUpdateRequest
from fleetcare.dependencies.maintenance import AdminUser, ClientUser, OperatorUser, PartsInventoryDep
from fleetcare.maintenance.models import MaintenancePartDraft

router = APIRouter(prefix="/maintenance/parts", tags=["maintenance-parts"])


@router.post("", response_model=PartResponse, status_code=status.HTTP_201_CREATED)
async def create_part(payload: PartCreateRequest, inventory: PartsInventoryDep, _: AdminUser) -> PartResponse:
    with service_errors():
        part = await inventory.create_part(MaintenancePartDraft(**payload.model_dump()))
    return PartResponse.model_validate(part)


@router.get("", response_model=list[PartResponse])
async def list_parts(
    inventory: PartsInventoryDep,
    _: ClientUser,
    site_id: str | None = Query(default=None),
) -> list[PartResponse]:
    with service_errors():
        parts = await inventory.list_parts(site_id=site_id)
    return [PartResponse.model_validate(part) for part in parts]


@router.get("/{part_id}", response_model=PartResponse)
async def get_part(part_id: str, inventory: PartsInventoryDep, _: ClientUser) -> PartResponse:
    with service_errors():
        part = await inventory.get_part(part_id)
    return PartResponse.model_validate(part)


@router.patch("/{part_id}", response_model=PartResponse)
async def update_part(
    part_id: str,
    payload: PartUpdateRequest,
    inventory: PartsInventoryDep,
    _: AdminUser,
) -> PartResponse:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields provided for update")
    with service_errors():
        part = await inventory.update_part(part_id, changes)
    return PartResponse.model_validate(part)


@router.delete("/{part_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_part(part_id: str, inventory: PartsInventoryDep, _: AdminUser) -> Response:
    with service_errors():
        await inventory.delete_part(part_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{part_id}/reserve", response_model=PartResponse)
async def reserve_part(
    part_id: str,
    payload: PartQuantityRequest,
    inventory: PartsInventoryDep,
    _: OperatorUser,
) -> PartResponse:
    with service_errors():
        part = await inventory.reserve_part(part_id, payload.quantity)
    return PartResponse.model_validate(part)


@router.post("/{part_id}/consume", response_model=PartResponse)
async def consume_part(
    part_id: str,
    payload: PartQuantityRequest,
    inventory: PartsInventoryDep,
    _: OperatorUser,
) -> PartResponse:
    with service_errors():
        part = await inventory.consume_part(part_id, payload.quantity)
    return PartResponse.model_validate(part)
