from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from fleetcare.dependencies.auth import Role, User, role_required
from fleetcare.maintenance.inventory import PartsInventory
from fleetcare.maintenance.service import MaintenanceService

require_admin = role_required(Role.ADMIN)
require_operator = role_required(Role.OPERATOR)
require_client = role_required(Role.CLIENT)

AdminUser = Annotated[User, Depends(require_admin)]
OperatorUser = Annotated[User, Depends(require_operator)]
ClientUser = Annotated[User, Depends(require_client)]


async def get_maintenance_service(request: Request) -> MaintenanceService:
    service = getattr(request.app.state, "maintenance_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Maintenance service is not configured")
    return service


MaintenanceServiceDep = Annotated[MaintenanceService, Depends(get_maintenance_service)]


async def get_parts_inventory(request: Request) -> PartsInventory:
    inventory = getattr(request.app.state, "parts_inventory", None)
    if inventory is None:
        raise HTTPException(status_code=503, detail="Parts inventory is not configured")
    return inventory


PartsInventoryDep = Annotated[PartsInventory, Depends(get_parts_inventory)]
