from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from fleetcare.api.errors import service_errors
from fleetcare.api.schemas import (
    OccurrenceResponse,
    ScheduleCreateRequest,
    ScheduleResponse,
    ScheduleUpdateRequest,
    StatsResponse,
)
from fleetcare.dependencies.maintenance import AdminUser, ClientUser, MaintenanceServiceDep
from fleetcare.maintenance.models import (
    MaintenanceScheduleDraft,
    Occurrence,
    PersistedOccurrence,
    TicketTemplate,
    VirtualOccurrence,
)
from fleetcare.maintenance.schedule import occurrence_date
from fleetcare.maintenance.service import MaintenanceService

router = APIRouter(prefix="/maintenance", tags=["maintenance-schedules"])


async def _to_occurrence_response(service: MaintenanceService, item: Occurrence) -> OccurrenceResponse:
    match item:
        case PersistedOccurrence(ticket=ticket):
            return OccurrenceResponse(
                kind="ticket",
                id=ticket.id,
                ticket_number=ticket.ticket_number,
                title=ticket.title,
                status=ticket.status,
                maintenance_type=ticket.maintenance_type,
                priority=ticket.priority,
                asset_type=ticket.asset_type,
                asset_id=ticket.asset_id,
                asset_name=await service.asset_display_name(ticket.asset_type, ticket.asset_id),
                site_id=ticket.site_id,
                scheduled_date=occurrence_date(item),
                is_recurring=ticket.is_recurring,
                schedule_id=ticket.recurring_schedule_id,
            )
        case VirtualOccurrence():
            return OccurrenceResponse(
                kind="virtual",
                id=item.id,
                ticket_number=item.ticket_number,
                title=item.title,
                status=item.status,
                maintenance_type=item.maintenance_type,
                priority=item.priority,
                asset_type=item.asset_type,
                asset_id=item.asset_id,
                asset_name=await service.asset_display_name(item.asset_type, item.asset_id),
                site_id=item.site_id,
                scheduled_date=item.scheduled_date,
                is_recurring=True,
                schedule_id=item.schedule_id,
            )
    raise TypeError(f"Unsupported occurrence: {item!r}")


@router.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreateRequest,
    service: MaintenanceServiceDep,
    user: AdminUser,
) -> ScheduleResponse:
    values = payload.model_dump(exclude={"ticket_template"})
    draft = MaintenanceScheduleDraft(
        **values,
        ticket_template=TicketTemplate(**payload.ticket_template.model_dump()),
        created_by=user.username,
    )
    with service_errors():
        schedule = await service.create_schedule(draft)
    return ScheduleResponse.model_validate(schedule)


@router.get("/schedules", response_model=list[ScheduleResponse])
async def list_schedules(
    service: MaintenanceServiceDep,
    _: ClientUser,
    active: bool = Query(default=False, description="Only active schedules, soonest first"),
) -> list[ScheduleResponse]:
    with service_errors():
        schedules = await service.list_schedules(active_only=active)
    return [ScheduleResponse.model_validate(schedule) for schedule in schedules]


@router.get("/schedules/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(schedule_id: str, service: MaintenanceServiceDep, _: ClientUser) -> ScheduleResponse:
    with service_errors():
        schedule = await service.get_schedule(schedule_id)
    return ScheduleResponse.model_validate(schedule)


@router.patch("/schedules/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: str,
    payload: ScheduleUpdateRequest,
    service: MaintenanceServiceDep,
    _: AdminUser,
) -> ScheduleResponse:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields provided for update")
    with service_errors():
        schedule = await service.update_schedule(schedule_id, changes)
    return ScheduleResponse.model_validate(schedule)


@router.post("/schedules/{schedule_id}/deactivate", response_model=ScheduleResponse)
async def deactivate_schedule(schedule_id: str, service: MaintenanceServiceDep, _: AdminUser) -> ScheduleResponse:
    with service_errors():
        schedule = await service.deactivate_schedule(schedule_id)
    return ScheduleResponse.model_validate(schedule)


@router.get("/schedules/{schedule_id}/occurrences", response_model=list[OccurrenceResponse])
async def list_schedule_occurrences(
    schedule_id: str,
    service: MaintenanceServiceDep,
    _: ClientUser,
) -> list[OccurrenceResponse]:
    with service_errors():
        occurrences = await service.expand_schedule(schedule_id)
        return [await _to_occurrence_response(service, item) for item in occurrences]


@router.get("/calendar", response_model=list[OccurrenceResponse])
async def calendar(
    service: MaintenanceServiceDep,
    _: ClientUser,
    site_id: str | None = Query(default=None),
) -> list[OccurrenceResponse]:
    with service_errors():
        occurrences = await service.calendar(site_id=site_id)
        return [await _to_occurrence_response(service, item) for item in occurrences]


@router.get("/stats", response_model=StatsResponse)
async def stats(service: MaintenanceServiceDep, _: ClientUser) -> StatsResponse:
    with service_errors():
        result = await service.get_stats()
    return StatsResponse.model_validate(result)
