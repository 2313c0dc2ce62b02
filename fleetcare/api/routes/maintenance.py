from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from fleetcare.api.errors import service_errors
from fleetcare.api.schemas import (
    AssignRequest,
    AttachmentCreateRequest,
    AttachmentResponse,
    AuditEventResponse,
    CommentCreateRequest,
    CommentResponse,
    CompleteWorkRequest,
    PartUsagePayload,
    TicketCreateRequest,
    TicketResponse,
    TicketUpdateRequest,
    TransitionRequest,
    VerifyRequest,
)
from fleetcare.dependencies.maintenance import AdminUser, ClientUser, MaintenanceServiceDep, OperatorUser
from fleetcare.maintenance.models import (
    AuditOrder,
    MaintenanceTicket,
    MaintenanceTicketDraft,
    PartUsage,
)

router = APIRouter(prefix="/maintenance/tickets", tags=["maintenance"])


def _to_response(ticket: MaintenanceTicket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    service: MaintenanceServiceDep,
    user: OperatorUser,
) -> TicketResponse:
    draft = MaintenanceTicketDraft(
        **payload.model_dump(),
        created_by=user.username,
        created_by_role=user.actor_role,
    )
    with service_errors():
        ticket = await service.create_ticket(draft)
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: MaintenanceServiceDep,
    _: ClientUser,
    site_id: str | None = Query(default=None),
    asset_id: str | None = Query(default=None),
    before: datetime | None = Query(default=None, description="Return tickets created before this instant"),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[TicketResponse]:
    with service_errors():
        tickets = await service.list_tickets(site_id=site_id, asset_id=asset_id, created_before=before, limit=limit)
    return [_to_response(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: MaintenanceServiceDep, _: ClientUser) -> TicketResponse:
    with service_errors():
        ticket = await service.get_ticket(ticket_id)
    return _to_response(ticket)


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: MaintenanceServiceDep,
    user: OperatorUser,
) -> TicketResponse:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields provided for update")
    with service_errors():
        ticket = await service.update_ticket(ticket_id, changes, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.post("/{ticket_id}/approve", response_model=TicketResponse)
async def approve_ticket(ticket_id: str, service: MaintenanceServiceDep, user: AdminUser) -> TicketResponse:
    with service_errors():
        ticket = await service.approve(ticket_id, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.post("/{ticket_id}/start", response_model=TicketResponse)
async def start_work(ticket_id: str, service: MaintenanceServiceDep, user: OperatorUser) -> TicketResponse:
    with service_errors():
        ticket = await service.start_work(ticket_id, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.post("/{ticket_id}/await-parts", response_model=TicketResponse)
async def await_parts(
    ticket_id: str,
    service: MaintenanceServiceDep,
    user: OperatorUser,
    payload: TransitionRequest | None = None,
) -> TicketResponse:
    with service_errors():
        ticket = await service.await_parts(
            ticket_id,
            actor=user.username,
            actor_role=user.actor_role,
            reason=payload.reason if payload else None,
        )
    return _to_response(ticket)


@router.post("/{ticket_id}/resume", response_model=TicketResponse)
async def resume_work(ticket_id: str, service: MaintenanceServiceDep, user: OperatorUser) -> TicketResponse:
    with service_errors():
        ticket = await service.resume_work(ticket_id, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.post("/{ticket_id}/complete", response_model=TicketResponse)
async def complete_work(
    ticket_id: str,
    payload: CompleteWorkRequest,
    service: MaintenanceServiceDep,
    user: OperatorUser,
) -> TicketResponse:
    with service_errors():
        ticket = await service.complete_work(
            ticket_id,
            actor=user.username,
            actor_role=user.actor_role,
            work_performed=payload.work_performed,
            labor_hours=payload.labor_hours,
        )
    return _to_response(ticket)


@router.post("/{ticket_id}/verify", response_model=TicketResponse)
async def verify_ticket(
    ticket_id: str,
    payload: VerifyRequest,
    service: MaintenanceServiceDep,
    user: AdminUser,
) -> TicketResponse:
    with service_errors():
        ticket = await service.verify(ticket_id, actor=user.username, actor_role=user.actor_role, notes=payload.notes)
    return _to_response(ticket)


@router.post("/{ticket_id}/close", response_model=TicketResponse)
async def close_ticket(ticket_id: str, service: MaintenanceServiceDep, user: AdminUser) -> TicketResponse:
    with service_errors():
        ticket = await service.close(ticket_id, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.post("/{ticket_id}/assign", response_model=TicketResponse)
async def assign_ticket(
    ticket_id: str,
    payload: AssignRequest,
    service: MaintenanceServiceDep,
    user: AdminUser,
) -> TicketResponse:
    with service_errors():
        ticket = await service.assign(ticket_id, payload.assigned_to, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.post("/{ticket_id}/parts", response_model=TicketResponse)
async def add_part(
    ticket_id: str,
    payload: PartUsagePayload,
    service: MaintenanceServiceDep,
    user: OperatorUser,
) -> TicketResponse:
    part = PartUsage(**payload.model_dump())
    with service_errors():
        ticket = await service.add_part(ticket_id, part, actor=user.username, actor_role=user.actor_role)
    return _to_response(ticket)


@router.get("/{ticket_id}/comments", response_model=list[CommentResponse])
async def list_comments(ticket_id: str, service: MaintenanceServiceDep, _: ClientUser) -> list[CommentResponse]:
    with service_errors():
        comments = await service.list_comments(ticket_id)
    return [CommentResponse.model_validate(comment) for comment in comments]


@router.post("/{ticket_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    ticket_id: str,
    payload: CommentCreateRequest,
    service: MaintenanceServiceDep,
    user: ClientUser,
) -> CommentResponse:
    with service_errors():
        comment = await service.add_comment(
            ticket_id,
            author=user.username,
            author_role=user.actor_role,
            content=payload.content,
            comment_type=payload.comment_type,
        )
    return CommentResponse.model_validate(comment)


@router.get("/{ticket_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(ticket_id: str, service: MaintenanceServiceDep, _: ClientUser) -> list[AttachmentResponse]:
    with service_errors():
        attachments = await service.list_attachments(ticket_id)
    return [AttachmentResponse.model_validate(attachment) for attachment in attachments]


@router.post("/{ticket_id}/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def add_attachment(
    ticket_id: str,
    payload: AttachmentCreateRequest,
    service: MaintenanceServiceDep,
    user: OperatorUser,
) -> AttachmentResponse:
    with service_errors():
        attachment = await service.add_attachment(
            ticket_id,
            uploaded_by=user.username,
            uploaded_by_role=user.actor_role,
            **payload.model_dump(),
        )
    return AttachmentResponse.model_validate(attachment)


@router.get("/{ticket_id}/audit", response_model=list[AuditEventResponse])
async def get_audit_log(
    ticket_id: str,
    service: MaintenanceServiceDep,
    _: ClientUser,
    order: AuditOrder = Query(default=AuditOrder.OLDEST_FIRST),
) -> list[AuditEventResponse]:
    with service_errors():
        events = await service.get_audit_log(ticket_id, order=order)
    return [AuditEventResponse.model_validate(event) for event in events]
