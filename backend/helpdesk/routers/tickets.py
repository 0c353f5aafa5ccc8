"""Ticket endpoints: listing, creation and lifecycle mutations."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_user
from helpdesk.core.exceptions import (
    BadRequestError,
    InsufficientPermissionsError,
    LifecycleRejectedError,
    NotFoundError,
)
from helpdesk.db.session import get_db
from helpdesk.db.types import utcnow
from helpdesk.models.enums import AuditEntityType
from helpdesk.models.user import User
from helpdesk.schemas.audit import AuditLogOut
from helpdesk.schemas.sla import SLAStatusOut, SLATrackingOut, TicketSLAStatusOut
from helpdesk.schemas.ticket import (
    CommentCreate,
    CommentOut,
    TicketAssignUpdate,
    TicketCreate,
    TicketOut,
    TicketStatusUpdate,
)
from helpdesk.services.audit import get_entity_history
from helpdesk.services.sla.classifier import classify
from helpdesk.services.sla.tracker import get_tracking
from helpdesk.services.tickets import (
    LifecycleResult,
    Rejection,
    add_comment,
    assign_ticket,
    create_ticket,
    get_ticket_for_user,
    list_tickets_for_user,
    transition_status,
)

router = APIRouter(dependencies=[Depends(get_current_user)])

_REJECTION_STATUS = {
    Rejection.unauthorized: 403,
    Rejection.invalid_transition: 409,
    Rejection.not_assigned: 409,
    Rejection.missing_note: 422,
    Rejection.invalid_assignee: 400,
    Rejection.not_found: 404,
}


def raise_for_rejection(result: LifecycleResult) -> None:
    if result.ok:
        return
    rejection = result.rejection or Rejection.unauthorized
    if rejection == Rejection.not_found:
        raise NotFoundError("ticket_not_found")
    if rejection == Rejection.unauthorized:
        raise InsufficientPermissionsError(result.message or "forbidden")
    raise LifecycleRejectedError(
        result.message or rejection.value,
        error_code=rejection.value.upper(),
        status_code=_REJECTION_STATUS[rejection],
    )


def _visible_ticket(db: Session, ticket_id: UUID, user: User):  # noqa: ANN202
    ticket = get_ticket_for_user(db, ticket_id, user)
    if not ticket:
        raise NotFoundError("ticket_not_found", details={"ticket_id": str(ticket_id)})
    return ticket


@router.get("/", response_model=list[TicketOut])
def get_all_tickets(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[TicketOut]:
    return [TicketOut.model_validate(t) for t in list_tickets_for_user(db, current_user)]


@router.post("/", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
def create_new_ticket(
    payload: TicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TicketOut:
    result = create_ticket(db, payload, current_user)
    raise_for_rejection(result)
    return TicketOut.model_validate(result.ticket)


@router.get("/{ticket_id}", response_model=TicketOut)
def get_ticket_by_id(
    ticket_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TicketOut:
    return TicketOut.model_validate(_visible_ticket(db, ticket_id, current_user))


@router.get("/{ticket_id}/sla-status", response_model=TicketSLAStatusOut)
def get_ticket_sla_status(
    ticket_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TicketSLAStatusOut:
    ticket = _visible_ticket(db, ticket_id, current_user)
    tracking = get_tracking(db, ticket.id)
    if tracking is None:
        return TicketSLAStatusOut(ticket_id=ticket.id)
    return TicketSLAStatusOut(
        ticket_id=ticket.id,
        tracking=SLATrackingOut.model_validate(tracking),
        status=SLAStatusOut.model_validate(classify(tracking, utcnow())),
    )


@router.post("/{ticket_id}/status", response_model=TicketOut)
def update_ticket_status(
    ticket_id: UUID = Path(...),
    payload: TicketStatusUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TicketOut:
    result = transition_status(db, ticket_id, payload.status, current_user)
    raise_for_rejection(result)
    return TicketOut.model_validate(result.ticket)


@router.post("/{ticket_id}/assign", response_model=TicketOut)
def assign_ticket_to_user(
    ticket_id: UUID = Path(...),
    payload: TicketAssignUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TicketOut:
    result = assign_ticket(db, ticket_id, payload.assigned_to, current_user, note=payload.note)
    raise_for_rejection(result)
    return TicketOut.model_validate(result.ticket)


@router.post("/{ticket_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def post_ticket_comment(
    ticket_id: UUID = Path(...),
    payload: CommentCreate = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CommentOut:
    try:
        result = add_comment(db, ticket_id, current_user, payload.content)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    raise_for_rejection(result)
    return CommentOut.model_validate(result.comment)


@router.get("/{ticket_id}/history", response_model=list[AuditLogOut])
def get_ticket_history(
    ticket_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AuditLogOut]:
    ticket = _visible_ticket(db, ticket_id, current_user)
    return [AuditLogOut.model_validate(row) for row in get_entity_history(db, AuditEntityType.ticket, ticket.id)]
