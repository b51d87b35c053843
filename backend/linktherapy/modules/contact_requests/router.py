from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from linktherapy.api.deps import AdminDep, DbDep, TherapistDep
from linktherapy.core.errors import NotFoundError
from linktherapy.core.rate_limit import rate_limit
from linktherapy.modules.payments.service import CalculatorDep
from linktherapy.modules.sessions.schemas import SessionRead
from linktherapy.services.email import EmailSender, get_email_sender
from .schemas import (
    AssignRequest,
    ContactRequestCreate,
    ContactRequestRead,
    RejectRequest,
    ScheduleRequest,
)
from .service import ContactRequestsService


router = APIRouter(prefix="/contact-requests", tags=["contact-requests"])
admin_router = APIRouter(prefix="/admin/contact-requests", tags=["admin-contact-requests"])

MailerDep = Annotated[EmailSender, Depends(get_email_sender)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("contact_request"))],
)
def submit_contact_request(payload: ContactRequestCreate, db: DbDep, mailer: MailerDep):
    try:
        request = ContactRequestsService(db).submit(payload, mailer)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"request": ContactRequestRead.model_validate(request)}


@router.get("/mine", response_model=list[ContactRequestRead])
def my_contact_requests(db: DbDep, current: TherapistDep):
    return ContactRequestsService(db).list_for_therapist(current.id)


@router.post("/{request_id}/accept", response_model=ContactRequestRead)
def accept_contact_request(request_id: str, db: DbDep, current: TherapistDep):
    try:
        return ContactRequestsService(db).accept(current.id, request_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/{request_id}/reject", response_model=ContactRequestRead)
def reject_contact_request(request_id: str, payload: RejectRequest, db: DbDep, current: TherapistDep):
    try:
        return ContactRequestsService(db).reject(current.id, request_id, payload.reason)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/{request_id}/schedule")
def schedule_contact_request(
    request_id: str,
    payload: ScheduleRequest,
    db: DbDep,
    current: TherapistDep,
    calculator: CalculatorDep,
):
    svc = ContactRequestsService(db)
    try:
        request, session = svc.schedule(current.id, request_id, payload, calculator)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {
        "ok": True,
        "request": ContactRequestRead.model_validate(request),
        "session": SessionRead.model_validate(session),
    }


@admin_router.get("", response_model=list[ContactRequestRead])
def admin_list_contact_requests(
    db: DbDep,
    _: AdminDep,
    status_filter: str | None = Query(None, alias="status"),
):
    return ContactRequestsService(db).list_all(status_filter)


@admin_router.post("/{request_id}/assign", response_model=ContactRequestRead)
def admin_assign_contact_request(request_id: str, payload: AssignRequest, db: DbDep, _: AdminDep):
    try:
        return ContactRequestsService(db).assign(request_id, payload.therapist_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
