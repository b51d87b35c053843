from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from linktherapy.api.deps import AdminDep, DbDep
from linktherapy.core.config import settings
from linktherapy.core.errors import ConflictError, NotFoundError
from linktherapy.core.rate_limit import rate_limit
from linktherapy.services.email import EmailSender, get_email_sender
from .schemas import (
    AcceptInviteRequest,
    BulkInviteItem,
    BulkInviteRequest,
    BulkInviteResponse,
    InviteRequest,
    TokenRequest,
    ValidateInviteResponse,
)
from .service import InvitationDeliveryError, InvitationsService


router = APIRouter(prefix="/invite", tags=["invitations"])
admin_router = APIRouter(prefix="/admin", tags=["admin-invitations"])

MailerDep = Annotated[EmailSender, Depends(get_email_sender)]


@admin_router.post("/invite-therapist")
def invite_therapist(payload: InviteRequest, db: DbDep, admin: AdminDep, mailer: MailerDep):
    svc = InvitationsService(db, mailer)
    try:
        outcome = svc.invite(str(payload.email), admin=admin)
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except InvitationDeliveryError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send invitation email: {exc}",
        )
    return {
        "ok": True,
        "resent": outcome.resent,
        "email": outcome.invitation.email,
        "expires_at": outcome.invitation.expires_at,
    }


@admin_router.post("/invite-therapist/bulk", response_model=BulkInviteResponse)
def invite_therapists_bulk(payload: BulkInviteRequest, db: DbDep, admin: AdminDep, mailer: MailerDep):
    if len(payload.emails) > settings.BULK_INVITE_MAX:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.BULK_INVITE_MAX} emails per request",
        )
    results = InvitationsService(db, mailer).invite_many(payload.emails, admin=admin)
    return BulkInviteResponse(
        results=[BulkInviteItem(email=r.email, status=r.status, message=r.message) for r in results]
    )


@admin_router.post("/resend-invitation")
def resend_invitation(payload: InviteRequest, db: DbDep, _: AdminDep, mailer: MailerDep):
    svc = InvitationsService(db, mailer)
    try:
        outcome = svc.resend(str(payload.email))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except InvitationDeliveryError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send invitation email: {exc}",
        )
    return {
        "ok": True,
        "message": "Invitation email resent successfully",
        "email": outcome.invitation.email,
        "emailId": outcome.email_id,
    }


@router.post("/validate", response_model=ValidateInviteResponse)
def validate_invitation(payload: TokenRequest, db: DbDep):
    try:
        invitation = InvitationsService(db).validate(payload.token)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return ValidateInviteResponse(
        email=invitation.email,
        invited_at=invitation.invited_at,
        expires_at=invitation.expires_at,
    )


@router.post(
    "/accept",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("auth_action"))],
)
def accept_invitation(payload: AcceptInviteRequest, db: DbDep):
    try:
        user = InvitationsService(db).accept(payload.token, payload.password)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"ok": True, "user_id": user.id, "email": user.email}
