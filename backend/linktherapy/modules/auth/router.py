from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from linktherapy.api.deps import DbDep, UserDep
from linktherapy.core.rate_limit import rate_limit
from linktherapy.services.email import EmailSender, get_email_sender
from .schemas import (
    LoginRequest,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    TokenResponse,
)
from .service import RESET_REQUESTED_MESSAGE, AuthService


router = APIRouter(prefix="/auth", tags=["auth"])

MailerDep = Annotated[EmailSender, Depends(get_email_sender)]


@router.post(
    "/login",
    response_model=TokenResponse,
    dependencies=[Depends(rate_limit("auth_action"))],
)
def login(payload: LoginRequest, db: DbDep):
    svc = AuthService(db)
    result = svc.login(payload.email, payload.password)
    if not result:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token, user = result
    return TokenResponse(access_token=token, role=user.role)


@router.get("/me", response_model=dict)
def me(current: UserDep):
    return {"id": current.id, "email": current.email, "full_name": current.full_name, "role": current.role}


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("auth_action"))],
)
def reset_password(payload: PasswordResetRequest, db: DbDep, mailer: MailerDep):
    AuthService(db).request_password_reset(payload.email, mailer)
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post(
    "/reset-password/confirm",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("auth_action"))],
)
def confirm_reset_password(payload: PasswordResetConfirm, db: DbDep):
    try:
        AuthService(db).confirm_password_reset(payload.token, payload.password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return MessageResponse(message="Password updated. You can now log in.")
