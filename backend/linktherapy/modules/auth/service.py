from __future__ import annotations

import logging

import jwt
from sqlalchemy.orm import Session

from linktherapy.core.config import settings
from linktherapy.core.security import (
    RECOVERY_PURPOSE,
    create_access_token,
    create_recovery_token,
    decode_access_token,
    password_fingerprint,
)
from linktherapy.modules.users.models import User
from linktherapy.modules.users.repository import UsersRepository
from linktherapy.modules.users.service import UsersService
from linktherapy.services.email import EmailSender


logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists with this email, a password reset link has been sent."


class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UsersService(db)
        self.repo = UsersRepository(db)

    def login(self, email: str, password: str) -> tuple[str, User] | None:
        user = self.users.authenticate(email, password)
        if not user or not user.is_active:
            return None
        return create_access_token(subject=user.id, extra_claims={"role": user.role}), user

    def request_password_reset(self, email: str, mailer: EmailSender) -> None:
        user = self.repo.get_by_email(email)
        if not user or not user.hashed_password:
            # Same outward response either way; nothing to send.
            logger.info("Password reset requested for unknown email")
            return
        token = create_recovery_token(user.id, user.hashed_password)
        link = f"{settings.site_url}/reset-password/confirm?token={token}"
        result = mailer.send_password_reset(user.email, link)
        if not result.success:
            logger.error("Error sending reset email to %s: %s", user.email, result.error)

    def confirm_password_reset(self, token: str, password: str) -> User:
        try:
            payload = decode_access_token(token)
        except jwt.PyJWTError as exc:
            raise ValueError("Invalid or expired reset link") from exc
        if payload.get("purpose") != RECOVERY_PURPOSE:
            raise ValueError("Invalid or expired reset link")
        user = self.repo.get_by_id(payload.get("sub", ""))
        if not user or not user.hashed_password:
            raise ValueError("Invalid or expired reset link")
        if payload.get("pwd") != password_fingerprint(user.hashed_password):
            raise ValueError("Reset link has already been used")
        return self.users.set_password(user, password)
