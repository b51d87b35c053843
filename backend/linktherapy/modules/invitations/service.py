"""
Therapist invitations.

Only the SHA-256 of an invitation token is stored; the raw token exists in
the emailed link alone. Every (re)send rotates the token, so older links stop
working as soon as a new one goes out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from linktherapy.core.clock import ensure_utc, utcnow
from linktherapy.core.config import settings
from linktherapy.core.errors import ConflictError, NotFoundError
from linktherapy.core.security import generate_invite_token, hash_token
from linktherapy.modules.audit.service import record_admin_action
from linktherapy.modules.therapists.models import STATUS_PENDING, Therapist
from linktherapy.modules.users.models import ROLE_THERAPIST, User
from linktherapy.modules.users.repository import UsersRepository
from linktherapy.modules.users.service import UsersService
from linktherapy.services.email import EmailSender
from .models import (
    INVITE_ACCEPTED,
    INVITE_EXPIRED,
    INVITE_PENDING,
    INVITE_UNDELIVERABLE,
    TherapistInvitation,
)


logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


class InvitationDeliveryError(RuntimeError):
    """The invitation was stored but the email could not be sent."""


@dataclass
class InviteOutcome:
    invitation: TherapistInvitation
    resent: bool
    email_id: str | None = None


@dataclass
class BulkInviteResult:
    email: str
    status: str
    message: str


def normalize_email(email: str) -> str:
    return email.strip().lower()


def invite_link(token: str) -> str:
    return f"{settings.site_url}/invite/accept?token={token}"


class InvitationsService:
    def __init__(self, db: Session, mailer: EmailSender | None = None):
        self.db = db
        self.mailer = mailer
        self.users = UsersRepository(db)

    def _latest_for(self, email: str) -> TherapistInvitation | None:
        stmt = (
            select(TherapistInvitation)
            .where(TherapistInvitation.email == email)
            .order_by(TherapistInvitation.invited_at.desc())
            .limit(1)
        )
        return self.db.scalar(stmt)

    def _by_token(self, token: str) -> TherapistInvitation | None:
        stmt = select(TherapistInvitation).where(TherapistInvitation.token_hash == hash_token(token))
        return self.db.scalar(stmt)

    def _deliver(self, invitation: TherapistInvitation) -> str | None:
        """Rotate the token, email the link and record the attempt."""
        if self.mailer is None:
            raise RuntimeError("An email sender is required to deliver invitations")
        token = generate_invite_token()
        now = utcnow()
        invitation.token_hash = hash_token(token)
        invitation.last_sent_at = now
        invitation.expires_at = now + timedelta(days=settings.INVITATION_TTL_DAYS)
        invitation.send_count = (invitation.send_count or 0) + 1
        invitation.status = INVITE_PENDING
        invitation.failure_reason = None
        self.db.add(invitation)
        self.db.flush()

        result = self.mailer.send_therapist_invite(invitation.email, invite_link(token))
        if not result.success:
            invitation.status = INVITE_UNDELIVERABLE
            invitation.failure_reason = result.error or "Failed to send invitation email"
            self.db.add(invitation)
            self.db.commit()
            logger.error("Invitation to %s undeliverable: %s", invitation.email, invitation.failure_reason)
            raise InvitationDeliveryError(invitation.failure_reason)
        self.db.commit()
        self.db.refresh(invitation)
        return result.email_id

    # ---- Admin ----
    def invite(self, email: str, *, admin: User) -> InviteOutcome:
        normalized = normalize_email(email)
        if self.users.get_by_email(normalized):
            raise ConflictError("An account with this email already exists")

        existing = self._latest_for(normalized)
        if existing is not None and existing.status == INVITE_PENDING:
            email_id = self._deliver(existing)
            logger.info("Re-sent pending invitation to %s", normalized)
            return InviteOutcome(invitation=existing, resent=True, email_id=email_id)

        now = utcnow()
        invitation = TherapistInvitation(
            email=normalized,
            token_hash=hash_token(generate_invite_token()),
            status=INVITE_PENDING,
            invited_by_admin_id=admin.id,
            invited_at=now,
            expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
            send_count=0,
        )
        self.db.add(invitation)
        record_admin_action(
            self.db,
            "therapist_invited",
            actor_id=admin.id,
            target_email=normalized,
        )
        self.db.flush()
        email_id = self._deliver(invitation)
        logger.info("Invited therapist %s", normalized)
        return InviteOutcome(invitation=invitation, resent=False, email_id=email_id)

    def invite_many(self, emails: list[str], *, admin: User) -> list[BulkInviteResult]:
        results: list[BulkInviteResult] = []
        for email in emails:
            normalized = normalize_email(email)
            try:
                _email_adapter.validate_python(normalized)
                outcome = self.invite(normalized, admin=admin)
            except ValidationError:
                results.append(BulkInviteResult(email=normalized, status="error", message="Invalid email address"))
                continue
            except (ValueError, InvitationDeliveryError) as exc:
                self.db.rollback()
                results.append(BulkInviteResult(email=normalized, status="error", message=str(exc)))
                continue
            message = "Invitation re-sent" if outcome.resent else "Invitation sent"
            results.append(BulkInviteResult(email=normalized, status="ok", message=message))
        return results

    def resend(self, email: str) -> InviteOutcome:
        normalized = normalize_email(email)
        invitation = self._latest_for(normalized)
        if invitation is None:
            raise NotFoundError("No invitation exists for this email. Send a new invitation first.")
        if invitation.status == INVITE_ACCEPTED:
            raise ValueError("This invitation has already been accepted. Use password reset instead.")
        email_id = self._deliver(invitation)
        return InviteOutcome(invitation=invitation, resent=True, email_id=email_id)

    # ---- Public ----
    def validate(self, token: str) -> TherapistInvitation:
        invitation = self._by_token(token)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.status != INVITE_PENDING:
            raise ValueError(f"Invitation is {invitation.status}")
        if ensure_utc(invitation.expires_at) <= utcnow():
            invitation.status = INVITE_EXPIRED
            self.db.add(invitation)
            self.db.commit()
            raise ValueError("Invitation has expired")
        return invitation

    def accept(self, token: str, password: str) -> User:
        invitation = self.validate(token)
        if self.users.get_by_email(invitation.email):
            raise ConflictError("An account with this email already exists")
        email = invitation.email
        try:
            user = UsersService(self.db).register_user(
                email, password, role=ROLE_THERAPIST, email_confirmed=True, commit=False
            )
            self.db.add(Therapist(user_id=user.id, status=STATUS_PENDING, ranking_points=0, total_sessions=0))
            invitation.status = INVITE_ACCEPTED
            invitation.accepted_at = utcnow()
            invitation.accepted_user_id = user.id
            self.db.add(invitation)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to accept invitation for %s", email)
            raise
        self.db.refresh(user)
        logger.info("Invitation for %s accepted (user %s)", email, user.id)
        return user
