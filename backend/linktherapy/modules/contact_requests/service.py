from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from linktherapy.core.clock import utcnow
from linktherapy.core.errors import NotFoundError
from linktherapy.modules.payments.calculator import CommissionCalculator
from linktherapy.modules.sessions.models import TherapySession
from linktherapy.modules.sessions.service import SessionsService
from linktherapy.modules.therapists.models import Therapist
from linktherapy.modules.users.models import User
from linktherapy.services.email import EmailSender
from .models import (
    REQUEST_ACCEPTED,
    REQUEST_ASSIGNED,
    REQUEST_NEW,
    REQUEST_REJECTED,
    REQUEST_SCHEDULED,
    ContactRequest,
)
from .schemas import ContactRequestCreate, ScheduleRequest


logger = logging.getLogger(__name__)


class ContactRequestsService:
    def __init__(self, db: Session):
        self.db = db

    def _require_own(self, therapist_id: str, request_id: str) -> ContactRequest:
        request = self.db.get(ContactRequest, request_id)
        if request is None or therapist_id not in (request.therapist_id, request.assigned_therapist_id):
            raise NotFoundError("Contact request not found")
        return request

    def submit(self, data: ContactRequestCreate, mailer: EmailSender) -> ContactRequest:
        therapist_id = str(data.therapist_id)
        therapist = self.db.get(Therapist, therapist_id)
        if therapist is None:
            raise NotFoundError("Therapist not found")
        request = ContactRequest(
            therapist_id=therapist_id,
            client_name=data.client_name.strip(),
            client_email=str(data.client_email),
            client_phone=data.client_phone or None,
            message=data.message or None,
            session_id=data.session_id or None,
            status=REQUEST_NEW,
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        logger.info("Contact request %s created for therapist %s", request.id, therapist_id)

        user = self.db.get(User, therapist_id)
        if user is None:
            logger.warning("Therapist %s has no profile email; notification skipped", therapist_id)
            return request
        result = mailer.send_contact_request_notification(
            therapist_email=user.email,
            client_name=request.client_name,
            client_email=request.client_email,
            client_phone=request.client_phone,
            message=request.message,
        )
        if not result.success:
            logger.error("Contact request %s notification failed: %s", request.id, result.error)
        return request

    def list_for_therapist(self, therapist_id: str) -> list[ContactRequest]:
        stmt = (
            select(ContactRequest)
            .where(
                (ContactRequest.therapist_id == therapist_id)
                | (ContactRequest.assigned_therapist_id == therapist_id)
            )
            .order_by(ContactRequest.created_at.desc())
        )
        return list(self.db.scalars(stmt))

    def list_all(self, status: str | None = None) -> list[ContactRequest]:
        stmt = select(ContactRequest).order_by(ContactRequest.created_at.desc())
        if status:
            stmt = stmt.where(ContactRequest.status == status)
        return list(self.db.scalars(stmt))

    def accept(self, therapist_id: str, request_id: str) -> ContactRequest:
        request = self._require_own(therapist_id, request_id)
        request.status = REQUEST_ACCEPTED
        request.rejection_reason = None
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def reject(self, therapist_id: str, request_id: str, reason: str | None) -> ContactRequest:
        request = self._require_own(therapist_id, request_id)
        request.status = REQUEST_REJECTED
        request.rejection_reason = reason or None
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def schedule(
        self,
        therapist_id: str,
        request_id: str,
        data: ScheduleRequest,
        calculator: CommissionCalculator,
    ) -> tuple[ContactRequest, TherapySession]:
        request = self._require_own(therapist_id, request_id)
        if request.status == REQUEST_REJECTED:
            raise ValueError("Rejected requests cannot be scheduled")
        session = SessionsService(self.db, calculator).book(
            therapist_id,
            client_name=request.client_name,
            client_email=request.client_email,
            session_date=data.session_date,
            duration_minutes=data.duration_minutes,
            price=data.price,
        )
        request.status = REQUEST_SCHEDULED
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request, session

    def assign(self, request_id: str, therapist_id: str) -> ContactRequest:
        request = self.db.get(ContactRequest, request_id)
        if request is None:
            raise NotFoundError("Contact request not found")
        if self.db.get(Therapist, therapist_id) is None:
            raise NotFoundError("Therapist not found")
        request.assigned_therapist_id = therapist_id
        request.assigned_at = utcnow()
        request.status = REQUEST_ASSIGNED
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request
