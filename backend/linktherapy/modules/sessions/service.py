from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from linktherapy.core.clock import ensure_utc
from linktherapy.core.errors import NotFoundError
from linktherapy.modules.payments.calculator import CommissionCalculator
from linktherapy.modules.therapists.models import Therapist
from .models import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_PRICE,
    SESSION_RESCHEDULED,
    SESSION_SCHEDULED,
    TherapySession,
)
from .schemas import SessionCreate


logger = logging.getLogger(__name__)


class SessionsService:
    def __init__(self, db: Session, calculator: CommissionCalculator):
        self.db = db
        self.calculator = calculator

    def _require_own(self, therapist_id: str, session_id: str) -> TherapySession:
        session = self.db.get(TherapySession, session_id)
        if session is None or session.therapist_id != therapist_id:
            raise NotFoundError("Session not found")
        return session

    def list_sessions(
        self,
        therapist_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TherapySession]:
        stmt = select(TherapySession).where(TherapySession.therapist_id == therapist_id)
        if start is not None:
            stmt = stmt.where(TherapySession.session_date >= ensure_utc(start))
        if end is not None:
            stmt = stmt.where(TherapySession.session_date < ensure_utc(end))
        return list(self.db.scalars(stmt.order_by(TherapySession.session_date)))

    def book(
        self,
        therapist_id: str,
        *,
        client_name: str,
        client_email: str | None,
        session_date: datetime,
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
        price: float = DEFAULT_PRICE,
        rescheduled_from: str | None = None,
    ) -> TherapySession:
        """Store a scheduled session and refresh the commission for its period."""
        if self.db.get(Therapist, therapist_id) is None:
            raise NotFoundError("Therapist profile not found")
        session = TherapySession(
            therapist_id=therapist_id,
            client_name=client_name,
            client_email=client_email,
            session_date=ensure_utc(session_date),
            duration_minutes=duration_minutes,
            price=price,
            status=SESSION_SCHEDULED,
            rescheduled_from=rescheduled_from,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        self.calculator.recalculate(therapist_id, session.session_date)
        return session

    def create(self, therapist_id: str, data: SessionCreate) -> TherapySession:
        return self.book(
            therapist_id,
            client_name=data.client_name,
            client_email=str(data.client_email) if data.client_email else None,
            session_date=data.session_date,
            duration_minutes=data.duration_minutes,
            price=data.price,
        )

    def reschedule(self, therapist_id: str, session_id: str, new_date: datetime) -> TherapySession:
        old = self._require_own(therapist_id, session_id)
        if old.status != SESSION_SCHEDULED:
            raise ValueError("Only scheduled sessions can be rescheduled")
        old.status = SESSION_RESCHEDULED
        old_date = old.session_date
        self.db.add(old)
        self.db.commit()
        # Old period first; the new booking recalculates its own period
        self.calculator.recalculate(therapist_id, old_date)
        new = self.book(
            therapist_id,
            client_name=old.client_name,
            client_email=old.client_email,
            session_date=new_date,
            duration_minutes=old.duration_minutes,
            price=old.price,
            rescheduled_from=old.id,
        )
        logger.info("Session %s rescheduled as %s", old.id, new.id)
        return new

    def set_status(self, therapist_id: str, session_id: str, status: str) -> TherapySession:
        session = self._require_own(therapist_id, session_id)
        if session.status == SESSION_RESCHEDULED:
            raise ValueError("Rescheduled sessions cannot change status")
        session.status = status
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        self.calculator.recalculate(therapist_id, session.session_date)
        return session
