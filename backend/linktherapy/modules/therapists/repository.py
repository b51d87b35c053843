from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from linktherapy.modules.contact_requests.models import REQUEST_ASSIGNED, REQUEST_NEW, ContactRequest
from linktherapy.modules.payments.models import (
    TherapistMetric,
    TherapistPayment,
    TherapistPaymentAction,
)
from linktherapy.modules.sessions.models import TherapySession
from linktherapy.modules.users.models import ROLE_THERAPIST, User
from .models import (
    STATUS_ACTIVE,
    Location,
    Therapist,
    TherapistLocation,
    TherapistRankingHistory,
)


class TherapistsRepository:
    def __init__(self, db: Session):
        self.db = db

    # ---- Therapists ----
    def get(self, therapist_id: str) -> Therapist | None:
        return self.db.get(Therapist, therapist_id)

    def list_active(self) -> list[Therapist]:
        stmt = (
            select(Therapist)
            .options(selectinload(Therapist.location_links))
            .where(Therapist.status == STATUS_ACTIVE)
            .order_by(Therapist.ranking_points.desc())
        )
        return list(self.db.scalars(stmt))

    def list_therapist_profiles(self) -> list[tuple[User, Therapist | None]]:
        stmt = (
            select(User, Therapist)
            .outerjoin(Therapist, Therapist.user_id == User.id)
            .where(User.role == ROLE_THERAPIST)
        )
        return [(user, therapist) for user, therapist in self.db.execute(stmt)]

    def last_session_dates(self) -> dict[str, datetime]:
        stmt = select(TherapySession.therapist_id, func.max(TherapySession.session_date)).group_by(
            TherapySession.therapist_id
        )
        return {therapist_id: last for therapist_id, last in self.db.execute(stmt)}

    # ---- Locations ----
    def get_or_create_locations(self, names: Sequence[str]) -> list[Location]:
        locations: list[Location] = []
        for name in names:
            location = self.db.scalar(select(Location).where(Location.name == name))
            if location is None:
                location = Location(name=name)
                self.db.add(location)
                self.db.flush()
            locations.append(location)
        return locations

    def replace_locations(self, therapist: Therapist, names: Sequence[str]) -> None:
        locations = self.get_or_create_locations(names)
        therapist.location_links.clear()
        self.db.flush()
        for location in locations:
            therapist.location_links.append(TherapistLocation(location_id=location.id, location=location))

    # ---- History & metrics ----
    def ranking_history(self, therapist_id: str, limit: int = 20) -> list[TherapistRankingHistory]:
        stmt = (
            select(TherapistRankingHistory)
            .where(TherapistRankingHistory.therapist_id == therapist_id)
            .order_by(TherapistRankingHistory.created_at.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def recent_payments(self, therapist_id: str, limit: int = 6) -> list[TherapistPayment]:
        stmt = (
            select(TherapistPayment)
            .where(TherapistPayment.therapist_id == therapist_id)
            .order_by(TherapistPayment.payment_period_start.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def metric_for_month(self, therapist_id: str, month_start) -> TherapistMetric | None:
        stmt = select(TherapistMetric).where(
            TherapistMetric.therapist_id == therapist_id,
            TherapistMetric.month_year == month_start,
        )
        return self.db.scalar(stmt)

    # ---- Deletion ----
    def delete_account(self, user_id: str) -> None:
        """Remove a therapist and every dependent row, children first."""
        payment_ids = select(TherapistPayment.id).where(TherapistPayment.therapist_id == user_id)
        self.db.execute(delete(TherapistLocation).where(TherapistLocation.therapist_id == user_id))
        self.db.execute(
            delete(TherapistRankingHistory).where(TherapistRankingHistory.therapist_id == user_id)
        )
        self.db.execute(delete(TherapistMetric).where(TherapistMetric.therapist_id == user_id))
        self.db.execute(
            delete(TherapistPaymentAction).where(TherapistPaymentAction.payment_id.in_(payment_ids))
        )
        self.db.execute(delete(TherapistPayment).where(TherapistPayment.therapist_id == user_id))
        self.db.execute(delete(TherapySession).where(TherapySession.therapist_id == user_id))
        self.db.execute(delete(ContactRequest).where(ContactRequest.therapist_id == user_id))
        self.db.execute(
            update(ContactRequest)
            .where(ContactRequest.assigned_therapist_id == user_id, ContactRequest.status == REQUEST_ASSIGNED)
            .values(status=REQUEST_NEW)
        )
        self.db.execute(
            update(ContactRequest)
            .where(ContactRequest.assigned_therapist_id == user_id)
            .values(assigned_therapist_id=None, assigned_at=None)
        )
        self.db.execute(delete(Therapist).where(Therapist.user_id == user_id))
        self.db.execute(delete(User).where(User.id == user_id))
