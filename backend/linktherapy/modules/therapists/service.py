from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from linktherapy.core.clock import utcnow
from linktherapy.core.config import settings
from linktherapy.core.errors import NotFoundError
from linktherapy.modules.audit.service import record_admin_action
from linktherapy.modules.users.models import ROLE_THERAPIST, User
from linktherapy.modules.users.repository import UsersRepository
from .models import STATUS_ACTIVE, STATUS_PENDING, Therapist
from .ranking import set_ranking
from .repository import TherapistsRepository
from .schemas import (
    AdminTherapistDetail,
    AdminTherapistRow,
    DirectoryFilters,
    MonthlyMetrics,
    OnboardingPayload,
    PaymentSummary,
    RankingHistoryRead,
    TherapistPublic,
    TherapistRead,
    TherapistSelfUpdate,
)


logger = logging.getLogger(__name__)

PENDING_ONBOARDING_NAME = "(Pending Onboarding)"
NOT_ONBOARDED = "not_onboarded"


def _lower(value: str | None) -> str:
    return (value or "").strip().lower()


def _experience_matches(band: str, years: int) -> bool:
    if band == "0-5":
        return years <= 5
    if band == "6-10":
        return 6 <= years <= 10
    if band == "11-15":
        return 11 <= years <= 15
    if band == "16+":
        return years >= 16
    return True


def _matches(therapist: Therapist, locations: list[str], filters: DirectoryFilters) -> bool:
    price = therapist.session_price_45_min or 0
    if filters.price_min is not None and price < filters.price_min:
        return False
    if filters.price_max is not None and price > filters.price_max:
        return False

    interests = [_lower(i) for i in therapist.interests or []]
    if filters.problem and filters.problem != "all" and _lower(filters.problem) not in interests:
        return False
    for wanted, actual in (
        (filters.gender, therapist.gender),
        (filters.religion, therapist.religion),
        (filters.age_range, therapist.age_range),
    ):
        if wanted and wanted != "all" and _lower(wanted) != _lower(actual):
            return False
    if _lower(filters.lgbtq) == "yes" and not therapist.lgbtq_friendly:
        return False

    lowered_locations = [_lower(loc) for loc in locations]
    for place in (filters.city, filters.area):
        if place and place != "all" and _lower(place) not in lowered_locations:
            return False

    if filters.experience and not _experience_matches(filters.experience, therapist.years_of_experience or 0):
        return False
    if filters.remote and not therapist.remote_available:
        return False

    query = _lower(filters.q)
    if query:
        haystack = [
            therapist.full_name,
            therapist.title,
            therapist.bio_short,
            *(therapist.interests or []),
            *locations,
        ]
        if not any(query in _lower(value) for value in haystack):
            return False
    return True


def _sort_key(sort: str):
    if sort == "price-high":
        return lambda t: -(t.session_price_45_min or 0)
    if sort == "price-low":
        return lambda t: t.session_price_45_min or 0
    if sort == "experience":
        return lambda t: -(t.years_of_experience or 0)
    return lambda t: -(t.ranking_points or 0)


def filter_directory(therapists: Iterable[Therapist], filters: DirectoryFilters) -> list[Therapist]:
    """Apply the directory filters and ordering to already loaded therapists."""
    ordered = sorted(therapists, key=_sort_key(filters.sort))
    result = [t for t in ordered if _matches(t, t.location_names, filters)]
    if filters.limit is not None:
        result = result[: filters.limit]
    return result


def to_public(therapist: Therapist) -> TherapistPublic:
    return TherapistPublic.model_validate(therapist)


def to_read(therapist: Therapist) -> TherapistRead:
    return TherapistRead.model_validate(therapist)


class TherapistsService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = TherapistsRepository(db)
        self.users = UsersRepository(db)

    def _require(self, therapist_id: str) -> Therapist:
        therapist = self.repo.get(therapist_id)
        if therapist is None:
            raise NotFoundError("Therapist not found")
        return therapist

    # ---- Public directory ----
    def directory(self, filters: DirectoryFilters) -> list[TherapistPublic]:
        return [to_public(t) for t in filter_directory(self.repo.list_active(), filters)]

    # ---- Onboarding & self-service ----
    def complete_onboarding(self, user: User, data: OnboardingPayload) -> TherapistRead:
        now = utcnow()
        user.full_name = data.full_name
        user.terms_accepted_at = now
        self.db.add(user)

        therapist = self.repo.get(user.id)
        first_time = therapist is None or therapist.status == STATUS_PENDING
        if therapist is None:
            therapist = Therapist(user_id=user.id)
            self.db.add(therapist)

        therapist.full_name = data.full_name
        therapist.title = data.title
        therapist.bio_short = data.bio_short
        therapist.bio_long = data.bio_long
        therapist.religion = data.religion
        therapist.age_range = data.age_range
        therapist.years_of_experience = data.years_of_experience
        therapist.languages = list(data.languages)
        therapist.interests = list(data.interests)
        therapist.session_price_45_min = data.session_price_45_min
        therapist.profile_image_url = str(data.profile_image_url) if data.profile_image_url else None
        therapist.gender = data.gender
        therapist.lgbtq_friendly = data.lgbtq_friendly
        therapist.status = STATUS_ACTIVE
        if first_time:
            therapist.ranking_points = settings.DEFAULT_RANKING_POINTS
            therapist.total_sessions = 0
        self.db.flush()

        self.repo.replace_locations(therapist, data.locations)
        record_admin_action(self.db, "therapist.complete_onboarding", target_user_id=user.id)
        self.db.commit()
        self.db.refresh(therapist)
        logger.info("Therapist %s completed onboarding", user.id)
        return to_read(therapist)

    def get_own(self, user: User) -> TherapistRead:
        return to_read(self._require(user.id))

    def update_own(self, user: User, data: TherapistSelfUpdate) -> TherapistRead:
        therapist = self._require(user.id)
        changes = data.model_dump(exclude_unset=True)
        locations = changes.pop("locations", None)
        if "profile_image_url" in changes and changes["profile_image_url"] is not None:
            changes["profile_image_url"] = str(changes["profile_image_url"])
        for field, value in changes.items():
            setattr(therapist, field, value)
        if "full_name" in changes:
            user.full_name = changes["full_name"]
            self.db.add(user)
        if locations is not None:
            self.repo.replace_locations(therapist, locations)
        self.db.add(therapist)
        self.db.commit()
        self.db.refresh(therapist)
        return to_read(therapist)

    # ---- Admin ----
    def admin_list(self) -> list[AdminTherapistRow]:
        last_active = self.repo.last_session_dates()
        rows: list[AdminTherapistRow] = []
        for user, therapist in self.repo.list_therapist_profiles():
            if therapist is None:
                rows.append(
                    AdminTherapistRow(
                        user_id=user.id,
                        email=user.email,
                        full_name=user.full_name or PENDING_ONBOARDING_NAME,
                        status=NOT_ONBOARDED,
                        ranking_points=0,
                        total_sessions=0,
                        commission_per_session=None,
                        remote_available=False,
                        onboarded=False,
                        last_active=None,
                        created_at=user.created_at,
                    )
                )
                continue
            rows.append(
                AdminTherapistRow(
                    user_id=user.id,
                    email=user.email,
                    full_name=therapist.full_name or user.full_name or PENDING_ONBOARDING_NAME,
                    status=therapist.status,
                    ranking_points=therapist.ranking_points or 0,
                    total_sessions=therapist.total_sessions or 0,
                    commission_per_session=therapist.commission_per_session,
                    remote_available=therapist.remote_available,
                    onboarded=True,
                    last_active=last_active.get(user.id),
                    created_at=therapist.created_at,
                )
            )
        rows.sort(key=lambda row: row.ranking_points, reverse=True)
        return rows

    def admin_detail(self, therapist_id: str) -> AdminTherapistDetail:
        therapist = self._require(therapist_id)
        user = self.users.get_by_id(therapist_id)
        month_start = utcnow().date().replace(day=1)
        metric = self.repo.metric_for_month(therapist_id, month_start)
        metrics = MonthlyMetrics(
            month_year=month_start,
            commission_earned=metric.commission_earned if metric else 0.0,
            sessions_count=metric.sessions_count if metric else 0,
        )
        return AdminTherapistDetail(
            therapist=to_read(therapist),
            email=user.email if user else "",
            is_active=bool(user and user.is_active),
            metrics=metrics,
            recent_payments=[
                PaymentSummary.model_validate(p) for p in self.repo.recent_payments(therapist_id)
            ],
            ranking_history=[
                RankingHistoryRead.model_validate(h) for h in self.repo.ranking_history(therapist_id)
            ],
        )

    def set_commission(self, therapist_id: str, rate: float | None, *, admin: User) -> Therapist:
        therapist = self._require(therapist_id)
        therapist.commission_per_session = rate
        record_admin_action(
            self.db,
            "therapist.update_commission",
            actor_id=admin.id,
            target_user_id=therapist_id,
            details={"commission_per_session": rate},
        )
        self.db.add(therapist)
        self.db.commit()
        return therapist

    def set_remote_available(self, therapist_id: str, remote_available: bool) -> Therapist:
        therapist = self._require(therapist_id)
        therapist.remote_available = remote_available
        self.db.add(therapist)
        self.db.commit()
        return therapist

    def set_status(self, therapist_id: str, status: str, *, admin: User) -> Therapist:
        therapist = self._require(therapist_id)
        previous = therapist.status
        therapist.status = status
        if status == STATUS_ACTIVE and previous != STATUS_ACTIVE and not therapist.ranking_points:
            set_ranking(
                self.db,
                therapist,
                settings.DEFAULT_RANKING_POINTS,
                "Reactivated by admin",
                admin_id=admin.id,
            )
        record_admin_action(
            self.db,
            "therapist.update_status",
            actor_id=admin.id,
            target_user_id=therapist_id,
            details={"from": previous, "to": status},
        )
        self.db.add(therapist)
        self.db.commit()
        return therapist

    def delete_therapist(self, user_id: str, *, admin: User) -> None:
        user = self.users.get_by_id(user_id)
        if user is None or user.role != ROLE_THERAPIST:
            raise NotFoundError("Therapist not found")
        email = user.email
        self.repo.delete_account(user_id)
        record_admin_action(
            self.db,
            "therapist.delete",
            actor_id=admin.id,
            target_user_id=user_id,
            target_email=email,
        )
        self.db.commit()
        self.db.expire_all()
        logger.info("Deleted therapist account %s (%s)", user_id, email)
