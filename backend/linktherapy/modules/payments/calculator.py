"""
Bi-monthly commission calculation.

A month has two billing periods: the 1st to the 15th and the 16th to the last
day. Each therapist gets one payment row per period, keyed on the period
start, holding the billable session count and the commission owed.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from linktherapy.core.clock import ensure_utc
from linktherapy.core.config import settings
from linktherapy.core.errors import NotFoundError
from linktherapy.modules.sessions.models import BILLABLE_STATUSES, TherapySession
from linktherapy.modules.therapists.models import Therapist
from .models import PAYMENT_PENDING, TherapistMetric, TherapistPayment

if TYPE_CHECKING:
    from .notifications import PaymentNotificationScheduler


logger = logging.getLogger(__name__)

DUE_DAYS_AFTER_PERIOD_END = 4


@dataclass(frozen=True)
class BillingPeriod:
    start: date
    end: date

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @property
    def end_exclusive(self) -> datetime:
        return datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=timezone.utc)

    @property
    def due_date(self) -> date:
        return self.end + timedelta(days=DUE_DAYS_AFTER_PERIOD_END)


@dataclass
class RecalcResult:
    payment: TherapistPayment
    created: bool

    @property
    def total_sessions(self) -> int:
        return self.payment.total_sessions

    @property
    def commission_amount(self) -> float:
        return self.payment.commission_amount

    @property
    def period_start(self) -> date:
        return self.payment.payment_period_start

    @property
    def period_end(self) -> date:
        return self.payment.payment_period_end


def billing_period(when: datetime | date) -> BillingPeriod:
    """Return the billing period containing ``when`` (datetimes are taken in UTC)."""
    if isinstance(when, datetime):
        when = ensure_utc(when).date()
    if when.day <= 15:
        return BillingPeriod(start=when.replace(day=1), end=when.replace(day=15))
    last_day = calendar.monthrange(when.year, when.month)[1]
    return BillingPeriod(start=when.replace(day=16), end=when.replace(day=last_day))


def parse_session_date(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        raise ValueError("Invalid session_date")
    return ensure_utc(parsed)


def month_start(value: date) -> date:
    return value.replace(day=1)


def next_month_start(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


class CommissionCalculator:
    def __init__(self, db: Session, scheduler: "PaymentNotificationScheduler | None" = None):
        self.db = db
        self.scheduler = scheduler

    def rate_for(self, therapist: Therapist | None) -> float:
        if therapist is not None and therapist.commission_per_session is not None:
            return float(therapist.commission_per_session)
        return float(settings.COMMISSION_PER_SESSION)

    def _count_billable(self, therapist_id: str, start: datetime, end_exclusive: datetime) -> int:
        stmt = select(func.count(TherapySession.id)).where(
            TherapySession.therapist_id == therapist_id,
            TherapySession.status.in_(BILLABLE_STATUSES),
            TherapySession.session_date >= start,
            TherapySession.session_date < end_exclusive,
        )
        return int(self.db.scalar(stmt) or 0)

    def _get_payment(self, therapist_id: str, period_start: date) -> TherapistPayment | None:
        stmt = select(TherapistPayment).where(
            TherapistPayment.therapist_id == therapist_id,
            TherapistPayment.payment_period_start == period_start,
        )
        return self.db.scalar(stmt)

    def _apply(self, payment: TherapistPayment, therapist: Therapist | None, period: BillingPeriod) -> None:
        total = self._count_billable(payment.therapist_id, period.start_at, period.end_exclusive)
        outstanding_from = period.start_at
        last_paid = ensure_utc(payment.last_paid_action_at)
        if last_paid is not None and last_paid > outstanding_from:
            outstanding_from = last_paid
        outstanding = self._count_billable(payment.therapist_id, outstanding_from, period.end_exclusive)
        payment.total_sessions = total
        payment.commission_amount = round(outstanding * self.rate_for(therapist), 2)
        payment.payment_period_end = period.end

    def recalculate(self, therapist_id: str, when: datetime | date) -> RecalcResult:
        """Recompute and upsert the payment row for the period containing ``when``."""
        therapist = self.db.get(Therapist, therapist_id)
        if therapist is None:
            raise NotFoundError("Therapist not found")
        period = billing_period(when)

        payment = self._get_payment(therapist_id, period.start)
        created = payment is None
        if created:
            payment = TherapistPayment(
                therapist_id=therapist_id,
                payment_period_start=period.start,
                payment_period_end=period.end,
                payment_due_date=period.due_date,
                status=PAYMENT_PENDING,
                total_sessions=0,
                commission_amount=0.0,
                notification_message_ids={},
            )
            self.db.add(payment)
        self._apply(payment, therapist, period)
        self.db.flush()
        self.refresh_metrics(therapist_id, month_start(period.start))
        self.db.commit()
        self.db.refresh(payment)
        logger.info(
            "Recalculated %s %s..%s: %s sessions, commission %.2f",
            therapist_id,
            period.start,
            period.end,
            payment.total_sessions,
            payment.commission_amount,
        )

        if created and self.scheduler is not None:
            message_ids = self.scheduler.schedule_for_payment(payment)
            if message_ids:
                payment.notification_message_ids = message_ids
                self.db.add(payment)
                self.db.commit()
                self.db.refresh(payment)
        return RecalcResult(payment=payment, created=created)

    def recalculate_payment(self, payment: TherapistPayment, *, update_metrics: bool = True) -> TherapistPayment:
        """Recompute one stored row in place. Caller commits."""
        therapist = self.db.get(Therapist, payment.therapist_id)
        self._apply(payment, therapist, billing_period(payment.payment_period_start))
        self.db.add(payment)
        if update_metrics:
            self.db.flush()
            self.refresh_metrics(payment.therapist_id, month_start(payment.payment_period_start))
        return payment

    def backfill(self) -> int:
        """Recalculate every stored payment row; returns the number updated."""
        payments = list(self.db.scalars(select(TherapistPayment)))
        months: set[tuple[str, date]] = set()
        for payment in payments:
            self.recalculate_payment(payment, update_metrics=False)
            months.add((payment.therapist_id, month_start(payment.payment_period_start)))
        self.db.flush()
        for therapist_id, month in months:
            self.refresh_metrics(therapist_id, month)
        self.db.commit()
        logger.info("Backfilled commissions for %d payment rows", len(payments))
        return len(payments)

    def refresh_metrics(self, therapist_id: str, month: date) -> TherapistMetric:
        """Roll the month's payment rows up into therapist_metrics. Caller commits."""
        stmt = select(
            func.coalesce(func.sum(TherapistPayment.commission_amount), 0.0),
            func.coalesce(func.sum(TherapistPayment.total_sessions), 0),
        ).where(
            TherapistPayment.therapist_id == therapist_id,
            TherapistPayment.payment_period_start >= month,
            TherapistPayment.payment_period_start < next_month_start(month),
        )
        commission, sessions = self.db.execute(stmt).one()
        metric = self.db.scalar(
            select(TherapistMetric).where(
                TherapistMetric.therapist_id == therapist_id,
                TherapistMetric.month_year == month,
            )
        )
        if metric is None:
            metric = TherapistMetric(therapist_id=therapist_id, month_year=month)
        metric.commission_earned = float(commission or 0.0)
        metric.sessions_count = int(sessions or 0)
        self.db.add(metric)
        return metric
