from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from linktherapy.core.clock import utcnow
from linktherapy.core.config import settings
from linktherapy.core.database import get_db
from linktherapy.core.errors import ConflictError, NotFoundError
from linktherapy.modules.audit.service import record_admin_action
from linktherapy.modules.therapists.models import STATUS_ACTIVE, STATUS_SUSPENDED, Therapist
from linktherapy.modules.therapists.ranking import adjust_ranking, set_ranking
from linktherapy.modules.users.models import User
from linktherapy.services.email import EmailResult, EmailSender, format_period
from linktherapy.services.qstash import QStashClient, get_qstash_client
from .calculator import (
    CommissionCalculator,
    RecalcResult,
    billing_period,
    month_start,
    next_month_start,
    parse_session_date,
)
from .models import (
    PAYMENT_COMPLETED,
    PAYMENT_OVERDUE,
    PAYMENT_PENDING,
    PAYMENT_SUSPENDED,
    TherapistMetric,
    TherapistPayment,
    TherapistPaymentAction,
)
from .notifications import (
    NOTIFICATION_STAGES,
    STAGE_DEADLINE,
    STAGE_REMINDER,
    PaymentNotificationScheduler,
)
from .schemas import AdminPaymentRead, PaymentActionRequest


logger = logging.getLogger(__name__)

TEST_PAYMENT_MARKER = "TEST PAYMENT"
PAYMENT_ACTIONS = ("mark_complete", "mark_paid_again", "mark_overdue", "update_notes")


def get_notification_scheduler(
    client: Annotated[QStashClient, Depends(get_qstash_client)],
) -> PaymentNotificationScheduler:
    return PaymentNotificationScheduler(client, site_url=settings.site_url)


def get_calculator(
    db: Annotated[Session, Depends(get_db)],
    scheduler: Annotated[PaymentNotificationScheduler, Depends(get_notification_scheduler)],
) -> CommissionCalculator:
    return CommissionCalculator(db, scheduler)


CalculatorDep = Annotated[CommissionCalculator, Depends(get_calculator)]


def parse_month(value: str | None) -> date:
    if not value:
        return month_start(utcnow().date())
    try:
        year, month = value.split("-")[:2]
        return date(int(year), int(month), 1)
    except ValueError:
        raise ValueError("month must be formatted as YYYY-MM")


def apply_payment_status_ranking(db: Session, therapist: Therapist, status: str) -> None:
    """Ranking side effect of a payment status change. Caller commits."""
    if status == PAYMENT_COMPLETED:
        adjust_ranking(db, therapist, settings.RANKING_PAYMENT_BONUS, "Payment completed")
    elif status == PAYMENT_OVERDUE:
        adjust_ranking(db, therapist, -settings.RANKING_OVERDUE_PENALTY, "Payment overdue")


class PaymentsService:
    def __init__(self, db: Session, calculator: CommissionCalculator | None = None):
        self.db = db
        self.calculator = calculator or CommissionCalculator(db)

    def _require_payment(self, payment_id: str) -> TherapistPayment:
        payment = self.db.get(TherapistPayment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment

    def _require_therapist(self, therapist_id: str) -> Therapist:
        therapist = self.db.get(Therapist, therapist_id)
        if therapist is None:
            raise NotFoundError("Therapist not found")
        return therapist

    # ---- Listing ----
    def list_for_month(self, month: date) -> list[AdminPaymentRead]:
        stmt = (
            select(TherapistPayment, Therapist.full_name)
            .join(Therapist, Therapist.user_id == TherapistPayment.therapist_id)
            .where(
                TherapistPayment.payment_period_start >= month,
                TherapistPayment.payment_period_start < next_month_start(month),
            )
            .order_by(TherapistPayment.payment_due_date.desc())
        )
        rows = list(self.db.execute(stmt))
        therapist_ids = {payment.therapist_id for payment, _ in rows}
        monthly: dict[str, float] = {}
        if therapist_ids:
            metrics = self.db.scalars(
                select(TherapistMetric).where(
                    TherapistMetric.month_year == month,
                    TherapistMetric.therapist_id.in_(therapist_ids),
                )
            )
            monthly = {m.therapist_id: m.commission_earned for m in metrics}
        result = []
        for payment, name in rows:
            item = AdminPaymentRead.model_validate(payment)
            item.therapist_name = name
            item.monthly_commission = monthly.get(payment.therapist_id, 0.0)
            result.append(item)
        return result

    def list_for_therapist(self, therapist_id: str) -> list[TherapistPayment]:
        stmt = (
            select(TherapistPayment)
            .where(TherapistPayment.therapist_id == therapist_id)
            .order_by(TherapistPayment.payment_period_start.desc())
        )
        return list(self.db.scalars(stmt))

    # ---- Admin actions ----
    def apply_action(self, data: PaymentActionRequest, *, admin: User) -> TherapistPayment:
        if data.action not in PAYMENT_ACTIONS:
            raise ValueError("Unknown action")
        payment = self._require_payment(data.payment_id)
        if data.action == "update_notes":
            payment.admin_notes = data.notes or None
            self.db.add(payment)
            self.db.commit()
            return payment

        therapist = self._require_therapist(data.therapist_id or payment.therapist_id)
        now = utcnow()
        if data.action == "mark_complete":
            payment.status = PAYMENT_COMPLETED
            payment.payment_completed_date = now
            apply_payment_status_ranking(self.db, therapist, PAYMENT_COMPLETED)
        elif data.action == "mark_overdue":
            payment.status = PAYMENT_OVERDUE
            apply_payment_status_ranking(self.db, therapist, PAYMENT_OVERDUE)
        elif data.action == "mark_paid_again":
            payment.last_paid_action_at = now
            self.db.add(
                TherapistPaymentAction(
                    payment_id=payment.id,
                    therapist_id=therapist.user_id,
                    actor_user_id=admin.id,
                    action="paid_again",
                    amount=data.amount,
                    payment_method=data.payment_method or None,
                    transaction_id=data.transaction_id or None,
                    notes=data.notes or None,
                )
            )
            apply_payment_status_ranking(self.db, therapist, PAYMENT_COMPLETED)
            self.calculator.recalculate_payment(payment)
            record_admin_action(
                self.db,
                "payments.mark_paid_again",
                actor_id=admin.id,
                target_user_id=therapist.user_id,
                details={
                    "payment_id": payment.id,
                    "amount": data.amount,
                    "payment_method": data.payment_method,
                    "transaction_id": data.transaction_id,
                    "notes": data.notes,
                },
            )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        logger.info("Payment %s: %s by %s", payment.id, data.action, admin.id)
        return payment

    def delete_payment(self, payment_id: str, *, admin: User) -> None:
        payment = self._require_payment(payment_id)
        self.db.execute(delete(TherapistPaymentAction).where(TherapistPaymentAction.payment_id == payment.id))
        self.db.delete(payment)
        self.db.flush()
        self.calculator.refresh_metrics(payment.therapist_id, month_start(payment.payment_period_start))
        record_admin_action(
            self.db,
            "payments.delete",
            actor_id=admin.id,
            target_user_id=payment.therapist_id,
            details={"payment_id": payment_id},
        )
        self.db.commit()

    def create_test_payment(self) -> tuple[TherapistPayment, Therapist]:
        therapist = self.db.scalar(
            select(Therapist).where(Therapist.status == STATUS_ACTIVE).order_by(Therapist.created_at).limit(1)
        )
        if therapist is None:
            raise ValueError("No active therapists found. Create a therapist first.")
        period = billing_period(utcnow())
        exists = self.db.scalar(
            select(TherapistPayment).where(
                TherapistPayment.therapist_id == therapist.user_id,
                TherapistPayment.payment_period_start == period.start,
            )
        )
        if exists is not None:
            raise ConflictError("A payment already exists for this therapist and period")
        payment = TherapistPayment(
            therapist_id=therapist.user_id,
            payment_period_start=period.start,
            payment_period_end=period.end,
            payment_due_date=period.due_date,
            total_sessions=5,
            commission_amount=round(5 * self.calculator.rate_for(therapist), 2),
            status=PAYMENT_PENDING,
            admin_notes=f"{TEST_PAYMENT_MARKER} - Created for testing purposes",
            notification_message_ids={},
        )
        self.db.add(payment)
        self.db.flush()
        self.calculator.refresh_metrics(therapist.user_id, month_start(period.start))
        self.db.commit()
        self.db.refresh(payment)
        return payment, therapist

    def delete_test_payments(self) -> int:
        rows = list(
            self.db.execute(
                select(
                    TherapistPayment.id,
                    TherapistPayment.therapist_id,
                    TherapistPayment.payment_period_start,
                ).where(TherapistPayment.admin_notes.like(f"%{TEST_PAYMENT_MARKER}%"))
            )
        )
        ids = [row.id for row in rows]
        if ids:
            self.db.execute(delete(TherapistPaymentAction).where(TherapistPaymentAction.payment_id.in_(ids)))
            self.db.execute(delete(TherapistPayment).where(TherapistPayment.id.in_(ids)))
            for therapist_id, month in {(row.therapist_id, month_start(row.payment_period_start)) for row in rows}:
                self.calculator.refresh_metrics(therapist_id, month)
        self.db.commit()
        return len(ids)

    # ---- Calculator entry points ----
    def recalc(self, therapist_id: str, session_date: str) -> RecalcResult:
        when = parse_session_date(session_date)
        return self.calculator.recalculate(therapist_id, when)

    def backfill(self) -> int:
        return self.calculator.backfill()


# ---- Scheduled webhooks ----


@dataclass
class WebhookOutcome:
    body: dict[str, Any]
    status_code: int = 200


class PaymentWebhookHandler:
    """Acts on QStash callbacks; every decision is taken from current database state."""

    def __init__(self, db: Session, mailer: EmailSender):
        self.db = db
        self.mailer = mailer

    def _load(self, payment_id: str, therapist_id: str) -> tuple[TherapistPayment, Therapist | None, User | None]:
        payment = self.db.get(TherapistPayment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        therapist = self.db.get(Therapist, therapist_id)
        user = self.db.get(User, therapist_id) if therapist is not None else None
        return payment, therapist, user

    def handle_notification(self, payment_id: str, therapist_id: str, stage: str) -> WebhookOutcome:
        if stage not in NOTIFICATION_STAGES:
            raise ValueError("Unknown stage")
        payment, therapist, user = self._load(payment_id, therapist_id)
        if payment.status == PAYMENT_COMPLETED:
            logger.info("Payment %s already completed, skipping %s", payment_id, stage)
            return WebhookOutcome({"ok": True, "skipped": True, "reason": "payment_completed"})
        if therapist is None or user is None:
            raise NotFoundError("Therapist not found")

        period = format_period(payment.payment_period_start, payment.payment_period_end)
        amount = float(payment.commission_amount or 0)
        name = therapist.full_name or user.full_name or "there"

        result: EmailResult
        if stage == STAGE_REMINDER:
            result = self.mailer.send_payment_reminder(user.email, name, payment.payment_due_date, amount, period)
        elif stage == STAGE_DEADLINE:
            result = self.mailer.send_payment_deadline(user.email, name, amount, period)
        else:
            if payment.status == PAYMENT_PENDING:
                payment.status = PAYMENT_OVERDUE
                apply_payment_status_ranking(self.db, therapist, PAYMENT_OVERDUE)
                self.db.add(payment)
                self.db.commit()
                logger.info("Payment %s marked as overdue", payment_id)
            result = self.mailer.send_payment_warning(user.email, name, amount, period)

        if not result.success:
            logger.error("Failed to send %s email for payment %s: %s", stage, payment_id, result.error)
            return WebhookOutcome({"error": result.error or "Failed to send email"}, status_code=500)
        logger.info("Sent %s email for payment %s", stage, payment_id)
        return WebhookOutcome({"ok": True, "stage": stage, "paymentId": payment_id})

    def handle_suspension(self, payment_id: str, therapist_id: str) -> WebhookOutcome:
        payment, therapist, user = self._load(payment_id, therapist_id)
        if payment.status == PAYMENT_COMPLETED:
            logger.info("Payment %s already completed, skipping suspension", payment_id)
            return WebhookOutcome({"ok": True, "skipped": True, "reason": "payment_completed"})
        if therapist is None:
            raise NotFoundError("Therapist not found")
        if therapist.status == STATUS_SUSPENDED:
            logger.info("Therapist %s already suspended, skipping", therapist_id)
            return WebhookOutcome({"ok": True, "skipped": True, "reason": "already_suspended"})

        therapist.status = STATUS_SUSPENDED
        set_ranking(
            self.db,
            therapist,
            0,
            f"Account suspended due to non-payment for payment period {payment.id}",
        )
        payment.status = PAYMENT_SUSPENDED
        self.db.add_all([therapist, payment])
        self.db.commit()
        logger.warning("Therapist %s suspended for payment %s", therapist_id, payment_id)

        if user is not None:
            result = self.mailer.send_account_suspension(
                user.email,
                therapist.full_name or user.full_name or "there",
                float(payment.commission_amount or 0),
                format_period(payment.payment_period_start, payment.payment_period_end),
            )
            if not result.success:
                logger.error("Failed to send suspension email to %s: %s", user.email, result.error)
        return WebhookOutcome({"ok": True, "suspended": True, "paymentId": payment_id, "therapistId": therapist_id})
