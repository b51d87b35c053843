from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from linktherapy.core.database import Base, JSONType


PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_OVERDUE = "overdue"
PAYMENT_SUSPENDED = "suspended"


class TherapistPayment(Base):
    __tablename__ = "therapist_payments"
    __table_args__ = (
        UniqueConstraint("therapist_id", "payment_period_start", name="therapist_period"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    therapist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("therapists.user_id", ondelete="CASCADE"), index=True
    )
    payment_period_start: Mapped[date] = mapped_column(Date, index=True)
    payment_period_end: Mapped[date] = mapped_column(Date)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    commission_amount: Mapped[float] = mapped_column(Float, default=0.0)
    payment_due_date: Mapped[date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(20), default=PAYMENT_PENDING, index=True)
    payment_completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_paid_action_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # {stage: qstash message id}
    notification_message_ids: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class TherapistPaymentAction(Base):
    __tablename__ = "therapist_payment_actions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    payment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("therapist_payments.id", ondelete="CASCADE"), index=True
    )
    therapist_id: Mapped[str] = mapped_column(String(36), index=True)
    actor_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(50))
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class TherapistMetric(Base):
    __tablename__ = "therapist_metrics"
    __table_args__ = (UniqueConstraint("therapist_id", "month_year", name="therapist_month"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    therapist_id: Mapped[str] = mapped_column(String(36), index=True)
    # First day of the month
    month_year: Mapped[date] = mapped_column(Date, index=True)
    commission_earned: Mapped[float] = mapped_column(Float, default=0.0)
    sessions_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
