from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from linktherapy.core.database import Base


SESSION_SCHEDULED = "scheduled"
SESSION_COMPLETED = "completed"
SESSION_CANCELLED = "cancelled"
SESSION_RESCHEDULED = "rescheduled"

# Sessions that count toward commission
BILLABLE_STATUSES = (SESSION_SCHEDULED, SESSION_COMPLETED)

DEFAULT_DURATION_MINUTES = 60
DEFAULT_PRICE = 100.0


class TherapySession(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    therapist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("therapists.user_id", ondelete="CASCADE"), index=True
    )
    client_name: Mapped[str] = mapped_column(String(200))
    client_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    session_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=DEFAULT_DURATION_MINUTES)
    price: Mapped[float] = mapped_column(Float, default=DEFAULT_PRICE)
    status: Mapped[str] = mapped_column(String(20), default=SESSION_SCHEDULED, index=True)
    rescheduled_from: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
