from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from linktherapy.core.database import Base, JSONType


STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_SUSPENDED = "suspended"
THERAPIST_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_INACTIVE, STATUS_SUSPENDED)


class Therapist(Base):
    __tablename__ = "therapists"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    bio_short: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio_long: Mapped[str | None] = mapped_column(Text, nullable=True)
    religion: Mapped[str | None] = mapped_column(String(50), nullable=True)
    age_range: Mapped[str | None] = mapped_column(String(20), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    lgbtq_friendly: Mapped[bool] = mapped_column(Boolean, default=False)
    years_of_experience: Mapped[int] = mapped_column(Integer, default=0)
    languages: Mapped[list | None] = mapped_column(JSONType, default=list)
    interests: Mapped[list | None] = mapped_column(JSONType, default=list)
    session_price_45_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    remote_available: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=STATUS_PENDING, index=True)
    ranking_points: Mapped[int] = mapped_column(Integer, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    commission_per_session: Mapped[float | None] = mapped_column(Float, nullable=True)
    churn_rate_monthly: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    location_links: Mapped[list["TherapistLocation"]] = relationship(
        "TherapistLocation",
        back_populates="therapist",
        cascade="all, delete-orphan",
    )

    @property
    def location_names(self) -> list[str]:
        return [link.location.name for link in self.location_links if link.location is not None]


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(150), unique=True, index=True)


class TherapistLocation(Base):
    __tablename__ = "therapist_locations"
    __table_args__ = (UniqueConstraint("therapist_id", "location_id", name="therapist_location"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    therapist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("therapists.user_id", ondelete="CASCADE"), index=True
    )
    location_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("locations.id", ondelete="CASCADE"), index=True
    )

    therapist: Mapped["Therapist"] = relationship("Therapist", back_populates="location_links")
    location: Mapped["Location"] = relationship("Location", lazy="joined")


class TherapistRankingHistory(Base):
    __tablename__ = "therapist_ranking_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    therapist_id: Mapped[str] = mapped_column(String(36), index=True)
    previous_ranking: Mapped[int] = mapped_column(Integer)
    new_ranking: Mapped[int] = mapped_column(Integer)
    change_reason: Mapped[str] = mapped_column(Text)
    changed_by_admin_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
