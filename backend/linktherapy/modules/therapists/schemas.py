from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, HttpUrl, field_validator


Religion = Literal["Christian", "Druze", "Sunni", "Shiite", "Other"]
AgeRange = Literal["21-28", "29-36", "37-45", "46-55", "55+"]
Gender = Literal["male", "female", "other"]
DirectorySort = Literal["ranking", "price-high", "price-low", "experience"]
TherapistStatus = Literal["pending", "active", "inactive", "suspended"]

EXPERIENCE_BANDS = ("0-5", "6-10", "11-15", "16+")
LEGACY_EXPERIENCE_BANDS = {
    "1-3": "0-5",
    "4-7": "6-10",
    "7-10": "6-10",
    "10+": "16+",
}


# ---- Public directory ----


class DirectoryFilters(BaseModel):
    q: str | None = None
    problem: str | None = None
    gender: str | None = None
    lgbtq: str | None = None
    religion: str | None = None
    age_range: str | None = None
    city: str | None = None
    area: str | None = None
    experience: str | None = None
    price_min: float | None = Field(None, ge=0)
    price_max: float | None = Field(None, ge=0)
    remote: bool | None = None
    sort: DirectorySort = "ranking"
    limit: int | None = Field(None, ge=1, le=500)

    @field_validator("experience")
    @classmethod
    def normalize_experience(cls, value: str | None) -> str | None:
        if not value or value == "all":
            return None
        value = LEGACY_EXPERIENCE_BANDS.get(value, value)
        if value not in EXPERIENCE_BANDS:
            raise ValueError(f"experience must be one of {', '.join(EXPERIENCE_BANDS)}")
        return value


class TherapistPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    full_name: str | None
    title: str | None
    bio_short: str | None
    bio_long: str | None
    religion: str | None
    age_range: str | None
    gender: str | None
    lgbtq_friendly: bool
    years_of_experience: int
    languages: list[str] = []
    interests: list[str] = []
    session_price_45_min: float | None
    profile_image_url: str | None
    remote_available: bool
    ranking_points: int
    locations: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("locations", "location_names"),
    )

    @field_validator("languages", "interests", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return value or []


# ---- Onboarding & self-service ----


class OnboardingPayload(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    title: str = Field(..., min_length=1, max_length=200)
    bio_short: str = Field(..., min_length=1, max_length=500)
    bio_long: str = Field(..., min_length=1, max_length=10_000)
    religion: Religion
    age_range: AgeRange
    years_of_experience: int = Field(..., ge=0, le=80)
    languages: list[str] = Field(..., min_length=1)
    interests: list[str] = Field(..., min_length=1)
    session_price_45_min: float = Field(..., ge=0)
    profile_image_url: HttpUrl | None = None
    gender: Gender
    lgbtq_friendly: bool = False
    locations: list[str] = Field(..., min_length=1, max_length=2)
    accept_tos: bool

    @field_validator("accept_tos")
    @classmethod
    def must_accept_tos(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must accept the terms of service")
        return value

    @field_validator("languages", "interests", "locations")
    @classmethod
    def strip_items(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("At least one value is required")
        return cleaned


class TherapistSelfUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=200)
    title: str | None = Field(None, max_length=200)
    bio_short: str | None = Field(None, max_length=500)
    bio_long: str | None = Field(None, max_length=10_000)
    religion: Religion | None = None
    age_range: AgeRange | None = None
    gender: Gender | None = None
    lgbtq_friendly: bool | None = None
    years_of_experience: int | None = Field(None, ge=0, le=80)
    languages: list[str] | None = None
    interests: list[str] | None = None
    session_price_45_min: float | None = Field(None, ge=0)
    profile_image_url: HttpUrl | None = None
    remote_available: bool | None = None
    locations: list[str] | None = Field(None, min_length=1, max_length=2)


class TherapistRead(TherapistPublic):
    status: str
    total_sessions: int
    commission_per_session: float | None
    churn_rate_monthly: float
    created_at: datetime
    updated_at: datetime | None


# ---- Admin ----


class AdminTherapistRow(BaseModel):
    user_id: str
    email: str
    full_name: str
    status: str
    ranking_points: int
    total_sessions: int
    commission_per_session: float | None
    remote_available: bool
    onboarded: bool
    last_active: datetime | None
    created_at: datetime | None


class RankingHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    previous_ranking: int
    new_ranking: int
    change_reason: str
    changed_by_admin_id: str | None
    created_at: datetime


class PaymentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    payment_period_start: date
    payment_period_end: date
    total_sessions: int
    commission_amount: float
    payment_due_date: date
    status: str


class MonthlyMetrics(BaseModel):
    month_year: date
    commission_earned: float = 0.0
    sessions_count: int = 0


class AdminTherapistDetail(BaseModel):
    therapist: TherapistRead
    email: str
    is_active: bool
    metrics: MonthlyMetrics
    recent_payments: list[PaymentSummary]
    ranking_history: list[RankingHistoryRead]


class CommissionUpdate(BaseModel):
    therapist_id: str
    commission_per_session: float | None = Field(None, ge=0)


class ToggleOnlineRequest(BaseModel):
    therapist_id: str
    remote_available: bool


class StatusUpdate(BaseModel):
    therapist_id: str
    status: TherapistStatus


class DeleteTherapistRequest(BaseModel):
    user_id: str
