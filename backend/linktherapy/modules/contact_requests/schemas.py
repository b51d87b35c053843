from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ContactRequestCreate(BaseModel):
    therapist_id: UUID
    client_name: str = Field(..., min_length=1, max_length=200)
    client_email: EmailStr
    client_phone: str | None = Field(None, max_length=50)
    message: str | None = Field(None, max_length=5_000)
    session_id: str | None = Field(None, max_length=100)


class ContactRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    therapist_id: str
    client_name: str
    client_email: str
    client_phone: str | None
    message: str | None
    session_id: str | None
    status: str
    rejection_reason: str | None
    assigned_therapist_id: str | None
    assigned_at: datetime | None
    created_at: datetime


class RejectRequest(BaseModel):
    reason: str | None = Field(None, max_length=2_000)


class ScheduleRequest(BaseModel):
    session_date: datetime
    duration_minutes: int = Field(60, ge=5, le=600)
    price: float = Field(100.0, ge=0)


class AssignRequest(BaseModel):
    therapist_id: str
