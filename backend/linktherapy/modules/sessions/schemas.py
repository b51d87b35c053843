from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SessionCreate(BaseModel):
    client_name: str = Field(..., min_length=1, max_length=200)
    client_email: EmailStr | None = None
    session_date: datetime
    duration_minutes: int = Field(60, ge=5, le=600)
    price: float = Field(100.0, ge=0)


class SessionReschedule(BaseModel):
    session_date: datetime


class SessionStatusUpdate(BaseModel):
    status: Literal["completed", "cancelled"]


class SessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    therapist_id: str
    client_name: str
    client_email: str | None
    session_date: datetime
    duration_minutes: int
    price: float
    status: str
    rescheduled_from: str | None
    created_at: datetime
