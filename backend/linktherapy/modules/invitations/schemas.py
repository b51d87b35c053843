from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class InviteRequest(BaseModel):
    email: EmailStr


class BulkInviteRequest(BaseModel):
    emails: list[str] = Field(..., min_length=1)


class BulkInviteItem(BaseModel):
    email: str
    status: str
    message: str


class BulkInviteResponse(BaseModel):
    ok: bool = True
    results: list[BulkInviteItem]


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class AcceptInviteRequest(TokenRequest):
    password: str = Field(..., min_length=12, max_length=256)


class ValidateInviteResponse(BaseModel):
    valid: bool = True
    email: str
    invited_at: datetime
    expires_at: datetime
