from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    therapist_id: str
    payment_period_start: date
    payment_period_end: date
    total_sessions: int
    commission_amount: float
    payment_due_date: date
    status: str
    payment_completed_date: datetime | None
    last_paid_action_at: datetime | None
    admin_notes: str | None
    created_at: datetime


class AdminPaymentRead(PaymentRead):
    therapist_name: str | None = None
    monthly_commission: float = 0.0


class AdminPaymentList(BaseModel):
    payments: list[AdminPaymentRead]


class PaymentActionRequest(BaseModel):
    action: str
    payment_id: str
    therapist_id: str | None = None
    amount: float | None = None
    payment_method: str | None = Field(None, max_length=50)
    transaction_id: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=5_000)


class PaymentIdRequest(BaseModel):
    payment_id: str


class RecalcRequest(BaseModel):
    therapist_id: str
    session_date: str


class RecalcResponse(BaseModel):
    ok: bool = True
    total_sessions: int
    commission_amount: float
    period_start: date
    period_end: date


class NotificationWebhookBody(BaseModel):
    paymentId: str = Field(..., min_length=1)
    therapistId: str = Field(..., min_length=1)
    stage: str = Field(..., min_length=1)


class SuspensionWebhookBody(BaseModel):
    paymentId: str = Field(..., min_length=1)
    therapistId: str = Field(..., min_length=1)
