from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from linktherapy.api.deps import AdminDep, DbDep, TherapistDep
from linktherapy.core.errors import ConflictError, NotFoundError
from .schemas import (
    AdminPaymentList,
    PaymentActionRequest,
    PaymentIdRequest,
    PaymentRead,
    RecalcRequest,
    RecalcResponse,
)
from .service import CalculatorDep, PaymentsService, parse_month
from .webhooks import router as webhooks_router


router = APIRouter(tags=["payments"])
admin_router = APIRouter(prefix="/admin", tags=["admin-payments"])

__all__ = ["router", "admin_router", "webhooks_router"]


@router.get("/payments/mine", response_model=list[PaymentRead])
def my_payments(db: DbDep, current: TherapistDep):
    return PaymentsService(db).list_for_therapist(current.id)


@admin_router.get("/payments", response_model=AdminPaymentList)
def list_payments(db: DbDep, _: AdminDep, month: str | None = Query(None, pattern=r"^\d{4}-\d{2}$")):
    try:
        target = parse_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return AdminPaymentList(payments=PaymentsService(db).list_for_month(target))


@admin_router.post("/payments")
def payment_action(payload: PaymentActionRequest, db: DbDep, admin: AdminDep, calculator: CalculatorDep):
    svc = PaymentsService(db, calculator)
    try:
        svc.apply_action(payload, admin=admin)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"ok": True}


@admin_router.post("/payments/delete")
def delete_payment(payload: PaymentIdRequest, db: DbDep, admin: AdminDep):
    try:
        PaymentsService(db).delete_payment(payload.payment_id, admin=admin)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"success": True, "message": "Payment deleted successfully"}


@admin_router.post("/payments/create-test")
def create_test_payment(db: DbDep, _: AdminDep):
    try:
        payment, therapist = PaymentsService(db).create_test_payment()
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {
        "success": True,
        "payment": PaymentRead.model_validate(payment),
        "message": f"Test payment created for {therapist.full_name or therapist.user_id}",
    }


@admin_router.post("/payments/delete-test")
def delete_test_payments(db: DbDep, _: AdminDep):
    deleted = PaymentsService(db).delete_test_payments()
    return {"success": True, "deleted": deleted, "message": f"Deleted {deleted} test payment(s)"}


@admin_router.post("/payments/recalc", response_model=RecalcResponse)
def recalc_payment(payload: RecalcRequest, db: DbDep, _: AdminDep, calculator: CalculatorDep):
    svc = PaymentsService(db, calculator)
    try:
        result = svc.recalc(payload.therapist_id, payload.session_date)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return RecalcResponse(
        total_sessions=result.total_sessions,
        commission_amount=result.commission_amount,
        period_start=result.period_start,
        period_end=result.period_end,
    )


@admin_router.post("/backfill-commissions")
def backfill_commissions(db: DbDep, _: AdminDep):
    updated = PaymentsService(db).backfill()
    return {"ok": True, "updated": updated}
