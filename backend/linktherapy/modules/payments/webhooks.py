from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from linktherapy.api.deps import DbDep
from linktherapy.core.errors import NotFoundError
from linktherapy.services.email import EmailSender, get_email_sender
from linktherapy.services.qstash import (
    SIGNATURE_HEADER,
    QStashReceiver,
    SignatureError,
    get_qstash_receiver,
)
from .schemas import NotificationWebhookBody, SuspensionWebhookBody
from .service import PaymentWebhookHandler, WebhookOutcome


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/qstash", tags=["webhooks"])


async def signed_json_body(
    request: Request,
    receiver: Annotated[QStashReceiver, Depends(get_qstash_receiver)],
) -> dict[str, Any]:
    """Verify the QStash signature over the raw body, then decode it."""
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.error("QStash webhook %s called without signature", request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")
    try:
        receiver.verify(signature, body)
    except SignatureError as exc:
        logger.error("QStash signature rejected on %s: %s", request.url.path, exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    return payload


SignedBody = Annotated[dict[str, Any], Depends(signed_json_body)]
MailerDep = Annotated[EmailSender, Depends(get_email_sender)]


def _respond(outcome: WebhookOutcome) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.post("/payment-notification")
def payment_notification(payload: SignedBody, db: DbDep, mailer: MailerDep):
    try:
        data = NotificationWebhookBody.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    logger.info("Processing %s for payment %s", data.stage, data.paymentId)
    handler = PaymentWebhookHandler(db, mailer)
    try:
        outcome = handler.handle_notification(data.paymentId, data.therapistId, data.stage)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return _respond(outcome)


@router.post("/payment-suspension")
def payment_suspension(payload: SignedBody, db: DbDep, mailer: MailerDep):
    try:
        data = SuspensionWebhookBody.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    logger.info("Processing suspension for payment %s", data.paymentId)
    handler = PaymentWebhookHandler(db, mailer)
    try:
        outcome = handler.handle_suspension(data.paymentId, data.therapistId)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return _respond(outcome)
