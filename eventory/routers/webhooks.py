"""Routes receiving payment processor settlement callbacks."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from eventory.db import get_db
from eventory.schemas.webhook import WebhookAck
from eventory.services import payment_webhooks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payments", response_model=WebhookAck, response_model_exclude_none=True, status_code=status.HTTP_200_OK)
async def payment_webhook(request: Request, db: Session = Depends(get_db)) -> WebhookAck:
    client_ip = request.client.host if request.client else None
    payment_webhooks.enforce_rate_limit(client_ip)

    raw_body = await payment_webhooks.read_bounded_body(request)
    payment_webhooks.verify_webhook_signature(raw_body, dict(request.headers.items()))
    payload = payment_webhooks.parse_webhook_payload(raw_body)

    ack = await run_in_threadpool(payment_webhooks.handle_payment_webhook, db, payload, url=str(request.url))
    logger.info(
        "Payment webhook processed",
        extra={"webhook_id": payload.id, "event_type": payload.type, "client_ip": client_ip},
    )
    return ack


@router.post("/stripe", response_model=WebhookAck, response_model_exclude_none=True, status_code=status.HTTP_200_OK)
async def stripe_webhook(request: Request, db: Session = Depends(get_db)) -> WebhookAck:
    payment_webhooks.enforce_rate_limit(request.client.host if request.client else None)
    return await payment_webhooks.handle_stripe_webhook(request, db)


__all__ = ["router"]
