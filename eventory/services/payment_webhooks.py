"""Services handling payment processor webhook callbacks."""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import traceback
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

import stripe
from fastapi import HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from eventory.config import get_settings
from eventory.models import Event, Ticket, TicketPaymentStatus, TicketStatus
from eventory.schemas.webhook import PAYMENT_SUCCEEDED, ChargeMetadata, WebhookAck, WebhookPayload
from eventory.services.attendance import AttendanceOutcome, increment_attendance
from eventory.services.concurrency import compare_and_set
from eventory.services.error_logs import record_error
from eventory.services.idempotency import get_existing_by_key
from eventory.services.notifications import enqueue_payment_confirmation
from eventory.services.processors import ProcessorNotConfigured
from eventory.services.psp_stripe import StripeClient
from eventory.services.rate_limit import webhook_rate_limiter
from eventory.utils.audit import log_audit
from eventory.utils.errors import error_response

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already processed"


def _current_settings():
    return get_settings()


def _current_secrets() -> tuple[str | None, str | None]:
    settings = _current_settings()
    return settings.payment_webhook_secret, settings.payment_webhook_secret_next


def _masked_secret_status(secrets_info: Mapping[str, str | None]) -> dict[str, str | None]:
    """Return deterministic markers instead of raw secrets for logging."""

    masked: dict[str, str | None] = {}
    for name, secret in secrets_info.items():
        if not secret:
            masked[name] = None
            continue

        digest = hashlib.sha256(secret.encode()).hexdigest()[:8]
        masked[name] = f"sha256:{digest}"
    return masked


def _get_header(headers: Mapping[str, str], key: str) -> str | None:
    for h_key, value in headers.items():
        if h_key.lower() == key.lower():
            return value
    return None


def compute_webhook_signature(secret: str, body: bytes) -> str:
    """Compute the HMAC-SHA256 hex digest of the raw request body."""

    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def enforce_rate_limit(client_ip: str | None) -> None:
    settings = _current_settings()
    key = client_ip or "unknown"
    if not webhook_rate_limiter.allow(key, settings.WEBHOOK_RATE_LIMIT_PER_MINUTE):
        logger.warning("Webhook rate limit exceeded", extra={"client_ip": key})
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=error_response("RATE_LIMITED", "Too many requests."),
        )


def _payload_too_large() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error_response("PAYLOAD_TOO_LARGE", "Webhook payload too large."),
    )


async def read_bounded_body(request: Request) -> bytes:
    """Read the raw body, refusing anything above ``WEBHOOK_MAX_BODY_BYTES``."""

    limit = _current_settings().WEBHOOK_MAX_BODY_BYTES
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise _payload_too_large()

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise _payload_too_large()
        chunks.append(chunk)
    return b"".join(chunks)


def verify_webhook_signature(raw_body: bytes, headers: Mapping[str, str]) -> None:
    """Validate the webhook HMAC over the exact bytes received and raise on failure."""

    settings = _current_settings()
    primary_secret, secondary_secret = _current_secrets()
    secrets = [s for s in (primary_secret, secondary_secret) if s]
    secrets_info = {"primary": primary_secret, "secondary": secondary_secret}
    if not secrets:
        logger.error(
            "Payment webhook secrets are not configured",
            extra={"webhook_secret_status": _masked_secret_status(secrets_info)},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response(
                "WEBHOOK_SECRET_NOT_CONFIGURED",
                "Payment webhook secrets are not configured.",
            ),
        )

    provided_sig = _get_header(headers, settings.PAYMENT_WEBHOOK_SIGNATURE_HEADER)
    if provided_sig:
        provided_sig = provided_sig.strip()
        prefix = settings.PAYMENT_WEBHOOK_SIGNATURE_PREFIX
        if prefix and provided_sig.startswith(prefix):
            provided_sig = provided_sig[len(prefix):]
    if not provided_sig:
        logger.warning("Missing payment webhook signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("WEBHOOK_SIGNATURE_MISSING", "Signature header missing."),
        )

    for secret in secrets:
        expected = compute_webhook_signature(secret, raw_body)
        if hmac.compare_digest(expected, provided_sig.lower()):
            return

    logger.warning(
        "Payment webhook signature mismatch",
        extra={"webhook_secret_status": _masked_secret_status(secrets_info)},
    )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error_response("WEBHOOK_SIGNATURE_INVALID", "Invalid webhook signature."),
    )


def _invalid_payload(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error_response("INVALID_PAYLOAD", message),
    )


def parse_webhook_payload(raw_body: bytes) -> WebhookPayload:
    """Deserialize a body whose signature has already been verified."""

    try:
        data = json.loads(raw_body)
    except (UnicodeDecodeError, ValueError):
        raise _invalid_payload("Webhook body is not valid JSON.")
    if not isinstance(data, dict):
        raise _invalid_payload("Webhook body must be a JSON object.")
    try:
        return WebhookPayload.model_validate(data)
    except ValidationError:
        raise _invalid_payload("Webhook payload must include id, type and data.")


@dataclass
class ReconciliationResult:
    ticket_id: str
    already_processed: bool
    attendance: AttendanceOutcome | None = None


def _already_processed(ticket: Ticket) -> ReconciliationResult:
    logger.info(
        "Payment already processed",
        extra={"ticket_id": ticket.id, "payment_reference": ticket.payment_reference},
    )
    return ReconciliationResult(ticket_id=ticket.id, already_processed=True)


def reconcile_payment(
    db: Session,
    *,
    charge_id: str,
    metadata: ChargeMetadata,
    quantity: int,
    currency: str | None = None,
) -> ReconciliationResult:
    """Move the ticket for ``charge_id`` to completed/active exactly once.

    Redelivery of the same charge is a no-op. The ticket transition is
    conditional on ``payment_status == processing`` so two concurrent
    deliveries cannot both count attendance.
    """

    settings = _current_settings()
    ticket = get_existing_by_key(db, Ticket, charge_id, key_field="payment_reference")
    if ticket is None:
        logger.error("Settlement for unknown charge", extra={"payment_reference": charge_id})
        record_error(
            db,
            error_type="orphaned_payment",
            message=f"Settlement received for charge {charge_id} with no ticket",
            user_id=metadata.user_id or None,
            reference=charge_id,
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("TICKET_NOT_FOUND", "No ticket for this payment."),
        )

    if ticket.payment_status == TicketPaymentStatus.COMPLETED:
        return _already_processed(ticket)

    if (
        ticket.user_id != metadata.user_id
        or ticket.event_id != metadata.event_id
        or ticket.quantity != quantity
    ):
        logger.warning(
            "Webhook metadata does not match ticket",
            extra={"ticket_id": ticket.id, "payment_reference": charge_id},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("TICKET_MISMATCH", "Payment metadata does not match the ticket."),
        )

    event = db.scalars(
        select(Event).where(Event.id == metadata.event_id).execution_options(populate_existing=True)
    ).first()
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("EVENT_NOT_FOUND", "Event not found."),
        )

    observed = event.current_attendees
    if observed + quantity > event.max_attendees:
        logger.warning(
            "Capacity exceeded at settlement",
            extra={"event_id": event.id, "payment_reference": charge_id, "current_attendees": observed},
        )
        record_error(
            db,
            error_type="capacity_exceeded_after_payment",
            message=f"Event {event.id} full when settling charge {charge_id}",
            user_id=ticket.user_id,
            reference=charge_id,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("CAPACITY_EXCEEDED", "Event capacity exceeded."),
        )

    transitioned = compare_and_set(
        db,
        Ticket,
        ticket.id,
        expected={
            "payment_reference": charge_id,
            "user_id": metadata.user_id,
            "event_id": metadata.event_id,
            "payment_status": TicketPaymentStatus.PROCESSING,
        },
        values={"payment_status": TicketPaymentStatus.COMPLETED, "status": TicketStatus.ACTIVE},
    )
    if not transitioned:
        db.rollback()
        current = db.scalar(select(Ticket.payment_status).where(Ticket.id == ticket.id))
        if current == TicketPaymentStatus.COMPLETED:
            return _already_processed(ticket)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("TICKET_MISMATCH", "Ticket is not awaiting settlement."),
        )

    attendance = increment_attendance(
        db,
        event.id,
        quantity,
        observed=observed,
        max_attendees=event.max_attendees,
        max_retries=settings.ATTENDANCE_CAS_MAX_RETRIES,
    )

    enqueue_payment_confirmation(
        db, ticket=ticket, event=event, amount=Decimal(ticket.total_price), currency=currency
    )
    log_audit(
        db,
        action="payment_completed",
        resource_type="payment",
        resource_id=charge_id,
        details={
            "ticketId": ticket.id,
            "eventId": event.id,
            "userId": ticket.user_id,
            "quantity": quantity,
            "attendance": attendance.outcome.value,
        },
    )
    db.commit()

    if attendance.outcome is not AttendanceOutcome.INCREMENTED:
        # Ticket stays completed; attendance is now undercounted until an
        # operator corrects it.
        logger.error(
            "Attendance not incremented for settled ticket",
            extra={
                "event_id": event.id,
                "ticket_id": ticket.id,
                "outcome": attendance.outcome.value,
                "attempts": attendance.attempts,
            },
        )
        record_error(
            db,
            error_type="attendance_update_conflict",
            message=(
                f"Attendance for event {event.id} not incremented by {quantity} "
                f"({attendance.outcome.value} after {attendance.attempts} attempts)"
            ),
            user_id=ticket.user_id,
            reference=charge_id,
        )

    logger.info(
        "Payment reconciled",
        extra={"ticket_id": ticket.id, "payment_reference": charge_id, "attendance": attendance.outcome.value},
    )
    return ReconciliationResult(ticket_id=ticket.id, already_processed=False, attendance=attendance.outcome)


def _reconcile_or_fail(db: Session, *, url: str | None, **kwargs: Any) -> ReconciliationResult:
    """Run ``reconcile_payment``, turning unexpected failures into a logged 500."""

    try:
        return reconcile_payment(db, **kwargs)
    except HTTPException:
        raise
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        logger.exception("Webhook processing failed", extra={"payment_reference": kwargs.get("charge_id")})
        record_error(
            db,
            error_type="webhook_error",
            message=str(exc) or type(exc).__name__,
            reference=kwargs.get("charge_id"),
            stack_trace=traceback.format_exc(),
            url=url,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_response("WEBHOOK_PROCESSING_FAILED", "Webhook processing failed."),
        ) from exc


def _metadata_and_quantity(raw_metadata: Any) -> tuple[ChargeMetadata, int]:
    metadata = ChargeMetadata.from_raw(raw_metadata)
    quantity = metadata.parsed_quantity()
    if not metadata.event_id or not metadata.user_id or quantity is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("INVALID_METADATA", "Payment metadata is incomplete."),
        )
    return metadata, quantity


def handle_payment_webhook(db: Session, payload: WebhookPayload, *, url: str | None = None) -> WebhookAck:
    """Dispatch a verified processor event."""

    if payload.type != PAYMENT_SUCCEEDED:
        logger.info("Ignoring webhook event type", extra={"event_type": payload.type, "webhook_id": payload.id})
        return WebhookAck()

    charge_id = payload.data.get("id")
    if not isinstance(charge_id, str) or not charge_id.strip():
        raise _invalid_payload("Webhook data must include the charge id.")
    charge_id = charge_id.strip()

    metadata, quantity = _metadata_and_quantity(payload.data.get("metadata"))
    currency = payload.data.get("currency") if isinstance(payload.data.get("currency"), str) else None

    result = _reconcile_or_fail(
        db,
        url=url,
        charge_id=charge_id,
        metadata=metadata,
        quantity=quantity,
        currency=currency,
    )
    return WebhookAck(message=ALREADY_PROCESSED if result.already_processed else None)


async def handle_stripe_webhook(request: Request, db: Session) -> WebhookAck:
    """Handle Stripe webhook callbacks when Stripe is the charge backend."""

    settings = _current_settings()
    if not settings.STRIPE_ENABLED:
        logger.warning("Stripe webhook received while Stripe is disabled")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("STRIPE_DISABLED", "Stripe integration is disabled."),
        )

    payload = await read_bounded_body(request)
    sig_header = request.headers.get("Stripe-Signature")
    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("WEBHOOK_SIGNATURE_MISSING", "Stripe-Signature header is required."),
        )

    try:
        client = StripeClient(settings)
        event = client.construct_webhook_event(payload, sig_header)
    except ProcessorNotConfigured as exc:
        logger.error("Stripe webhook configuration error", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("STRIPE_NOT_CONFIGURED", str(exc)),
        )
    except stripe.SignatureVerificationError:
        logger.warning("Stripe signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("WEBHOOK_SIGNATURE_INVALID", "Invalid Stripe signature."),
        )
    except ValueError:
        raise _invalid_payload("Invalid Stripe webhook payload.")

    event_type = event.get("type") or ""
    logger.info("Stripe webhook received", extra={"event_type": event_type, "event_id": event.get("id")})
    if event_type != "payment_intent.succeeded":
        return WebhookAck()

    payment_intent = event["data"]["object"]
    pi_id = payment_intent.get("id")
    if not pi_id:
        raise _invalid_payload("PaymentIntent is missing its id.")
    metadata, quantity = _metadata_and_quantity(payment_intent.get("metadata"))

    result = await run_in_threadpool(
        _reconcile_or_fail,
        db,
        url=str(request.url),
        charge_id=pi_id,
        metadata=metadata,
        quantity=quantity,
        currency=(payment_intent.get("currency") or "").upper() or None,
    )
    return WebhookAck(message=ALREADY_PROCESSED if result.already_processed else None)


__all__ = [
    "ALREADY_PROCESSED",
    "ReconciliationResult",
    "compute_webhook_signature",
    "enforce_rate_limit",
    "handle_payment_webhook",
    "handle_stripe_webhook",
    "parse_webhook_payload",
    "read_bounded_body",
    "reconcile_payment",
    "verify_webhook_signature",
]
