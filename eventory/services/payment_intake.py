"""Ticket payment intake: server-side checks, charge and pending ticket."""
from __future__ import annotations

import logging
import traceback

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventory.config import get_settings
from eventory.models import Event, Ticket, TicketPaymentStatus, TicketStatus
from eventory.schemas.payment import CENT, PaymentIntakeRequest, PaymentIntakeResponse
from eventory.services.error_logs import record_error
from eventory.services.idempotency import find_recent_pending_ticket
from eventory.services.processors import (
    CHARGE_SUCCESSFUL,
    ProcessorNotConfigured,
    ProcessorUnavailable,
    get_payment_processor,
)
from eventory.utils.audit import log_audit
from eventory.utils.errors import error_response
from eventory.utils.time import utcnow

logger = logging.getLogger(__name__)


def _load_event(db: Session, event_id: str) -> Event:
    event = db.scalars(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    ).first()
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("EVENT_NOT_FOUND", "Event not found."),
        )
    return event


def check_purchase_allowed(db: Session, request: PaymentIntakeRequest) -> Event:
    """Run every business check that must pass before money moves."""

    settings = get_settings()
    event = _load_event(db, request.event_id)

    if not event.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("EVENT_INACTIVE", "Event is not active."),
        )

    if event.current_attendees + request.quantity > event.max_attendees:
        logger.info(
            "Ticket purchase rejected for capacity",
            extra={
                "event_id": event.id,
                "requested": request.quantity,
                "current_attendees": event.current_attendees,
                "max_attendees": event.max_attendees,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("INSUFFICIENT_CAPACITY", "Insufficient capacity."),
        )

    expected_total = event.price * request.quantity
    if abs(request.amount - expected_total) > CENT:
        logger.warning(
            "Price mismatch on ticket purchase",
            extra={"event_id": event.id, "expected": str(expected_total), "provided": str(request.amount)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("PRICE_MISMATCH", "Price mismatch."),
        )

    duplicate = find_recent_pending_ticket(
        db,
        user_id=request.user_id,
        event_id=request.event_id,
        window_seconds=settings.DUPLICATE_PAYMENT_WINDOW_SECONDS,
    )
    if duplicate is not None:
        logger.info(
            "Duplicate payment attempt blocked",
            extra={"event_id": event.id, "ticket_id": duplicate.id},
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("DUPLICATE_PAYMENT", "Duplicate payment attempt detected."),
        )

    return event


def _unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=error_response("PAYMENT_SERVICE_UNAVAILABLE", "Payment service unavailable."),
    )


def process_payment(db: Session, request: PaymentIntakeRequest) -> PaymentIntakeResponse:
    """Charge the purchaser and record a pending ticket awaiting settlement."""

    settings = get_settings()
    check_purchase_allowed(db, request)

    try:
        processor = get_payment_processor(settings)
    except ProcessorNotConfigured:
        logger.error("Payment processor not configured", extra={"provider": settings.PAYMENT_PROVIDER})
        raise _unavailable()

    metadata = {
        "eventId": request.event_id,
        "userId": request.user_id,
        "quantity": str(request.quantity),
        "timestamp": utcnow().isoformat(),
    }
    try:
        charge = processor.create_charge(
            token=request.payment_method_id,
            amount=request.amount,
            currency=request.currency,
            metadata=metadata,
        )
    except ProcessorUnavailable as exc:
        record_error(
            db,
            error_type="payment_provider_unreachable",
            message=f"{processor.name} charge failed: {exc}",
            user_id=request.user_id,
        )
        raise _unavailable()

    if not charge.ok:
        logger.warning(
            "Payment declined by processor",
            extra={"provider": processor.name, "charge_status": charge.status},
        )
        record_error(
            db,
            error_type="payment_failed",
            message=f"{processor.name} payment failed: {charge.raw}",
            user_id=request.user_id,
            reference=charge.id,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response(
                "PAYMENT_FAILED",
                "Payment failed.",
                {"message": charge.display_message or "Payment declined"},
            ),
        )

    if charge.status != CHARGE_SUCCESSFUL or not charge.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("PAYMENT_NOT_SUCCESSFUL", "Payment not successful.", {"status": charge.status}),
        )

    ticket = Ticket(
        user_id=request.user_id,
        event_id=request.event_id,
        quantity=request.quantity,
        total_price=request.amount,
        status=TicketStatus.PENDING,
        payment_status=TicketPaymentStatus.PROCESSING,
        payment_reference=charge.id,
        payment_method=processor.name,
        purchaser_email=request.user_email,
    )
    try:
        db.add(ticket)
        db.flush()
        log_audit(
            db,
            action="payment_initiated",
            resource_type="payment",
            resource_id=charge.id,
            details={
                "amount": str(request.amount),
                "currency": request.currency,
                "eventId": request.event_id,
                "userId": request.user_id,
                "quantity": request.quantity,
            },
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        # The charge is captured but no ticket exists; the error row carries the
        # charge id so the orphan shows up in the admin reconciliation view.
        logger.error(
            "Ticket creation failed after successful charge",
            extra={"payment_reference": charge.id, "event_id": request.event_id},
        )
        record_error(
            db,
            error_type="ticket_creation_failed",
            message=f"Failed to create ticket: {type(exc).__name__}",
            user_id=request.user_id,
            reference=charge.id,
            stack_trace=traceback.format_exc(),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_response("TICKET_CREATION_FAILED", "Failed to process ticket."),
        ) from exc

    logger.info(
        "Payment initiated",
        extra={"ticket_id": ticket.id, "payment_reference": charge.id, "provider": processor.name},
    )
    return PaymentIntakeResponse(success=True, paymentId=charge.id, status=charge.status)


__all__ = ["check_purchase_allowed", "process_payment"]
