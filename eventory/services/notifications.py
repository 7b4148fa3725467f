"""Email notification outbox: enqueueing and dispatch."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from eventory.config import Settings
from eventory.models import EmailNotification, EmailNotificationStatus, Event, Ticket
from eventory.utils.time import utcnow

logger = logging.getLogger(__name__)

PAYMENT_CONFIRMATION = "payment_confirmation"
PAYMENT_CONFIRMATION_SUBJECT = "Payment Confirmation - Ticket Purchase Successful"


class EmailDeliveryError(RuntimeError):
    """Raised by a sender when the message could not be handed off."""


class EmailSender(Protocol):
    def send(self, *, to: str, subject: str, content: str) -> None:
        ...


class LoggingSender:
    """Sender used when no email provider is configured."""

    def send(self, *, to: str, subject: str, content: str) -> None:
        logger.info("Email not sent (no provider configured)", extra={"subject": subject})


class SendGridSender:
    def __init__(self, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> None:
        self._api_key = settings.SENDGRID_API_KEY
        self._url = settings.SENDGRID_API_URL
        self._from = settings.EMAIL_FROM
        self._transport = transport

    def send(self, *, to: str, subject: str, content: str) -> None:
        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._from},
            "subject": subject,
            "content": [{"type": "text/plain", "value": content}],
        }
        try:
            with httpx.Client(timeout=10.0, transport=self._transport) as client:
                response = client.post(
                    self._url, json=body, headers={"Authorization": f"Bearer {self._api_key}"}
                )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"SendGrid unreachable: {type(exc).__name__}") from exc
        if not response.is_success:
            raise EmailDeliveryError(f"SendGrid answered {response.status_code}")


def get_email_sender(settings: Settings) -> EmailSender:
    if settings.SENDGRID_API_KEY:
        return SendGridSender(settings)
    return LoggingSender()


def enqueue_payment_confirmation(
    db: Session,
    *,
    ticket: Ticket,
    event: Event,
    amount: Decimal,
    currency: str | None,
) -> EmailNotification:
    """Stage the purchaser's confirmation email; the caller commits."""

    amount_text = f"{currency} {amount:.2f}" if currency else f"{amount:.2f}"
    notification = EmailNotification(
        user_id=ticket.user_id,
        event_id=event.id,
        email_type=PAYMENT_CONFIRMATION,
        recipient_email=ticket.purchaser_email or "",
        subject=PAYMENT_CONFIRMATION_SUBJECT,
        content=f"Your payment of {amount_text} for {event.title} has been confirmed.",
        template_data={
            "paymentId": ticket.payment_reference,
            "amount": str(amount),
            "eventId": event.id,
            "quantity": ticket.quantity,
        },
        status=EmailNotificationStatus.PENDING,
    )
    db.add(notification)
    return notification


def dispatch_pending_notifications(db: Session, sender: EmailSender, *, batch_size: int = 10) -> int:
    """Send due pending notifications and return how many were attempted."""

    stmt = (
        select(EmailNotification)
        .where(
            EmailNotification.status == EmailNotificationStatus.PENDING,
            EmailNotification.scheduled_for <= utcnow(),
        )
        .order_by(EmailNotification.scheduled_for)
        .limit(batch_size)
    )
    notifications = list(db.scalars(stmt).all())

    for notification in notifications:
        notification.status = EmailNotificationStatus.PROCESSING
        db.commit()

        if not notification.recipient_email:
            notification.status = EmailNotificationStatus.FAILED
            notification.error_message = "Missing recipient email"
            db.commit()
            continue

        try:
            sender.send(
                to=notification.recipient_email,
                subject=notification.subject,
                content=notification.content,
            )
        except EmailDeliveryError as exc:
            logger.warning(
                "Email notification failed",
                extra={"notification_id": notification.id, "error": str(exc)},
            )
            notification.status = EmailNotificationStatus.FAILED
            notification.error_message = str(exc)
        else:
            notification.status = EmailNotificationStatus.SENT
            notification.sent_at = utcnow()
        db.commit()

    if notifications:
        logger.info("Email notifications dispatched", extra={"count": len(notifications)})
    return len(notifications)


__all__ = [
    "PAYMENT_CONFIRMATION",
    "EmailDeliveryError",
    "EmailSender",
    "LoggingSender",
    "SendGridSender",
    "dispatch_pending_notifications",
    "enqueue_payment_confirmation",
    "get_email_sender",
]
