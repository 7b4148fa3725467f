"""Tests for the confirmation email outbox and its dispatcher."""
from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from eventory.models import EmailNotification, EmailNotificationStatus
from eventory.services import cron
from eventory.services.notifications import (
    EmailDeliveryError,
    LoggingSender,
    SendGridSender,
    dispatch_pending_notifications,
    enqueue_payment_confirmation,
    get_email_sender,
)
from eventory.utils.time import utcnow


class RecordingSender:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[dict] = []
        self.fail_for = fail_for or set()

    def send(self, *, to: str, subject: str, content: str) -> None:
        if to in self.fail_for:
            raise EmailDeliveryError("mailbox unavailable")
        self.sent.append({"to": to, "subject": subject, "content": content})


def _queue(db_session, make_event, make_ticket, *, email: str | None = "fan@example.com") -> EmailNotification:
    event = make_event(title="Afrobeats Live")
    ticket = make_ticket(event, quantity=2, purchaser_email=email)
    notification = enqueue_payment_confirmation(
        db_session, ticket=ticket, event=event, amount=Decimal("200.00"), currency="ZAR"
    )
    db_session.commit()
    return notification


def test_enqueue_renders_amount_and_event(db_session, make_event, make_ticket):
    notification = _queue(db_session, make_event, make_ticket)

    assert notification.status == EmailNotificationStatus.PENDING
    assert notification.content == "Your payment of ZAR 200.00 for Afrobeats Live has been confirmed."
    assert notification.template_data["amount"] == "200.00"


def test_dispatch_marks_sent_and_failed(db_session, make_event, make_ticket):
    ok = _queue(db_session, make_event, make_ticket, email="ok@example.com")
    bounced = _queue(db_session, make_event, make_ticket, email="bounce@example.com")
    sender = RecordingSender(fail_for={"bounce@example.com"})

    attempted = dispatch_pending_notifications(db_session, sender, batch_size=10)

    assert attempted == 2
    assert [mail["to"] for mail in sender.sent] == ["ok@example.com"]
    db_session.expire_all()
    ok = db_session.get(EmailNotification, ok.id)
    bounced = db_session.get(EmailNotification, bounced.id)
    assert ok.status == EmailNotificationStatus.SENT and ok.sent_at is not None
    assert bounced.status == EmailNotificationStatus.FAILED
    assert bounced.error_message == "mailbox unavailable"


def test_dispatch_skips_future_and_missing_recipient(db_session, make_event, make_ticket):
    later = _queue(db_session, make_event, make_ticket)
    later.scheduled_for = utcnow() + timedelta(hours=1)
    nobody = _queue(db_session, make_event, make_ticket, email=None)
    db_session.commit()
    sender = RecordingSender()

    attempted = dispatch_pending_notifications(db_session, sender)

    assert attempted == 1
    assert sender.sent == []
    db_session.expire_all()
    assert db_session.get(EmailNotification, later.id).status == EmailNotificationStatus.PENDING
    assert db_session.get(EmailNotification, nobody.id).status == EmailNotificationStatus.FAILED


def test_sendgrid_sender_posts_v3_payload(settings, monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.test")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(202)

    SendGridSender(settings, transport=httpx.MockTransport(handler)).send(
        to="fan@example.com", subject="Hi", content="Body"
    )

    assert seen["auth"] == "Bearer SG.test"
    assert seen["body"]["personalizations"] == [{"to": [{"email": "fan@example.com"}]}]
    assert seen["body"]["from"] == {"email": settings.EMAIL_FROM}


def test_sendgrid_rejection_raises(settings):
    sender = SendGridSender(settings, transport=httpx.MockTransport(lambda request: httpx.Response(401)))

    with pytest.raises(EmailDeliveryError):
        sender.send(to="fan@example.com", subject="Hi", content="Body")


def test_sender_selection(settings, monkeypatch):
    assert isinstance(get_email_sender(settings), LoggingSender)
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.test")
    assert isinstance(get_email_sender(settings), SendGridSender)


def test_cron_job_uses_configured_sender(db_session, make_event, make_ticket, monkeypatch):
    _queue(db_session, make_event, make_ticket)
    sender = RecordingSender()
    monkeypatch.setattr(cron, "get_email_sender", lambda settings: sender)

    assert cron.dispatch_email_notifications_once() == 1
    assert len(sender.sent) == 1
    db_session.expire_all()
    assert db_session.scalars(select(EmailNotification)).one().status == EmailNotificationStatus.SENT
