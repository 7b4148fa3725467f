"""Background jobs run by the in-process scheduler."""
from __future__ import annotations

import logging

from eventory import db
from eventory.config import get_settings
from eventory.services.notifications import dispatch_pending_notifications, get_email_sender

logger = logging.getLogger(__name__)


def dispatch_email_notifications_once() -> int:
    """Send one batch of pending notification emails."""

    settings = get_settings()
    try:
        with db.session_scope() as session:
            return dispatch_pending_notifications(
                session,
                get_email_sender(settings),
                batch_size=settings.EMAIL_DISPATCH_BATCH_SIZE,
            )
    except Exception:  # noqa: BLE001
        logger.exception("Email dispatch run failed")
        return 0


__all__ = ["dispatch_email_notifications_once"]
