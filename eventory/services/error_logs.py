"""Best-effort persistence of operator-facing error records."""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventory.models.error_log import ErrorLog

logger = logging.getLogger(__name__)

_MAX_MESSAGE_LENGTH = 4000


def record_error(
    db: Session,
    *,
    error_type: str,
    message: str,
    user_id: str | None = None,
    reference: str | None = None,
    stack_trace: str | None = None,
    url: str | None = None,
    user_agent: str | None = None,
) -> ErrorLog | None:
    """Insert and commit an ``error_logs`` row.

    Failures to write are logged and swallowed; the caller's error path must
    never be replaced by a logging failure.
    """

    entry = ErrorLog(
        error_type=error_type,
        error_message=message[:_MAX_MESSAGE_LENGTH],
        user_id=user_id,
        reference=reference,
        stack_trace=stack_trace,
        url=url[:512] if url else None,
        user_agent=user_agent[:512] if user_agent else None,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to persist error log", extra={"error_type": error_type})
        return None
    return entry


__all__ = ["record_error"]
