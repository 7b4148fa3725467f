"""Attendance counter updates guarded by compare-and-swap."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from eventory.models.event import Event
from eventory.services.concurrency import compare_and_set

logger = logging.getLogger(__name__)


class AttendanceOutcome(str, enum.Enum):
    INCREMENTED = "incremented"
    CONFLICT = "conflict"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    EVENT_MISSING = "event_missing"


@dataclass
class AttendanceUpdate:
    outcome: AttendanceOutcome
    attempts: int
    current_attendees: int | None = None


def _read_counts(db: Session, event_id: str) -> tuple[int, int] | None:
    row = db.execute(
        select(Event.current_attendees, Event.max_attendees).where(Event.id == event_id)
    ).one_or_none()
    if row is None:
        return None
    return row.current_attendees, row.max_attendees


def increment_attendance(
    db: Session,
    event_id: str,
    quantity: int,
    *,
    observed: int,
    max_attendees: int,
    max_retries: int,
) -> AttendanceUpdate:
    """Add ``quantity`` to ``current_attendees`` if it still equals ``observed``.

    On a lost compare-and-swap the counts are re-read and the write retried up
    to ``max_retries`` times. Capacity is re-checked on every attempt so the
    counter never exceeds ``max_attendees``. Nothing is committed here.
    """

    attempts = 0
    while True:
        attempts += 1
        if observed + quantity > max_attendees:
            return AttendanceUpdate(AttendanceOutcome.CAPACITY_EXCEEDED, attempts, observed)

        if compare_and_set(
            db,
            Event,
            event_id,
            expected={"current_attendees": observed},
            values={"current_attendees": observed + quantity},
        ):
            return AttendanceUpdate(AttendanceOutcome.INCREMENTED, attempts, observed + quantity)

        if attempts > max_retries:
            return AttendanceUpdate(AttendanceOutcome.CONFLICT, attempts, observed)

        counts = _read_counts(db, event_id)
        if counts is None:
            return AttendanceUpdate(AttendanceOutcome.EVENT_MISSING, attempts)
        logger.info(
            "Attendance counter moved underneath us; retrying",
            extra={"event_id": event_id, "observed": observed, "current": counts[0], "attempt": attempts},
        )
        observed, max_attendees = counts


__all__ = ["AttendanceOutcome", "AttendanceUpdate", "increment_attendance"]
