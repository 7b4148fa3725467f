"""Unit tests for the attendance counter and webhook rate limiter."""
from __future__ import annotations

from eventory.models import Event
from eventory.services import attendance
from eventory.services.attendance import AttendanceOutcome, increment_attendance
from eventory.services.rate_limit import SlidingWindowRateLimiter


def test_increment_applies_when_counter_unchanged(db_session, make_event):
    event = make_event(max_attendees=10, current_attendees=3)

    update = increment_attendance(
        db_session, event.id, 2, observed=3, max_attendees=10, max_retries=3
    )
    db_session.commit()

    assert update.outcome == AttendanceOutcome.INCREMENTED
    assert update.attempts == 1
    db_session.expire_all()
    assert db_session.get(Event, event.id).current_attendees == 5


def test_stale_read_retries_with_fresh_counts(db_session, make_event):
    event = make_event(max_attendees=10, current_attendees=4)

    update = increment_attendance(
        db_session, event.id, 2, observed=1, max_attendees=10, max_retries=3
    )
    db_session.commit()

    assert update.outcome == AttendanceOutcome.INCREMENTED
    assert update.attempts == 2
    assert update.current_attendees == 6


def test_retry_rechecks_capacity(db_session, make_event):
    event = make_event(max_attendees=5, current_attendees=4)

    update = increment_attendance(
        db_session, event.id, 2, observed=1, max_attendees=5, max_retries=3
    )

    assert update.outcome == AttendanceOutcome.CAPACITY_EXCEEDED
    db_session.expire_all()
    assert db_session.get(Event, event.id).current_attendees == 4


def test_exhausted_retries_report_conflict(db_session, make_event, monkeypatch):
    event = make_event(max_attendees=100, current_attendees=0)
    monkeypatch.setattr(attendance, "compare_and_set", lambda *args, **kwargs: False)

    update = increment_attendance(
        db_session, event.id, 1, observed=0, max_attendees=100, max_retries=2
    )

    assert update.outcome == AttendanceOutcome.CONFLICT
    assert update.attempts == 3


def test_missing_event_is_reported(db_session):
    update = increment_attendance(
        db_session, "no-such-event", 1, observed=0, max_attendees=10, max_retries=1
    )

    assert update.outcome == AttendanceOutcome.EVENT_MISSING


def test_rate_limiter_window_slides():
    limiter = SlidingWindowRateLimiter(window_seconds=60)

    assert limiter.allow("10.0.0.1", 2, now=0.0)
    assert limiter.allow("10.0.0.1", 2, now=1.0)
    assert not limiter.allow("10.0.0.1", 2, now=2.0)
    assert limiter.allow("10.0.0.2", 2, now=2.0)
    assert limiter.allow("10.0.0.1", 2, now=60.5)


def test_rate_limiter_sweeps_idle_keys_once_per_window():
    limiter = SlidingWindowRateLimiter(window_seconds=60)

    for index in range(50):
        assert limiter.allow(f"10.0.1.{index}", 10, now=float(index) / 10)
    assert limiter.tracked_keys() == 50

    # Inside the first window nothing is swept.
    limiter.allow("10.0.2.1", 10, now=30.0)
    assert limiter.tracked_keys() == 51

    # The next sweep drops every key whose last hit left the window.
    limiter.allow("10.0.2.2", 10, now=65.0)
    assert limiter.tracked_keys() == 2
