"""Tests for the DB-backed scheduler lease."""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select

from eventory.models import SchedulerLock
from eventory.services.scheduler_lock import (
    describe_scheduler_lock,
    refresh_scheduler_lock,
    release_scheduler_lock,
    try_acquire_scheduler_lock,
)
from eventory.utils.time import as_utc, utcnow


def test_second_runner_cannot_take_live_lock(db_session):
    assert try_acquire_scheduler_lock(db_session=db_session, owner="runner-a")
    assert not try_acquire_scheduler_lock(db_session=db_session, owner="runner-b")
    assert try_acquire_scheduler_lock(db_session=db_session, owner="runner-a")


def test_expired_lock_can_be_taken_over(db_session):
    assert try_acquire_scheduler_lock(db_session=db_session, owner="runner-a")
    lock = db_session.scalars(select(SchedulerLock)).one()
    lock.expires_at = utcnow() - timedelta(seconds=1)
    db_session.commit()

    assert try_acquire_scheduler_lock(db_session=db_session, owner="runner-b")
    db_session.expire_all()
    assert db_session.scalars(select(SchedulerLock)).one().owner == "runner-b"


def test_refresh_and_release_only_for_owner(db_session):
    assert try_acquire_scheduler_lock(db_session=db_session, owner="runner-a", ttl_seconds=10)
    before = as_utc(db_session.scalars(select(SchedulerLock)).one().expires_at)

    refresh_scheduler_lock(db_session=db_session, owner="runner-a", ttl_seconds=600)
    db_session.expire_all()
    assert as_utc(db_session.scalars(select(SchedulerLock)).one().expires_at) > before

    release_scheduler_lock(db_session=db_session, owner="runner-b")
    assert db_session.scalars(select(SchedulerLock)).one() is not None

    release_scheduler_lock(db_session=db_session, owner="runner-a")
    assert db_session.scalars(select(SchedulerLock)).all() == []


def test_describe_reports_presence(db_session):
    assert describe_scheduler_lock(db_session=db_session)["present"] is False

    try_acquire_scheduler_lock(db_session=db_session, owner="runner-x")
    state = describe_scheduler_lock(db_session=db_session)

    assert state["present"] is True
    assert state["status"] == "owned_by_other"
    assert state["stale"] is False
