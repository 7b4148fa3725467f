"""Optimistic concurrency helpers."""
from __future__ import annotations

from typing import Any, Mapping, Type

from sqlalchemy import update
from sqlalchemy.orm import Session


def compare_and_set(
    db: Session,
    model: Type[Any],
    key: Any,
    *,
    expected: Mapping[str, Any],
    values: Mapping[str, Any],
) -> bool:
    """Update the row ``key`` only if every column in ``expected`` still holds.

    Returns ``True`` when exactly one row was written. A ``False`` result means
    the precondition no longer holds (or the row is gone); the caller decides
    whether to re-read and retry or give up. Objects already loaded in the
    session are not refreshed.
    """

    stmt = update(model).where(model.id == key)
    for column_name, value in expected.items():
        column = getattr(model, column_name)
        stmt = stmt.where(column.is_(None) if value is None else column == value)
    stmt = stmt.values(**dict(values)).execution_options(synchronize_session=False)
    result = db.execute(stmt)
    return result.rowcount == 1


__all__ = ["compare_and_set"]
