"""Idempotency helpers."""
from datetime import timedelta
from typing import Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from eventory.models.ticket import Ticket, TicketStatus
from eventory.utils.time import utcnow

T = TypeVar("T")


def get_existing_by_key(
    db: Session,
    model: Type[T],
    key_value: str | None,
    *,
    key_field: str = "payment_reference",
) -> Optional[T]:
    """Return existing record for a given idempotency key if present."""
    if not key_value:
        return None
    if not hasattr(model, key_field):
        raise AttributeError(f"{model.__name__} has no field '{key_field}'")

    column = getattr(model, key_field)
    stmt = select(model).where(column == key_value).limit(1).execution_options(populate_existing=True)
    return db.scalars(stmt).first()


def find_recent_pending_ticket(
    db: Session, *, user_id: str, event_id: str, window_seconds: int
) -> Optional[Ticket]:
    """Return a pending ticket for the same user and event created inside the window."""

    cutoff = utcnow() - timedelta(seconds=window_seconds)
    stmt = (
        select(Ticket)
        .where(
            Ticket.user_id == user_id,
            Ticket.event_id == event_id,
            Ticket.status == TicketStatus.PENDING,
            Ticket.purchase_date >= cutoff,
        )
        .limit(1)
    )
    return db.scalars(stmt).first()
