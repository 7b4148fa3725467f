"""Read models backing the admin payment reconciliation views."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from eventory.models import ErrorLog, Event, Ticket, TicketPaymentStatus
from eventory.schemas.admin import OrphanedPaymentRead, PaymentRecord

# Error rows that point at money captured without a matching completed ticket.
ORPHAN_ERROR_TYPES = ("ticket_creation_failed", "orphaned_payment")


def list_payment_records(
    db: Session,
    *,
    payment_status: TicketPaymentStatus | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[PaymentRecord]:
    """Return tickets with their payment fields, newest first."""

    stmt = (
        select(Ticket, Event.title)
        .outerjoin(Event, Event.id == Ticket.event_id)
        .order_by(Ticket.purchase_date.desc())
        .offset(offset)
        .limit(limit)
    )
    if payment_status is not None:
        stmt = stmt.where(Ticket.payment_status == payment_status)
    if date_from is not None:
        stmt = stmt.where(Ticket.purchase_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Ticket.purchase_date <= date_to)

    return [
        PaymentRecord(
            id=ticket.id,
            payment_reference=ticket.payment_reference,
            total_price=ticket.total_price,
            payment_status=ticket.payment_status,
            payment_method=ticket.payment_method,
            purchase_date=ticket.purchase_date,
            event_id=ticket.event_id,
            event_title=title,
            user_id=ticket.user_id,
        )
        for ticket, title in db.execute(stmt).all()
    ]


def list_orphaned_payments(db: Session, *, limit: int = 100) -> list[OrphanedPaymentRead]:
    """Return captured charges that never became a settled ticket."""

    stmt = (
        select(ErrorLog)
        .where(ErrorLog.error_type.in_(ORPHAN_ERROR_TYPES))
        .order_by(ErrorLog.created_at.desc())
        .limit(limit)
    )
    return [OrphanedPaymentRead.model_validate(row) for row in db.scalars(stmt).all()]


__all__ = ["ORPHAN_ERROR_TYPES", "list_orphaned_payments", "list_payment_records"]
