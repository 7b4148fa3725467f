"""Ticket model definitions."""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum as SqlEnum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, _utcnow


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class TicketStatus(str, enum.Enum):
    """Lifecycle of a ticket from purchase to entry."""

    PENDING = "pending"
    ACTIVE = "active"
    USED = "used"
    CANCELLED = "cancelled"


class TicketPaymentStatus(str, enum.Enum):
    """Settlement state of the charge backing a ticket."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Ticket(Base):
    """A purchase of one or more seats for an event."""

    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_tickets_quantity_positive"),
        CheckConstraint("total_price >= 0", name="ck_tickets_total_non_negative"),
        Index("ix_tickets_user_event_status", "user_id", "event_id", "status"),
        Index("ix_tickets_payment_status", "payment_status"),
        Index("ix_tickets_purchase_date", "purchase_date"),
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        SqlEnum(TicketStatus, name="ticket_status", values_callable=_enum_values),
        nullable=False,
        default=TicketStatus.PENDING,
    )
    payment_status: Mapped[TicketPaymentStatus] = mapped_column(
        SqlEnum(TicketPaymentStatus, name="ticket_payment_status", values_callable=_enum_values),
        nullable=False,
        default=TicketPaymentStatus.PROCESSING,
    )
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    purchaser_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purchase_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    qr_scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scanned_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    event = relationship("Event")
