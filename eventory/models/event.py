"""Event model definitions."""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Event(Base):
    """A ticketed event with a fixed capacity."""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_events_price_non_negative"),
        CheckConstraint("current_attendees >= 0", name="ck_events_attendees_non_negative"),
        CheckConstraint("current_attendees <= max_attendees", name="ck_events_within_capacity"),
        Index("ix_events_is_active", "is_active"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    organizer_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_attendees: Mapped[int] = mapped_column(Integer, nullable=False)
    current_attendees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
