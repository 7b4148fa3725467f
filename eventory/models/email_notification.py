"""Email notification outbox model."""
import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum as SqlEnum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, _utcnow


class EmailNotificationStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class EmailNotification(Base):
    """Queued email picked up by the notification dispatcher."""

    __tablename__ = "email_notifications"
    __table_args__ = (Index("ix_email_notifications_status_scheduled", "status", "scheduled_for"),)

    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    event_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    email_type: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    template_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[EmailNotificationStatus] = mapped_column(
        SqlEnum(
            EmailNotificationStatus,
            name="email_notification_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=EmailNotificationStatus.PENDING,
    )
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
