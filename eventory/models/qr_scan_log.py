"""QR scan log model."""
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, _utcnow


class QrScanLog(Base):
    """Records a successful ticket scan at the venue entrance."""

    __tablename__ = "qr_scan_logs"

    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id"), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    scanned_by: Mapped[str] = mapped_column(String(100), nullable=False)
    scanned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    scan_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    device_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
