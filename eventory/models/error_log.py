"""Error log model."""
from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ErrorLog(Base):
    """Append-only record of a failure worth an operator's attention."""

    __tablename__ = "error_logs"
    __table_args__ = (
        Index("ix_error_logs_type", "error_type"),
        Index("ix_error_logs_created_at", "created_at"),
    )

    error_type: Mapped[str] = mapped_column(String(64), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    stack_trace: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
