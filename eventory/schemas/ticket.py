"""Ticket and scan schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from eventory.models.ticket import TicketPaymentStatus, TicketStatus


class TicketRead(BaseModel):
    id: str
    user_id: str
    event_id: str
    quantity: int
    total_price: Decimal
    status: TicketStatus
    payment_status: TicketPaymentStatus
    payment_reference: str | None
    payment_method: str | None
    purchase_date: datetime
    qr_scanned_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ScanRequest(BaseModel):
    qr_data: str = Field(min_length=1, max_length=2048)
    event_id: str | None = Field(default=None, max_length=36)
    scan_location: str | None = Field(default=None, max_length=255)
    device_info: dict[str, Any] | None = None


class ScanResult(BaseModel):
    success: bool
    code: str
    error: str | None = None
    ticket_id: str | None = None
    event_title: str | None = None
    scanned_at: datetime | None = None
