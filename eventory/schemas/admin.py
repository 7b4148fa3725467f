"""Schemas for the admin payment reconciliation views."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from eventory.models.ticket import TicketPaymentStatus


class PaymentRecord(BaseModel):
    id: str
    payment_reference: str | None
    total_price: Decimal
    payment_status: TicketPaymentStatus
    payment_method: str | None
    purchase_date: datetime
    event_id: str
    event_title: str | None
    user_id: str


class OrphanedPaymentRead(BaseModel):
    id: str
    error_type: str
    error_message: str
    reference: str | None
    user_id: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
