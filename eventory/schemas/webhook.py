"""Schemas for inbound payment processor webhooks."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventory.utils.sanitize import bounded_text

PAYMENT_SUCCEEDED = "payment.succeeded"


class WebhookPayload(BaseModel):
    """Envelope every processor callback must carry."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1, max_length=128)
    type: str = Field(min_length=1, max_length=64)
    data: dict[str, Any]


class ChargeMetadata(BaseModel):
    """Ticket metadata echoed back by the processor, coerced to bounded strings."""

    event_id: str
    user_id: str
    quantity: str

    @classmethod
    def from_raw(cls, raw: Any) -> "ChargeMetadata":
        source = raw if isinstance(raw, dict) else {}
        return cls(
            event_id=bounded_text(source.get("eventId"), 36),
            user_id=bounded_text(source.get("userId"), 36),
            quantity=bounded_text(source.get("quantity"), 3),
        )

    @field_validator("event_id", "user_id")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()

    def parsed_quantity(self) -> int | None:
        """Return the quantity as an int, or ``None`` when it is not a positive integer."""

        # ASCII only: isdigit() also accepts superscripts, which int() rejects.
        if not (self.quantity.isascii() and self.quantity.isdigit()):
            return None
        quantity = int(self.quantity)
        return quantity if quantity >= 1 else None


class WebhookAck(BaseModel):
    received: bool = True
    message: str | None = None


__all__ = ["PAYMENT_SUCCEEDED", "WebhookPayload", "ChargeMetadata", "WebhookAck"]
