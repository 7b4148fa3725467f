"""Schemas for the payment intake endpoint."""
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from eventory.config import get_settings
from eventory.utils.sanitize import is_email, is_uuid

# Error message reported for each field, in the order they are checked.
FIELD_ERRORS = {
    "amount": "Invalid amount",
    "currency": "Invalid currency",
    "eventId": "Invalid event ID",
    "quantity": "Invalid quantity",
    "userEmail": "Invalid email",
    "userId": "Invalid user ID",
    "paymentMethodId": "Invalid payment method",
}

CENT = Decimal("0.01")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (int, Decimal))


class PaymentIntakeRequest(BaseModel):
    """Validated and sanitized ticket payment request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    amount: Decimal
    currency: str
    event_id: str = Field(alias="eventId")
    quantity: int
    user_email: str = Field(alias="userEmail")
    user_id: str = Field(alias="userId")
    payment_method_id: str = Field(alias="paymentMethodId")

    @field_validator("amount", mode="before")
    @classmethod
    def _check_amount(cls, value: Any) -> Decimal:
        if not _is_number(value):
            raise ValueError(FIELD_ERRORS["amount"])
        amount = Decimal(str(value))
        if amount <= 0 or amount > get_settings().PAYMENT_MAX_AMOUNT:
            raise ValueError(FIELD_ERRORS["amount"])
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)

    @field_validator("currency", mode="before")
    @classmethod
    def _check_currency(cls, value: Any) -> str:
        if not isinstance(value, str) or value.strip().upper() not in get_settings().PAYMENT_ALLOWED_CURRENCIES:
            raise ValueError(FIELD_ERRORS["currency"])
        return value.strip().upper()

    @field_validator("event_id", "user_id", mode="before")
    @classmethod
    def _check_uuid(cls, value: Any) -> str:
        if not is_uuid(value):
            raise ValueError("Invalid identifier")
        return value.strip().lower()

    @field_validator("quantity", mode="before")
    @classmethod
    def _check_quantity(cls, value: Any) -> int:
        if not _is_number(value) or int(value) != value:
            raise ValueError(FIELD_ERRORS["quantity"])
        quantity = int(value)
        if quantity < 1 or quantity > get_settings().PAYMENT_MAX_QUANTITY:
            raise ValueError(FIELD_ERRORS["quantity"])
        return quantity

    @field_validator("user_email", mode="before")
    @classmethod
    def _check_email(cls, value: Any) -> str:
        if not is_email(value):
            raise ValueError(FIELD_ERRORS["userEmail"])
        return value.strip().lower()

    @field_validator("payment_method_id", mode="before")
    @classmethod
    def _check_payment_method(cls, value: Any) -> str:
        if not isinstance(value, str) or not 10 <= len(value) <= 100:
            raise ValueError(FIELD_ERRORS["paymentMethodId"])
        return value.strip()


def validate_payment_request(raw: Any) -> tuple[PaymentIntakeRequest | None, list[str]]:
    """Validate an untrusted request body.

    Returns ``(request, [])`` on success and ``(None, errors)`` otherwise, where
    ``errors`` lists one human-readable message per invalid field.
    """

    if not isinstance(raw, dict):
        return None, ["Invalid request body"]

    try:
        return PaymentIntakeRequest.model_validate(raw), []
    except ValidationError as exc:
        failed = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
        errors = [message for field, message in FIELD_ERRORS.items() if field in failed]
        return None, errors or ["Invalid request body"]


class PaymentIntakeResponse(BaseModel):
    success: bool
    paymentId: str
    status: str


__all__ = [
    "FIELD_ERRORS",
    "PaymentIntakeRequest",
    "PaymentIntakeResponse",
    "validate_payment_request",
]
