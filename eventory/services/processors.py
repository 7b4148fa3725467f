"""Payment processor abstraction shared by the charge backends."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from eventory.config import Settings

CHARGE_SUCCESSFUL = "successful"


class ProcessorNotConfigured(RuntimeError):
    """Raised when the selected charge backend lacks credentials."""


class ProcessorUnavailable(RuntimeError):
    """Raised when the processor could not be reached or answered garbage."""


@dataclass
class ChargeResult:
    """Normalized outcome of a charge request.

    ``ok`` mirrors the processor accepting the request; ``status`` is the
    processor's charge status with ``successful`` meaning captured.
    ``display_message`` is the only processor text ever shown to clients.
    """

    ok: bool
    id: str | None
    status: str
    display_message: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentProcessor(Protocol):
    name: str

    def create_charge(
        self,
        *,
        token: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
    ) -> ChargeResult:
        ...


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to the smallest currency unit."""

    normalized = Decimal(str(amount)).quantize(Decimal("0.01"))
    return int((normalized * 100).to_integral_value())


def get_payment_processor(settings: Settings) -> PaymentProcessor:
    """Return the charge backend selected by ``PAYMENT_PROVIDER``."""

    provider = settings.PAYMENT_PROVIDER.lower()
    if provider == "stripe":
        from eventory.services.psp_stripe import StripeClient

        return StripeClient(settings)
    if provider == "yoco":
        from eventory.services.psp_yoco import YocoClient

        return YocoClient(settings)
    raise ProcessorNotConfigured(f"Unknown payment provider '{settings.PAYMENT_PROVIDER}'.")


__all__ = [
    "CHARGE_SUCCESSFUL",
    "ChargeResult",
    "PaymentProcessor",
    "ProcessorNotConfigured",
    "ProcessorUnavailable",
    "get_payment_processor",
    "to_minor_units",
]
