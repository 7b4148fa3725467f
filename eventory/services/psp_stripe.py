"""Stripe SDK wrapper used as the alternate charge backend."""
from __future__ import annotations

import logging
from decimal import Decimal

import stripe

from eventory.config import Settings, get_settings
from eventory.services.processors import (
    CHARGE_SUCCESSFUL,
    ChargeResult,
    ProcessorNotConfigured,
    ProcessorUnavailable,
    to_minor_units,
)

logger = logging.getLogger(__name__)


class StripeClient:
    """Wrapper around the Stripe Python SDK to isolate PSP concerns."""

    name = "stripe"

    def __init__(self, settings: Settings) -> None:
        """Initialise the client and set the API key when enabled."""

        self.settings = settings
        if not settings.STRIPE_ENABLED:
            raise ProcessorNotConfigured("Stripe integration is disabled; enable STRIPE_ENABLED to proceed.")
        if not settings.STRIPE_SECRET_KEY:
            raise ProcessorNotConfigured("Stripe secret key is missing; configure STRIPE_SECRET_KEY.")
        self._webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        stripe.api_key = settings.STRIPE_SECRET_KEY

    @classmethod
    def from_env(cls) -> "StripeClient":
        """Instantiate a client using the cached application settings."""

        return cls(get_settings())

    def create_charge(
        self,
        *,
        token: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
    ) -> ChargeResult:
        """Create and confirm a PaymentIntent for the tokenized payment method."""

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency.lower(),
                payment_method=token,
                confirm=True,
                metadata=metadata,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            )
        except stripe.CardError as exc:
            return ChargeResult(
                ok=False,
                id=None,
                status="declined",
                display_message=exc.user_message,
                raw={"code": exc.code},
            )
        except stripe.APIConnectionError as exc:
            logger.error("Stripe is unreachable")
            raise ProcessorUnavailable("Stripe is unreachable") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe rejected the charge", extra={"stripe_code": getattr(exc, "code", None)})
            return ChargeResult(ok=False, id=None, status="failed", raw={"code": getattr(exc, "code", None)})

        status = CHARGE_SUCCESSFUL if intent.status == "succeeded" else intent.status
        return ChargeResult(ok=True, id=intent.id, status=status)

    def construct_webhook_event(self, payload: bytes, sig_header: str) -> stripe.Event:
        """Verify and construct a Stripe webhook event."""

        if not self._webhook_secret:
            raise ProcessorNotConfigured(
                "Stripe webhook secret is missing; configure STRIPE_WEBHOOK_SECRET for verification."
            )

        return stripe.Webhook.construct_event(payload, sig_header, self._webhook_secret)


__all__ = ["StripeClient"]
