"""Yoco charges API client."""
from __future__ import annotations

import logging
from decimal import Decimal

import httpx

from eventory.config import Settings
from eventory.services.processors import (
    ChargeResult,
    ProcessorNotConfigured,
    ProcessorUnavailable,
    to_minor_units,
)

logger = logging.getLogger(__name__)


class YocoClient:
    """Submit tokenized card charges to Yoco."""

    name = "yoco"

    def __init__(self, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> None:
        if not settings.YOCO_SECRET_KEY:
            raise ProcessorNotConfigured("Yoco secret key is missing; configure YOCO_SECRET_KEY.")
        self._secret_key = settings.YOCO_SECRET_KEY
        self._url = settings.YOCO_API_URL
        self._timeout = settings.PAYMENT_TIMEOUT_SECONDS
        self._transport = transport

    def create_charge(
        self,
        *,
        token: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
    ) -> ChargeResult:
        body = {
            "token": token,
            "amountInCents": to_minor_units(amount),
            "currency": currency,
            "metadata": metadata,
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._url,
                    json=body,
                    headers={"Authorization": f"Bearer {self._secret_key}"},
                )
        except httpx.HTTPError as exc:
            logger.error("Yoco charge request failed", extra={"error": type(exc).__name__})
            raise ProcessorUnavailable("Yoco is unreachable") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_server_error:
            raise ProcessorUnavailable(f"Yoco answered {response.status_code}")

        return ChargeResult(
            ok=response.is_success,
            id=data.get("id"),
            status=str(data.get("status") or ("failed" if not response.is_success else "unknown")),
            display_message=data.get("displayMessage"),
            raw=data,
        )


__all__ = ["YocoClient"]
