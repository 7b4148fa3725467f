"""Audit logging helper utilities."""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from eventory.models.audit import AdminAuditLog


SENSITIVE_KEYS = {
    "email",
    "userEmail",
    "purchaser_email",
    "recipient_email",
    "card_number",
    "token",
    "paymentMethodId",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key in {"email", "userEmail", "purchaser_email", "recipient_email"}:
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"

    text = str(value)
    if len(text) <= 4:
        return "***"
    return f"***{text[-4:]}"


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with obvious PII fields masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            masked_value = _mask_value(key, value) if key in SENSITIVE_KEYS else value
            sanitized[key] = sanitize_payload_for_audit(masked_value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_audit(
    db: Session,
    *,
    action: str,
    resource_type: str,
    resource_id: str | None,
    details: dict | None = None,
    admin_id: str | None = None,
    ip_address: str | None = None,
) -> AdminAuditLog:
    """Stage an audit entry in the shared admin_audit_logs table."""

    entry = AdminAuditLog(
        action=action,
        admin_id=admin_id,
        resource_type=resource_type,
        resource_id=resource_id,
        details=sanitize_payload_for_audit(details or {}),
        ip_address=ip_address,
    )
    db.add(entry)
    return entry


def actor_from_api_key(api_key: Any, fallback: str = "system") -> str:
    """Return the canonical actor string for a given API key object."""

    prefix = getattr(api_key, "prefix", None)
    if prefix:
        return f"apikey:{prefix}"
    return fallback
