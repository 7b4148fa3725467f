"""Input sanitization helpers shared by the HTTP handlers."""
from __future__ import annotations

import re
from typing import Any

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def strip_tags(value: str) -> str:
    """Remove HTML tags and control characters."""

    return _CONTROL_RE.sub("", _TAG_RE.sub("", value))


def bounded_text(value: Any, max_length: int) -> str:
    """Coerce ``value`` to a tag-free string of at most ``max_length`` characters.

    ``None`` and containers collapse to an empty string so that downstream
    checks can treat "missing" and "garbage" the same way.
    """

    if value is None or isinstance(value, (dict, list, tuple, set, bytes)):
        return ""
    return strip_tags(str(value)).strip()[:max_length]


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_RE.match(value.strip()))


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


__all__ = ["UUID_RE", "EMAIL_RE", "strip_tags", "bounded_text", "is_uuid", "is_email"]
