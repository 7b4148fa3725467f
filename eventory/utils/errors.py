"""Helpers for the ``{"error": {...}}`` response envelope."""
from typing import Any, Iterable, Mapping


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


def invalid_input(errors: list[str]) -> dict[str, Any]:
    """Envelope for rejected request bodies, one message per problem."""

    return error_response("INVALID_INPUT", "Invalid input.", {"errors": errors})


def format_validation_errors(errors: Iterable[Mapping[str, Any]]) -> list[str]:
    """Flatten pydantic error dicts into ``"field: message"`` strings."""

    messages = []
    for err in errors:
        # The first loc entry is the request part ("body", "query").
        field = ".".join(str(part) for part in err.get("loc", ())[1:]) or "body"
        messages.append(f"{field}: {err.get('msg', 'invalid value')}")
    return messages


__all__ = ["error_response", "format_validation_errors", "invalid_input"]
