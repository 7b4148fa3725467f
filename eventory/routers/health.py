"""Health check endpoint."""
from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter
from sqlalchemy import text

from eventory.config import Settings, get_settings
from eventory.core.runtime_state import is_scheduler_active, scheduler_started_at
from eventory.db import get_engine
from eventory.services.scheduler_lock import describe_scheduler_lock

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def _secret_status(primary: str | None, secondary: str | None) -> str:
    """Return 'missing', 'ok' (primary only) or 'rotating' (next secret present)."""

    if not primary and not secondary:
        return "missing"
    if primary and not secondary:
        return "ok"
    return "rotating"


def _db_status() -> str:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:  # noqa: BLE001
        logger.exception("DB health check failed")
        return "error"


def _expected_migration_head() -> str | None:
    try:
        script = ScriptDirectory.from_config(Config(str(ALEMBIC_INI)))
        return script.get_current_head()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to load Alembic head revision")
        return None


def _migrations_status() -> tuple[bool, str]:
    expected_head = _expected_migration_head()
    try:
        with get_engine().connect() as conn:
            current = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except Exception:  # noqa: BLE001
        logger.exception("Migration check failed")
        return False, "unknown"
    if expected_head is None:
        return False, "unknown"
    if current == expected_head:
        return True, "up_to_date"
    return False, "out_of_date"


def _webhook_secret_fingerprints(settings: Settings) -> dict[str, str | None]:
    def _fp(value: str | None) -> str | None:
        if not value:
            return None
        return hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]

    return {
        "primary": _fp(settings.payment_webhook_secret),
        "next": _fp(settings.payment_webhook_secret_next),
    }


@router.get("", summary="Health check")
def healthcheck() -> dict[str, object]:
    settings = get_settings()
    primary_secret = settings.payment_webhook_secret
    secondary_secret = settings.payment_webhook_secret_next
    started_at = scheduler_started_at()
    db_status = _db_status()
    db_ok = db_status == "ok"
    if db_ok:
        migration_ok, migration_status = _migrations_status()
        scheduler_lock = describe_scheduler_lock()
    else:
        migration_ok, migration_status = False, "unknown"
        scheduler_lock = {"status": "unknown", "owner": None}
    return {
        "status": "ok" if db_ok and migration_ok else "degraded",
        "db_ok": db_ok,
        "db_status": db_status,
        "migrations_ok": migration_ok,
        "migrations_status": migration_status,
        "payment_webhook_configured": bool(primary_secret or secondary_secret),
        "payment_webhook_secret_status": _secret_status(primary_secret, secondary_secret),
        "payment_webhook_secret_fingerprints": _webhook_secret_fingerprints(settings),
        "payment_provider": settings.PAYMENT_PROVIDER,
        "yoco": {"api_key_configured": bool(settings.YOCO_SECRET_KEY)},
        "stripe": {
            "enabled": bool(settings.STRIPE_ENABLED),
            "webhook_configured": bool(settings.STRIPE_WEBHOOK_SECRET),
            "api_key_configured": bool(settings.STRIPE_SECRET_KEY),
        },
        "email_provider_configured": bool(settings.SENDGRID_API_KEY),
        "scheduler_config_enabled": bool(settings.SCHEDULER_ENABLED),
        "scheduler_running": is_scheduler_active(),
        "scheduler_started_at": started_at.isoformat() if started_at else None,
        "scheduler_lock": scheduler_lock,
    }


__all__ = ["router"]
