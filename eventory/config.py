"""Application configuration settings."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Environments where a missing webhook secret is tolerated at startup.
DEV_ENVIRONMENTS = {"dev", "local", "test"}


class Settings(BaseSettings):
    """Environment configuration for the Eventory backend."""

    app_env: str = Field(default="dev", validation_alias=AliasChoices("APP_ENV", "EVENTORY_ENV"))
    database_url: str = "sqlite:///eventory.db"
    SECRET_KEY: str = "change-me"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://eventory.app",
        "https://www.eventory.app",
        "http://localhost:5173",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True
    ALLOW_DB_CREATE_ALL: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database pool ---------------------------------------------------
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_BUSY_TIMEOUT_SECONDS: float = 15.0

    # --- Session tokens ---------------------------------------------------
    SESSION_JWT_SECRET: str | None = None
    SESSION_JWT_AUDIENCE: str = "authenticated"
    SESSION_JWT_ALGORITHM: str = "HS256"

    # --- Payment intake -------------------------------------------------
    PAYMENT_PROVIDER: str = "yoco"
    PAYMENT_MAX_AMOUNT: Decimal = Decimal("100000")
    PAYMENT_ALLOWED_CURRENCIES: list[str] = ["ZAR", "USD"]
    PAYMENT_MAX_QUANTITY: int = 10
    PAYMENT_TIMEOUT_SECONDS: float = 15.0
    DUPLICATE_PAYMENT_WINDOW_SECONDS: int = 300
    YOCO_SECRET_KEY: str | None = None
    YOCO_API_URL: str = "https://online.yoco.com/v1/charges/"

    # --- Stripe (alternate charge backend) ---------------------------------
    STRIPE_ENABLED: bool = False
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None

    # --- Payment webhooks -----------------------------------------------
    payment_webhook_secret: str | None = None
    payment_webhook_secret_next: str | None = None
    PAYMENT_WEBHOOK_SIGNATURE_HEADER: str = "X-Yoco-Signature"
    PAYMENT_WEBHOOK_SIGNATURE_PREFIX: str = "sha256="
    WEBHOOK_MAX_BODY_BYTES: int = 64 * 1024
    WEBHOOK_RATE_LIMIT_PER_MINUTE: int = 10
    ATTENDANCE_CAS_MAX_RETRIES: int = 3

    # --- Email notifications --------------------------------------------
    SCHEDULER_ENABLED: bool = False
    EMAIL_DISPATCH_INTERVAL_SECONDS: int = 60
    EMAIL_DISPATCH_BATCH_SIZE: int = 10
    SENDGRID_API_KEY: str | None = None
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    EMAIL_FROM: str = "tickets@eventory.app"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("payment_webhook_secret", "payment_webhook_secret_next")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty webhook secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("PAYMENT_ALLOWED_CURRENCIES")
    @classmethod
    def _upper_currencies(cls, value: list[str]) -> list[str]:
        return [currency.strip().upper() for currency in value if currency.strip()]


class AppInfo(BaseModel):
    name: str = "eventory-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = ["DEV_ENVIRONMENTS", "Settings", "AppInfo", "settings", "get_settings"]
