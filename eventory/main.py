from __future__ import annotations

import traceback
from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventory import db
from eventory.config import DEV_ENVIRONMENTS, AppInfo, get_settings
from eventory.core.logging import get_logger, setup_logging
from eventory.core.runtime_state import set_scheduler_active
import eventory.models  # noqa: F401  registers the tables
from eventory.routers import get_api_router
from eventory.services.cron import dispatch_email_notifications_once
from eventory.services.error_logs import record_error
from eventory.services.scheduler_lock import (
    refresh_scheduler_lock,
    release_scheduler_lock,
    try_acquire_scheduler_lock,
)
from eventory.utils.errors import error_response, format_validation_errors, invalid_input

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None


def _current_settings():
    return get_settings()


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    """Configure middleware using a snapshot of the settings."""

    runtime_settings = _current_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware, app_name="eventory")
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def _assert_webhook_secrets(settings: Any) -> None:
    """Fail fast when webhook secrets are missing outside dev environments."""

    secrets_configured = bool(settings.payment_webhook_secret or settings.payment_webhook_secret_next)
    env_lower = settings.app_env.lower()
    if secrets_configured:
        return
    if env_lower not in DEV_ENVIRONMENTS:
        logger.error(
            "Payment webhook secrets are missing; configure PAYMENT_WEBHOOK_SECRET before startup.",
            extra={"env": settings.app_env},
        )
        raise RuntimeError("Missing payment webhook secrets in non-dev environment.")
    logger.warning(
        "Payment webhook secrets are not configured; webhooks will answer 503.",
        extra={"env": settings.app_env},
    )


def _start_scheduler(settings: Any) -> bool:
    """Start the email dispatcher if this replica wins the scheduler lock."""

    global scheduler
    if not try_acquire_scheduler_lock():
        logger.warning(
            "Scheduler disabled because lock is already held by another instance.",
            extra={"env": settings.app_env},
        )
        return False

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        dispatch_email_notifications_once,
        "interval",
        seconds=settings.EMAIL_DISPATCH_INTERVAL_SECONDS,
        id="email-dispatch",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        refresh_scheduler_lock,
        "interval",
        seconds=60,
        id="scheduler-lock-heartbeat",
        replace_existing=True,
    )
    scheduler.start()
    set_scheduler_active(True)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    setup_logging()
    settings = _current_settings()
    logger.info("Application startup", extra={"env": settings.app_env})
    _assert_webhook_secrets(settings)

    db.init_engine()
    if settings.ALLOW_DB_CREATE_ALL and settings.app_env.lower() in DEV_ENVIRONMENTS:
        logger.warning("Running Base.metadata.create_all() (ALLOW_DB_CREATE_ALL=True)")
        db.create_all()

    set_scheduler_active(False)
    lock_acquired = _start_scheduler(settings) if settings.SCHEDULER_ENABLED else False
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
        if lock_acquired:
            release_scheduler_lock()
        set_scheduler_active(False)
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

_configure_middlewares(app)
app.include_router(get_api_router())


def _record_unhandled(**fields: Any) -> None:
    with db.session_scope() as session:
        record_error(session, error_type="unhandled_exception", **fields)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc, extra={"path": request.url.path})
    await run_in_threadpool(
        _record_unhandled,
        message=str(exc) or type(exc).__name__,
        stack_trace="".join(traceback.format_exception(exc)),
        url=str(request.url),
        user_agent=request.headers.get("user-agent"),
    )
    payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
    return JSONResponse(status_code=500, content=payload)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=invalid_input(format_validation_errors(exc.errors())))


__all__ = ["app"]
