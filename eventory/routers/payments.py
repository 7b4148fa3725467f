"""Ticket payment intake route."""
from __future__ import annotations

import logging
import traceback

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from eventory.db import get_db
from eventory.schemas.payment import PaymentIntakeResponse, validate_payment_request
from eventory.security import SessionUser, require_session_user
from eventory.services import payment_intake
from eventory.services.error_logs import record_error
from eventory.utils.errors import error_response, invalid_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/process", response_model=PaymentIntakeResponse, status_code=status.HTTP_200_OK)
async def process_payment(
    request: Request,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_session_user),
) -> PaymentIntakeResponse:
    try:
        raw = await request.json()
    except ValueError:
        raw = None

    payment_request, errors = validate_payment_request(raw)
    if payment_request is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=invalid_input(errors),
        )

    if payment_request.user_id != user.id:
        logger.warning("Payment user does not match session", extra={"event_id": payment_request.event_id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response("USER_MISMATCH", "User mismatch."),
        )

    try:
        # Charge and DB calls block; keep them off the event loop.
        return await run_in_threadpool(payment_intake.process_payment, db, payment_request)
    except HTTPException:
        raise
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        logger.exception("Payment processing failed", extra={"event_id": payment_request.event_id})
        await run_in_threadpool(
            record_error,
            db,
            error_type="payment_processing_error",
            message=str(exc) or type(exc).__name__,
            user_id=user.id,
            stack_trace=traceback.format_exc(),
            url=str(request.url),
            user_agent=request.headers.get("user-agent"),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_response("INTERNAL_SERVER_ERROR", "Payment processing failed."),
        ) from exc


__all__ = ["router"]
