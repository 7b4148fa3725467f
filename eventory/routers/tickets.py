"""Ticket lookup and venue scan routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eventory.db import get_db
from eventory.models import ApiKey, ApiScope, Ticket
from eventory.schemas.ticket import ScanRequest, ScanResult, TicketRead
from eventory.security import SessionUser, require_scope, require_session_user
from eventory.services.ticket_scans import process_qr_scan
from eventory.utils.audit import actor_from_api_key
from eventory.utils.errors import error_response

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.post("/scan", response_model=ScanResult, status_code=status.HTTP_200_OK)
def scan_ticket(
    payload: ScanRequest,
    db: Session = Depends(get_db),
    api_key: ApiKey = Depends(require_scope({ApiScope.staff})),
) -> ScanResult:
    """Validate a ticket QR code at the entrance; rejections are reported in the body."""

    return process_qr_scan(
        db,
        qr_data=payload.qr_data,
        scanner_id=actor_from_api_key(api_key),
        event_id=payload.event_id,
        scan_location=payload.scan_location,
        device_info=payload.device_info,
    )


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_session_user),
) -> Ticket:
    ticket = db.get(Ticket, ticket_id.strip().lower())
    # Tickets of other purchasers are reported as missing.
    if ticket is None or ticket.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("TICKET_NOT_FOUND", "Ticket not found."),
        )
    return ticket


__all__ = ["router"]
