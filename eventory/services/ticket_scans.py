"""Venue entrance QR validation."""
from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from eventory.models import QrScanLog, Ticket, TicketStatus
from eventory.schemas.ticket import ScanResult
from eventory.services.concurrency import compare_and_set
from eventory.utils.sanitize import is_uuid
from eventory.utils.time import utcnow

logger = logging.getLogger(__name__)


def _ticket_id_from_qr(qr_data: str) -> str | None:
    """Accept either a JSON document carrying ``ticket_id`` or a bare ticket id."""

    candidate: Any = qr_data.strip()
    if candidate.startswith("{"):
        try:
            candidate = json.loads(candidate).get("ticket_id")
        except (ValueError, AttributeError):
            return None
    if not isinstance(candidate, str):
        return None
    candidate = candidate.strip().lower()
    return candidate if is_uuid(candidate) else None


def _rejected(code: str, error: str, ticket: Ticket | None = None) -> ScanResult:
    return ScanResult(
        success=False,
        code=code,
        error=error,
        ticket_id=ticket.id if ticket else None,
        event_title=ticket.event.title if ticket and ticket.event else None,
        scanned_at=ticket.qr_scanned_at if ticket else None,
    )


def process_qr_scan(
    db: Session,
    *,
    qr_data: str,
    scanner_id: str,
    event_id: str | None = None,
    scan_location: str | None = None,
    device_info: dict[str, Any] | None = None,
) -> ScanResult:
    """Admit the holder of an active ticket exactly once."""

    ticket_id = _ticket_id_from_qr(qr_data)
    ticket = None
    if ticket_id is not None:
        ticket = db.scalars(
            select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
        ).first()
    if ticket is None:
        return _rejected("TICKET_NOT_FOUND", "Ticket not found")

    if event_id and ticket.event_id != event_id.strip().lower():
        return _rejected("WRONG_EVENT", "Ticket is for a different event", ticket)

    if ticket.status == TicketStatus.USED or ticket.qr_scanned_at is not None:
        return _rejected("ALREADY_USED", "Ticket already scanned", ticket)

    if ticket.status != TicketStatus.ACTIVE:
        return _rejected("TICKET_NOT_ACTIVE", f"Ticket is {ticket.status.value}", ticket)

    scanned_at = utcnow()
    admitted = compare_and_set(
        db,
        Ticket,
        ticket.id,
        expected={"status": TicketStatus.ACTIVE, "qr_scanned_at": None},
        values={"status": TicketStatus.USED, "qr_scanned_at": scanned_at, "scanned_by": scanner_id},
    )
    if not admitted:
        db.rollback()
        logger.info("Concurrent scan lost the race", extra={"ticket_id": ticket.id})
        return _rejected("ALREADY_USED", "Ticket already scanned", ticket)

    db.add(
        QrScanLog(
            ticket_id=ticket.id,
            event_id=ticket.event_id,
            scanned_by=scanner_id,
            scanned_at=scanned_at,
            scan_location=scan_location,
            device_info=device_info,
        )
    )
    db.commit()
    logger.info("Ticket admitted", extra={"ticket_id": ticket.id, "event_id": ticket.event_id})
    return ScanResult(
        success=True,
        code="ADMITTED",
        ticket_id=ticket.id,
        event_title=ticket.event.title if ticket.event else None,
        scanned_at=scanned_at,
    )


__all__ = ["process_qr_scan"]
