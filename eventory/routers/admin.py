"""Admin payment reconciliation views."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventory.db import get_db
from eventory.models import ApiScope, TicketPaymentStatus
from eventory.schemas.admin import OrphanedPaymentRead, PaymentRecord
from eventory.security import require_scope
from eventory.services import reconciliation

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_scope({ApiScope.admin, ApiScope.support}))],
)


@router.get("/payments", response_model=list[PaymentRecord])
def list_payments(
    status: TicketPaymentStatus | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> list[PaymentRecord]:
    return reconciliation.list_payment_records(
        db,
        payment_status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.get("/payments/orphans", response_model=list[OrphanedPaymentRead])
def list_orphans(
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[OrphanedPaymentRead]:
    """Charges captured by the processor with no settled ticket behind them."""

    return reconciliation.list_orphaned_payments(db, limit=limit)


__all__ = ["router"]
