"""Admin management of staff API keys."""
from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventory.db import get_db
from eventory.models.api_key import ApiKey, ApiScope
from eventory.security import require_scope
from eventory.utils.apikey import gen_key
from eventory.utils.audit import actor_from_api_key, log_audit
from eventory.utils.errors import error_response
from eventory.utils.time import utcnow

router = APIRouter(prefix="/apikeys", tags=["apikeys"])

require_admin = require_scope({ApiScope.admin})


class CreateKeyIn(BaseModel):
    """Request body for a new key; the raw value is generated server-side."""
    name: str
    scope: ApiScope
    days_valid: int | None = 90

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name cannot be blank")
        return value.strip()


class ApiKeyCreateOut(BaseModel):
    """Returned once on creation; the raw key is never shown again."""
    id: int
    name: str
    scope: ApiScope
    key: str
    expires_at: datetime | None


class ApiKeyRead(BaseModel):
    id: int
    name: str
    prefix: str
    scope: ApiScope
    is_active: bool
    created_at: datetime
    expires_at: datetime | None
    last_used_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("", response_model=ApiKeyCreateOut, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: CreateKeyIn,
    request: Request,
    db: Session = Depends(get_db),
    admin_key: ApiKey = Depends(require_admin),
) -> ApiKeyCreateOut:
    raw, prefix, key_hash = gen_key()
    expires_at = utcnow() + timedelta(days=payload.days_valid) if payload.days_valid else None

    row = ApiKey(
        name=payload.name,
        prefix=prefix,
        key_hash=key_hash,
        scope=payload.scope,
        expires_at=expires_at,
        is_active=True,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("APIKEY_EXISTS", "Key name already exists."),
        ) from exc

    log_audit(
        db,
        action="api_key_created",
        resource_type="api_key",
        resource_id=str(row.id),
        details={"name": row.name, "scope": row.scope.value, "prefix": row.prefix},
        admin_id=actor_from_api_key(admin_key),
        ip_address=_client_ip(request),
    )
    db.commit()

    return ApiKeyCreateOut(id=row.id, name=row.name, scope=row.scope, key=raw, expires_at=row.expires_at)


@router.get("/{api_key_id}", response_model=ApiKeyRead, dependencies=[Depends(require_admin)])
def get_apikey(api_key_id: int, db: Session = Depends(get_db)) -> ApiKey:
    row = db.get(ApiKey, api_key_id)
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("APIKEY_NOT_FOUND", "API key not found."),
        )
    return row


@router.delete("/{api_key_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def revoke_apikey(
    api_key_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin_key: ApiKey = Depends(require_admin),
) -> Response:
    row = db.get(ApiKey, api_key_id)
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("APIKEY_NOT_FOUND", "API key not found."),
        )

    if row.is_active:
        row.is_active = False
        log_audit(
            db,
            action="api_key_revoked",
            resource_type="api_key",
            resource_id=str(api_key_id),
            details={"name": row.name},
            admin_id=actor_from_api_key(admin_key),
            ip_address=_client_ip(request),
        )
        db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
