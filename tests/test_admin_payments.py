"""Tests for the admin reconciliation views and API key management."""
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from eventory.models import AdminAuditLog, ApiKey, TicketPaymentStatus, TicketStatus
from eventory.services.error_logs import record_error
from eventory.utils.time import utcnow


@pytest.mark.anyio
async def test_payments_listing_filters_and_orders(client, make_event, make_ticket, support_headers):
    event = make_event(title="Open Air")
    old = make_ticket(event, purchase_date=utcnow() - timedelta(days=3))
    settled = make_ticket(
        event, status=TicketStatus.ACTIVE, payment_status=TicketPaymentStatus.COMPLETED
    )

    everything = await client.get("/admin/payments", headers=support_headers)
    completed = await client.get("/admin/payments", params={"status": "completed"}, headers=support_headers)
    recent = await client.get(
        "/admin/payments",
        params={"date_from": (utcnow() - timedelta(days=1)).isoformat()},
        headers=support_headers,
    )

    assert everything.status_code == 200
    assert [row["id"] for row in everything.json()] == [settled.id, old.id]
    assert everything.json()[0]["event_title"] == "Open Air"
    assert [row["payment_reference"] for row in completed.json()] == [settled.payment_reference]
    assert [row["id"] for row in recent.json()] == [settled.id]


@pytest.mark.anyio
async def test_orphans_listing(client, db_session, admin_headers):
    record_error(db_session, error_type="ticket_creation_failed", message="insert failed", reference="ch_a")
    record_error(db_session, error_type="orphaned_payment", message="no ticket", reference="ch_b")
    record_error(db_session, error_type="payment_failed", message="declined", reference="ch_c")

    response = await client.get("/admin/payments/orphans", headers=admin_headers)

    assert response.status_code == 200
    assert sorted(row["reference"] for row in response.json()) == ["ch_a", "ch_b"]


@pytest.mark.anyio
async def test_admin_views_require_support_or_admin(client, staff_headers):
    response = await client.get("/admin/payments", headers=staff_headers)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_SCOPE"


@pytest.mark.anyio
async def test_api_key_lifecycle(client, db_session, admin_headers):
    created = await client.post(
        "/apikeys", json={"name": "gate-scanner-1", "scope": "staff"}, headers=admin_headers
    )
    assert created.status_code == 201
    raw_key = created.json()["key"]
    key_id = created.json()["id"]
    assert raw_key.startswith("evt_")

    usable = await client.post("/tickets/scan", json={"qr_data": "nothing"}, headers={"X-API-Key": raw_key})
    assert usable.status_code == 200

    fetched = await client.get(f"/apikeys/{key_id}", headers=admin_headers)
    assert fetched.status_code == 200
    assert "key" not in fetched.json()
    assert fetched.json()["last_used_at"] is not None

    revoked = await client.delete(f"/apikeys/{key_id}", headers=admin_headers)
    assert revoked.status_code == 204

    refused = await client.post("/tickets/scan", json={"qr_data": "nothing"}, headers={"X-API-Key": raw_key})
    assert refused.status_code == 401

    actions = [
        row.action
        for row in db_session.scalars(select(AdminAuditLog).order_by(AdminAuditLog.created_at)).all()
    ]
    assert actions == ["api_key_created", "api_key_revoked"]


@pytest.mark.anyio
async def test_duplicate_key_name_is_rejected(client, admin_headers):
    first = await client.post("/apikeys", json={"name": "dup", "scope": "support"}, headers=admin_headers)
    second = await client.post("/apikeys", json={"name": "dup", "scope": "support"}, headers=admin_headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["error"]["code"] == "APIKEY_EXISTS"


@pytest.mark.anyio
async def test_expired_key_is_refused(client, db_session, make_api_key):
    key = make_api_key(name="expired", key="expired-raw-key")
    key.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    response = await client.post("/tickets/scan", json={"qr_data": "x"}, headers={"X-API-Key": "expired-raw-key"})

    assert response.status_code == 401
    assert db_session.get(ApiKey, key.id) is not None
