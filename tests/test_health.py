import hashlib

import pytest


@pytest.mark.anyio
async def test_health_reports_database_and_migrations(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["db_ok"] is True
    assert body["migrations_status"] == "up_to_date"
    assert body["scheduler_running"] is False
    assert body["scheduler_lock"]["present"] is False


@pytest.mark.anyio
async def test_health_shows_secret_fingerprints_only(client, settings, monkeypatch):
    monkeypatch.setattr(settings, "payment_webhook_secret_next", "next-secret")

    body = (await client.get("/health")).json()

    assert body["payment_webhook_configured"] is True
    assert body["payment_webhook_secret_status"] == "rotating"
    expected = hashlib.sha256(b"test-webhook-secret").hexdigest()[:8]
    assert body["payment_webhook_secret_fingerprints"] == {
        "primary": expected,
        "next": hashlib.sha256(b"next-secret").hexdigest()[:8],
    }
    assert "test-webhook-secret" not in str(body)


@pytest.mark.anyio
async def test_health_flags_missing_secrets(client, settings, monkeypatch):
    monkeypatch.setattr(settings, "payment_webhook_secret", None)

    body = (await client.get("/health")).json()

    assert body["payment_webhook_configured"] is False
    assert body["payment_webhook_secret_status"] == "missing"
