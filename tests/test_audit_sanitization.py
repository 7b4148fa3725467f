from sqlalchemy import select

from eventory.models import AdminAuditLog
from eventory.utils.audit import actor_from_api_key, log_audit, sanitize_payload_for_audit
from eventory.utils.sanitize import bounded_text, is_email, is_uuid, strip_tags


def test_audit_log_masks_sensitive_fields(db_session):
    payload = {
        "purchaser_email": "sensitive@example.com",
        "paymentMethodId": "pm_card_4242424242",
        "token": "abc",
        "amount": "100.00",
        "nested": [{"email": "other@example.org"}],
    }

    log_audit(
        db_session,
        action="MASK_TEST",
        resource_type="ticket",
        resource_id="t-1",
        details=payload,
    )
    db_session.commit()

    entry = db_session.scalars(
        select(AdminAuditLog).where(AdminAuditLog.action == "MASK_TEST")
    ).one()
    assert entry.details["purchaser_email"] == "***@example.com"
    assert entry.details["paymentMethodId"] == "***4242"
    assert entry.details["token"] == "***"
    assert entry.details["amount"] == "100.00"
    assert entry.details["nested"][0]["email"] == "***@example.org"


def test_sanitize_leaves_scalars_alone():
    assert sanitize_payload_for_audit("plain") == "plain"
    assert sanitize_payload_for_audit({"email": None}) == {"email": None}


def test_actor_from_api_key():
    class Key:
        prefix = "gate1"

    assert actor_from_api_key(Key()) == "apikey:gate1"
    assert actor_from_api_key(None) == "system"


def test_input_sanitizers():
    assert strip_tags("<b>Row</b> A\x00") == "Row A"
    assert bounded_text({"nested": "object"}, 10) == ""
    assert bounded_text("  " + "x" * 20, 5) == "xxxxx"
    assert is_uuid("3f2504e0-4f89-41d3-9a0c-0305e82c3301")
    assert not is_uuid("3f2504e0-4f89-11d3-9a0c-0305e82c3301")
    assert is_email("fan@example.com")
    assert not is_email("fan@example")
