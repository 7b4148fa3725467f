"""initial schema

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("organizer_id", sa.String(length=36), nullable=True),
        sa.Column("venue", sa.String(length=255), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_attendees", sa.Integer(), nullable=False),
        sa.Column("current_attendees", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="ck_events_price_non_negative"),
        sa.CheckConstraint("current_attendees >= 0", name="ck_events_attendees_non_negative"),
        sa.CheckConstraint("current_attendees <= max_attendees", name="ck_events_within_capacity"),
    )
    op.create_index("ix_events_is_active", "events", ["is_active"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "active", "used", "cancelled", name="ticket_status"),
            nullable=False,
        ),
        sa.Column(
            "payment_status",
            sa.Enum("processing", "completed", "failed", name="ticket_payment_status"),
            nullable=False,
        ),
        sa.Column("payment_reference", sa.String(length=128), nullable=True, unique=True),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("purchaser_email", sa.String(length=255), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("qr_scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scanned_by", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_tickets_quantity_positive"),
        sa.CheckConstraint("total_price >= 0", name="ck_tickets_total_non_negative"),
    )
    op.create_index("ix_tickets_event_id", "tickets", ["event_id"])
    op.create_index("ix_tickets_user_event_status", "tickets", ["user_id", "event_id", "status"])
    op.create_index("ix_tickets_payment_status", "tickets", ["payment_status"])
    op.create_index("ix_tickets_purchase_date", "tickets", ["purchase_date"])

    op.create_table(
        "error_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("error_type", sa.String(length=64), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("stack_trace", sa.Text(), nullable=True),
        sa.Column("url", sa.String(length=512), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("reference", sa.String(length=128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_error_logs_type", "error_logs", ["error_type"])
    op.create_index("ix_error_logs_created_at", "error_logs", ["created_at"])
    op.create_index("ix_error_logs_reference", "error_logs", ["reference"])

    op.create_table(
        "email_notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("event_id", sa.String(length=36), nullable=True),
        sa.Column("email_type", sa.String(length=64), nullable=False),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("template_data", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "processing", "sent", "failed", name="email_notification_status"),
            nullable=False,
        ),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_email_notifications_status_scheduled", "email_notifications", ["status", "scheduled_for"]
    )

    op.create_table(
        "admin_audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("admin_id", sa.String(length=100), nullable=True),
        sa.Column("resource_type", sa.String(length=100), nullable=False),
        sa.Column("resource_id", sa.String(length=128), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_admin_audit_logs_action", "admin_audit_logs", ["action"])

    op.create_table(
        "qr_scan_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("ticket_id", sa.String(length=36), sa.ForeignKey("tickets.id"), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("scanned_by", sa.String(length=100), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scan_location", sa.String(length=255), nullable=True),
        sa.Column("device_info", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_qr_scan_logs_ticket_id", "qr_scan_logs", ["ticket_id"])
    op.create_index("ix_qr_scan_logs_event_id", "qr_scan_logs", ["event_id"])

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("prefix", sa.String(length=32), nullable=False),
        sa.Column("key_hash", sa.String(length=128), nullable=False, unique=True),
        sa.Column("scope", sa.Enum("staff", "support", "admin", name="apiscope"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_api_keys_prefix", "api_keys", ["prefix"])

    op.create_table(
        "scheduler_locks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("owner", sa.String(length=64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("scheduler_locks")
    op.drop_index("ix_api_keys_prefix", table_name="api_keys")
    op.drop_table("api_keys")
    op.drop_index("ix_qr_scan_logs_event_id", table_name="qr_scan_logs")
    op.drop_index("ix_qr_scan_logs_ticket_id", table_name="qr_scan_logs")
    op.drop_table("qr_scan_logs")
    op.drop_index("ix_admin_audit_logs_action", table_name="admin_audit_logs")
    op.drop_table("admin_audit_logs")
    op.drop_index("ix_email_notifications_status_scheduled", table_name="email_notifications")
    op.drop_table("email_notifications")
    op.drop_index("ix_error_logs_reference", table_name="error_logs")
    op.drop_index("ix_error_logs_created_at", table_name="error_logs")
    op.drop_index("ix_error_logs_type", table_name="error_logs")
    op.drop_table("error_logs")
    op.drop_index("ix_tickets_purchase_date", table_name="tickets")
    op.drop_index("ix_tickets_payment_status", table_name="tickets")
    op.drop_index("ix_tickets_user_event_status", table_name="tickets")
    op.drop_index("ix_tickets_event_id", table_name="tickets")
    op.drop_table("tickets")
    op.drop_index("ix_events_organizer_id", table_name="events")
    op.drop_index("ix_events_is_active", table_name="events")
    op.drop_table("events")

    bind = op.get_bind()
    for enum_name in ("ticket_status", "ticket_payment_status", "email_notification_status", "apiscope"):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
