"""Initiale Datenbank-Struktur.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    "user_role": ("employee", "manager", "admin"),
    "ticket_status": ("open", "in_progress", "resolved", "closed"),
    "ticket_priority": ("low", "medium", "high", "urgent"),
    "template_category": ("greeting", "closing", "technical", "booking", "flight", "general"),
    "queue_status": ("pending", "processing", "sent", "failed"),
    "email_type": (
        "ticket",
        "ticket_confirmation",
        "ticket_reply",
        "booking_confirmation",
        "cancellation",
        "mayday_notification",
        "shift_coverage_request",
        "work_request_notification",
    ),
    "sms_notification_type": ("shift", "cancel", "shift_coverage"),
    "event_type": ("booking", "fi_assignment", "blocker"),
    "event_status": ("confirmed", "tentative", "cancelled"),
    "sync_status": ("synced", "pending", "error"),
    "cancellation_reason": ("cancelled_by_customer", "cancelled_by_us"),
    "sync_type": ("import", "export", "full", "cron", "manual"),
    "mayday_action_type": ("shift", "cancel"),
    "work_request_status": ("pending", "approved", "rejected", "withdrawn"),
    "work_request_action": ("approve", "reject"),
    "shift_coverage_status": ("open", "accepted", "cancelled", "expired"),
    "compensation_type": ("hourly", "salary", "combined"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _id() -> sa.Column:
    return sa.Column("id", UUID(as_uuid=True), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _profile_fk(name: str, ondelete: str = "SET NULL", nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        UUID(as_uuid=True),
        sa.ForeignKey("profiles.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # --- 1. Enum-Typen erstellen ---
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # --- 2. Profile ---
    op.create_table(
        "profiles",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("phone", sa.String(50)),
        sa.Column("employee_number", sa.String(20)),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="employee"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("exit_date", sa.Date()),
        sa.Column("email_signature", sa.Text()),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_profiles_role", "profiles", ["role"])
    op.create_index("ix_profiles_is_active", "profiles", ["is_active"])

    # --- 3. Tickets, Tags, Nachrichten, Anhänge ---
    op.create_table(
        "tags",
        _id(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("color", sa.String(20), nullable=False, server_default="#6b7280"),
        _created_at(),
    )

    op.create_table(
        "tickets",
        _id(),
        sa.Column("ticket_number", sa.BigInteger(), sa.Identity(start=1), nullable=False, unique=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("status", _enum("ticket_status"), nullable=False, server_default="open"),
        sa.Column("priority", _enum("ticket_priority"), nullable=False, server_default="medium"),
        _profile_fk("created_by"),
        _profile_fk("assigned_to"),
        sa.Column("created_from_email", sa.String(255)),
        sa.Column("reply_to_email", sa.String(255)),
        sa.Column("is_spam", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_tickets_status", "tickets", ["status"])
    op.create_index("ix_tickets_assigned_to", "tickets", ["assigned_to"])
    op.create_index("ix_tickets_created_at", "tickets", ["created_at"])
    op.create_index("ix_tickets_is_spam", "tickets", ["is_spam"])

    op.create_table(
        "ticket_tags",
        sa.Column("ticket_id", UUID(as_uuid=True),
                  sa.ForeignKey("tickets.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tag_id", UUID(as_uuid=True),
                  sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "ticket_messages",
        _id(),
        sa.Column("ticket_id", UUID(as_uuid=True),
                  sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        _profile_fk("sender_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_status", sa.String(20)),
        _created_at(),
    )
    op.create_index("ix_ticket_messages_ticket_id", "ticket_messages", ["ticket_id"])

    op.create_table(
        "ticket_attachments",
        _id(),
        sa.Column("ticket_id", UUID(as_uuid=True),
                  sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message_id", UUID(as_uuid=True),
                  sa.ForeignKey("ticket_messages.id", ondelete="CASCADE")),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(150), server_default="application/octet-stream"),
        sa.Column("size_bytes", sa.Integer(), server_default="0"),
        sa.Column("storage_path", sa.String(500), nullable=False),
        _profile_fk("uploaded_by"),
        sa.Column("is_inline", sa.Boolean(), server_default=sa.false()),
        sa.Column("content_id", sa.String(255)),
        _created_at(),
    )
    op.create_index("ix_ticket_attachments_ticket_id", "ticket_attachments", ["ticket_id"])
    op.create_index("ix_ticket_attachments_message_id", "ticket_attachments", ["message_id"])

    op.create_table(
        "tag_email_rules",
        _id(),
        sa.Column("tag_id", UUID(as_uuid=True),
                  sa.ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email_address", sa.String(255), nullable=False),
        sa.Column("create_ticket", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("use_reply_to", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.UniqueConstraint("tag_id", "email_address", name="uq_tag_email_rules_tag_email"),
    )
    op.create_index("ix_tag_email_rules_email_address", "tag_email_rules", ["email_address"])

    op.create_table(
        "email_blacklist",
        _id(),
        sa.Column("email_address", sa.String(255), nullable=False, unique=True),
        sa.Column("reason", sa.Text()),
        _profile_fk("created_by"),
        _created_at(),
    )

    # --- 4. Antwort-Vorlagen ---
    op.create_table(
        "ticket_response_templates",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", _enum("template_category"), nullable=False, server_default="general"),
        _profile_fk("created_by"),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_ticket_response_templates_category", "ticket_response_templates", ["category"])

    op.create_table(
        "template_attachments",
        _id(),
        sa.Column("template_id", UUID(as_uuid=True),
                  sa.ForeignKey("ticket_response_templates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False),
        sa.Column("mime_type", sa.String(150), server_default="application/octet-stream"),
        sa.Column("size_bytes", sa.Integer(), server_default="0"),
        _created_at(),
    )

    # --- 5. Kalender ---
    op.create_table(
        "calendar_events",
        _id(),
        sa.Column("google_event_id", sa.String(255), unique=True),
        sa.Column("etag", sa.String(255)),
        sa.Column("event_type", _enum("event_type"), nullable=False, server_default="booking"),
        sa.Column("title", sa.String(500)),
        sa.Column("description", sa.Text()),
        sa.Column("customer_first_name", sa.String(100)),
        sa.Column("customer_last_name", sa.String(100)),
        sa.Column("customer_email", sa.String(255)),
        sa.Column("customer_phone", sa.String(50)),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer()),
        sa.Column("attendee_count", sa.Integer()),
        sa.Column("location", sa.String(500)),
        sa.Column("remarks", sa.Text()),
        sa.Column("is_all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("has_video_recording", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", _enum("event_status"), nullable=False, server_default="confirmed"),
        _profile_fk("assigned_instructor_id"),
        sa.Column("assigned_instructor_number", sa.String(20)),
        sa.Column("assigned_instructor_name", sa.String(200)),
        sa.Column("actual_work_start_time", sa.Time()),
        sa.Column("actual_work_end_time", sa.Time()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        _profile_fk("cancelled_by"),
        sa.Column("cancellation_reason", _enum("cancellation_reason")),
        sa.Column("cancellation_note", sa.Text()),
        sa.Column("sync_status", _enum("sync_status"), nullable=False, server_default="pending"),
        sa.Column("sync_error", sa.Text()),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        _profile_fk("user_id"),
        _profile_fk("created_by"),
        # FK auf work_requests folgt nach deren Anlage
        sa.Column("work_request_id", UUID(as_uuid=True)),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_calendar_events_start_time", "calendar_events", ["start_time"])
    op.create_index("ix_calendar_events_type_status", "calendar_events", ["event_type", "status"])
    op.create_index("ix_calendar_events_sync_status", "calendar_events", ["sync_status"])
    op.create_index("ix_calendar_events_work_request_id", "calendar_events", ["work_request_id"])

    op.create_table(
        "calendar_sync_logs",
        _id(),
        sa.Column("sync_type", _enum("sync_type"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("events_imported", sa.Integer(), server_default="0"),
        sa.Column("events_exported", sa.Integer(), server_default="0"),
        sa.Column("events_updated", sa.Integer(), server_default="0"),
        sa.Column("errors_count", sa.Integer(), server_default="0"),
        sa.Column("error_message", sa.Text()),
        sa.Column("sync_token", sa.Text()),
        _created_at(),
    )
    op.create_index("ix_calendar_sync_logs_created_at", "calendar_sync_logs", ["created_at"])

    op.create_table(
        "mayday_confirmation_tokens",
        _id(),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("event_id", UUID(as_uuid=True),
                  sa.ForeignKey("calendar_events.id", ondelete="SET NULL")),
        sa.Column("action_type", _enum("mayday_action_type"), nullable=False),
        sa.Column("customer_email", sa.String(255)),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("reason", sa.Text()),
        sa.Column("shift_minutes", sa.Integer()),
        sa.Column("old_start_time", sa.DateTime(timezone=True)),
        sa.Column("new_start_time", sa.DateTime(timezone=True)),
        sa.Column("confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )

    op.create_table(
        "rebook_tokens",
        _id(),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("original_event_id", UUID(as_uuid=True),
                  sa.ForeignKey("calendar_events.id", ondelete="SET NULL")),
        sa.Column("customer_email", sa.String(255)),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("customer_phone", sa.String(50)),
        sa.Column("original_duration", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("original_attendee_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("original_location", sa.String(500)),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True)),
        sa.Column("new_event_id", UUID(as_uuid=True),
                  sa.ForeignKey("calendar_events.id", ondelete="SET NULL")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )

    # --- 6. Anträge und Schicht-Übernahmen ---
    op.create_table(
        "work_requests",
        _id(),
        _profile_fk("employee_id", ondelete="CASCADE", nullable=False),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column("is_full_day", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time()),
        sa.Column("end_time", sa.Time()),
        sa.Column("reason", sa.Text()),
        sa.Column("status", _enum("work_request_status"), nullable=False, server_default="pending"),
        _profile_fk("approved_by"),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("calendar_event_id", UUID(as_uuid=True),
                  sa.ForeignKey("calendar_events.id", ondelete="SET NULL")),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_work_requests_employee_date", "work_requests", ["employee_id", "request_date"])
    op.create_index("ix_work_requests_status", "work_requests", ["status"])

    op.create_foreign_key(
        "fk_calendar_events_work_request_id",
        "calendar_events",
        "work_requests",
        ["work_request_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "work_request_action_tokens",
        _id(),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("work_request_id", UUID(as_uuid=True),
                  sa.ForeignKey("work_requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", _enum("work_request_action"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    op.create_table(
        "shift_coverage_requests",
        _id(),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column("is_full_day", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time()),
        sa.Column("end_time", sa.Time()),
        sa.Column("reason", sa.Text()),
        sa.Column("status", _enum("shift_coverage_status"), nullable=False, server_default="open"),
        _profile_fk("created_by"),
        _profile_fk("accepted_by"),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("work_request_id", UUID(as_uuid=True),
                  sa.ForeignKey("work_requests.id", ondelete="SET NULL")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_shift_coverage_requests_status", "shift_coverage_requests", ["status"])
    op.create_index("ix_shift_coverage_requests_date", "shift_coverage_requests", ["request_date"])

    op.create_table(
        "shift_coverage_notifications",
        _id(),
        sa.Column("coverage_request_id", UUID(as_uuid=True),
                  sa.ForeignKey("shift_coverage_requests.id", ondelete="CASCADE"), nullable=False),
        _profile_fk("employee_id", ondelete="CASCADE", nullable=False),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_sent_at", sa.DateTime(timezone=True)),
        sa.Column("sms_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sms_sent_at", sa.DateTime(timezone=True)),
        sa.Column("accept_token", sa.String(64), nullable=False, unique=True),
        sa.Column("token_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("token_used_at", sa.DateTime(timezone=True)),
        _created_at(),
    )

    # --- 7. Versand-Queues ---
    op.create_table(
        "email_queue",
        _id(),
        sa.Column("type", _enum("email_type"), nullable=False, server_default="ticket"),
        sa.Column("ticket_id", UUID(as_uuid=True),
                  sa.ForeignKey("tickets.id", ondelete="CASCADE")),
        sa.Column("event_id", UUID(as_uuid=True),
                  sa.ForeignKey("calendar_events.id", ondelete="SET NULL")),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("body", sa.Text()),
        sa.Column("status", _enum("queue_status"), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True)),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("error_message", sa.Text()),
        _created_at(),
    )
    op.create_index("ix_email_queue_status_created", "email_queue", ["status", "created_at"])

    op.create_table(
        "sms_queue",
        _id(),
        sa.Column("phone_number", sa.String(30), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("event_id", UUID(as_uuid=True),
                  sa.ForeignKey("calendar_events.id", ondelete="SET NULL")),
        sa.Column("notification_type", _enum("sms_notification_type"), nullable=False),
        sa.Column("status", _enum("queue_status"), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("twilio_message_id", sa.String(64)),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("error_message", sa.Text()),
        _created_at(),
    )
    op.create_index("ix_sms_queue_status_created", "sms_queue", ["status", "created_at"])

    op.create_table(
        "email_settings",
        _id(),
        sa.Column("imap_host", sa.String(255), nullable=False),
        sa.Column("imap_port", sa.Integer(), nullable=False, server_default="993"),
        sa.Column("imap_user", sa.String(255), nullable=False),
        sa.Column("imap_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )

    # --- 8. Zeiterfassung ---
    op.create_table(
        "time_categories",
        _id(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("color", sa.String(20), nullable=False, server_default="#3b82f6"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "time_entries",
        _id(),
        _profile_fk("employee_id", ondelete="CASCADE", nullable=False),
        sa.Column("category_id", UUID(as_uuid=True),
                  sa.ForeignKey("time_categories.id", ondelete="SET NULL")),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time()),
        sa.Column("end_time", sa.Time()),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        _profile_fk("approved_by"),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("duration_minutes > 0", name="ck_time_entries_duration_positive"),
    )
    op.create_index("ix_time_entries_employee_date", "time_entries", ["employee_id", "date"])

    op.create_table(
        "time_reports",
        _id(),
        _profile_fk("employee_id", ondelete="CASCADE", nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("total_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _profile_fk("closed_by"),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        sa.Column("evaluation_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bonus_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("employee_id", "year", "month", name="uq_time_reports_employee_month"),
    )

    op.create_table(
        "employee_settings",
        _id(),
        sa.Column("employee_id", UUID(as_uuid=True),
                  sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("compensation_type", _enum("compensation_type"), nullable=False, server_default="hourly"),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("monthly_salary", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        _updated_at(),
    )

    # --- 9. Benachrichtigungen ---
    op.create_table(
        "notifications",
        _id(),
        _profile_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500)),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("work_request_id", UUID(as_uuid=True),
                  sa.ForeignKey("work_requests.id", ondelete="CASCADE")),
        _created_at(),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade() -> None:
    for table in (
        "notifications",
        "employee_settings",
        "time_reports",
        "time_entries",
        "time_categories",
        "email_settings",
        "sms_queue",
        "email_queue",
        "shift_coverage_notifications",
        "shift_coverage_requests",
        "work_request_action_tokens",
    ):
        op.drop_table(table)

    op.drop_constraint("fk_calendar_events_work_request_id", "calendar_events", type_="foreignkey")
    for table in (
        "work_requests",
        "rebook_tokens",
        "mayday_confirmation_tokens",
        "calendar_sync_logs",
        "calendar_events",
        "template_attachments",
        "ticket_response_templates",
        "email_blacklist",
        "tag_email_rules",
        "ticket_attachments",
        "ticket_messages",
        "ticket_tags",
        "tickets",
        "tags",
        "profiles",
    ):
        op.drop_table(table)

    # Enum-Typen löschen
    conn = op.get_bind()
    for name in ENUMS:
        conn.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))
