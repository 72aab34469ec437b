"""Dokumente, Benachrichtigungs-Einstellungen, Ticket-Bezug für Benachrichtigungen.

Revision ID: 002_documents_notification_settings
Revises: 001_initial
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "002_documents_notification_settings"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_NOTIFICATION_SETTINGS = '{"new_ticket": true, "work_request": true, "ticket_assignment": true}'


def upgrade() -> None:
    op.add_column(
        "profiles",
        sa.Column(
            "notification_settings",
            JSONB(),
            nullable=False,
            server_default=sa.text(f"'{DEFAULT_NOTIFICATION_SETTINGS}'::jsonb"),
        ),
    )

    op.add_column(
        "notifications",
        sa.Column("ticket_id", UUID(as_uuid=True), sa.ForeignKey("tickets.id", ondelete="CASCADE")),
    )

    op.create_table(
        "documents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(150), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(50), nullable=False, server_default="Allgemein"),
        sa.Column("storage_path", sa.String(500), nullable=False),
        sa.Column("assigned_to", UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE")),
        sa.Column("uploaded_by", UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_documents_assigned_to", "documents", ["assigned_to"])
    op.create_index("ix_documents_created_at", "documents", ["created_at"])


def downgrade() -> None:
    op.drop_table("documents")
    op.drop_column("notifications", "ticket_id")
    op.drop_column("profiles", "notification_settings")
