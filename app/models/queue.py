"""Versand-Queues für E-Mails und SMS (abgearbeitet per Cron)."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class QueueStatus(str, enum.Enum):
    """Versandstatus eines Queue-Eintrags."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class EmailType(str, enum.Enum):
    """Art der ausgehenden E-Mail."""

    TICKET = "ticket"
    TICKET_CONFIRMATION = "ticket_confirmation"
    TICKET_REPLY = "ticket_reply"
    BOOKING_CONFIRMATION = "booking_confirmation"
    CANCELLATION = "cancellation"
    MAYDAY_NOTIFICATION = "mayday_notification"
    SHIFT_COVERAGE_REQUEST = "shift_coverage_request"
    WORK_REQUEST_NOTIFICATION = "work_request_notification"


class SMSNotificationType(str, enum.Enum):
    """Anlass einer SMS."""

    SHIFT = "shift"
    CANCEL = "cancel"
    SHIFT_COVERAGE = "shift_coverage"


_queue_status_enum = Enum(
    QueueStatus,
    name="queue_status",
    values_callable=lambda x: [e.value for e in x],
)


class EmailQueueItem(Base):
    """Ausgehende E-Mail."""

    __tablename__ = "email_queue"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    type: Mapped[EmailType] = mapped_column(
        Enum(EmailType, name="email_type", values_callable=lambda x: [e.value for e in x]),
        default=EmailType.TICKET,
        nullable=False,
    )
    ticket_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tickets.id", ondelete="CASCADE"),
    )
    event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
    )
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    # HTML-Inhalt bzw. Ticket-Nachricht
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Klartext-Variante (optional)
    body: Mapped[str | None] = mapped_column(Text)

    status: Mapped[QueueStatus] = mapped_column(
        _queue_status_enum,
        default=QueueStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_email_queue_status_created", "status", "created_at"),
    )


class SMSQueueItem(Base):
    """Ausgehende SMS."""

    __tablename__ = "sms_queue"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    phone_number: Mapped[str] = mapped_column(String(30), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
    )
    notification_type: Mapped[SMSNotificationType] = mapped_column(
        Enum(SMSNotificationType, name="sms_notification_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status: Mapped[QueueStatus] = mapped_column(
        _queue_status_enum,
        default=QueueStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    twilio_message_id: Mapped[str | None] = mapped_column(String(64))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_sms_queue_status_created", "status", "created_at"),
    )


class EmailSettings(Base):
    """IMAP-Zugangsdaten für den Posteingang (genau eine aktive Zeile)."""

    __tablename__ = "email_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    imap_host: Mapped[str] = mapped_column(String(255), nullable=False)
    imap_port: Mapped[int] = mapped_column(Integer, default=993, nullable=False)
    imap_user: Mapped[str] = mapped_column(String(255), nullable=False)
    imap_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
