"""Kalender Models - Buchungen, FI-Einsätze, Blocker, Sync-Protokoll, MAYDAY-Tokens."""

import enum
import uuid
from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class EventType(str, enum.Enum):
    """Art eines Kalender-Eintrags."""

    BOOKING = "booking"
    FI_ASSIGNMENT = "fi_assignment"
    BLOCKER = "blocker"


class EventStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class SyncStatus(str, enum.Enum):
    """Abgleich-Status mit Google Calendar."""

    SYNCED = "synced"
    PENDING = "pending"
    ERROR = "error"


class CancellationReason(str, enum.Enum):
    CANCELLED_BY_CUSTOMER = "cancelled_by_customer"
    CANCELLED_BY_US = "cancelled_by_us"


class SyncType(str, enum.Enum):
    IMPORT = "import"
    EXPORT = "export"
    FULL = "full"
    CRON = "cron"
    MANUAL = "manual"


class MaydayActionType(str, enum.Enum):
    SHIFT = "shift"
    CANCEL = "cancel"


class CalendarEvent(Base):
    """Kalender-Eintrag (lokale Kopie, gespiegelt nach Google Calendar)."""

    __tablename__ = "calendar_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    google_event_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    etag: Mapped[str | None] = mapped_column(String(255))

    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType, name="event_type", values_callable=lambda x: [e.value for e in x]),
        default=EventType.BOOKING,
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)

    # Kunde
    customer_first_name: Mapped[str | None] = mapped_column(String(100))
    customer_last_name: Mapped[str | None] = mapped_column(String(100))
    customer_email: Mapped[str | None] = mapped_column(String(255))
    customer_phone: Mapped[str | None] = mapped_column(String(50))

    # Zeitraum (UTC)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer)
    attendee_count: Mapped[int | None] = mapped_column(Integer)
    location: Mapped[str | None] = mapped_column(String(500))
    remarks: Mapped[str | None] = mapped_column(Text)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_video_recording: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus, name="event_status", values_callable=lambda x: [e.value for e in x]),
        default=EventStatus.CONFIRMED,
        nullable=False,
    )

    # FI-Einsatz
    assigned_instructor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    assigned_instructor_number: Mapped[str | None] = mapped_column(String(20))
    assigned_instructor_name: Mapped[str | None] = mapped_column(String(200))
    actual_work_start_time: Mapped[time | None] = mapped_column(Time)
    actual_work_end_time: Mapped[time | None] = mapped_column(Time)

    # Stornierung
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    cancellation_reason: Mapped[CancellationReason | None] = mapped_column(
        Enum(CancellationReason, name="cancellation_reason", values_callable=lambda x: [e.value for e in x]),
    )
    cancellation_note: Mapped[str | None] = mapped_column(Text)

    # Google-Sync
    sync_status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, name="sync_status", values_callable=lambda x: [e.value for e in x]),
        default=SyncStatus.PENDING,
        nullable=False,
    )
    sync_error: Mapped[str | None] = mapped_column(Text)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    work_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_requests.id", ondelete="SET NULL", use_alter=True),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_calendar_events_start_time", "start_time"),
        Index("ix_calendar_events_type_status", "event_type", "status"),
        Index("ix_calendar_events_sync_status", "sync_status"),
        Index("ix_calendar_events_work_request_id", "work_request_id"),
    )

    @property
    def customer_name(self) -> str:
        parts = [p for p in (self.customer_first_name, self.customer_last_name) if p]
        return " ".join(parts)

    @property
    def duration_minutes(self) -> int:
        """Dauer in Minuten (gespeicherter Wert oder aus Start/Ende berechnet)."""
        if self.duration:
            return self.duration
        if self.start_time and self.end_time:
            return int((self.end_time - self.start_time).total_seconds() // 60)
        return 0

    def __repr__(self) -> str:
        return f"<CalendarEvent {self.event_type.value} {self.start_time}>"


class CalendarSyncLog(Base):
    """Protokoll eines Sync-Laufs."""

    __tablename__ = "calendar_sync_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    sync_type: Mapped[SyncType] = mapped_column(
        Enum(SyncType, name="sync_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    events_imported: Mapped[int] = mapped_column(Integer, default=0)
    events_exported: Mapped[int] = mapped_column(Integer, default=0)
    events_updated: Mapped[int] = mapped_column(Integer, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    sync_token: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_calendar_sync_logs_created_at", "created_at"),
    )


class MaydayConfirmationToken(Base):
    """Bestätigungs-Link für Kunden nach einer MAYDAY-Verschiebung/Absage."""

    __tablename__ = "mayday_confirmation_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
    )
    action_type: Mapped[MaydayActionType] = mapped_column(
        Enum(MaydayActionType, name="mayday_action_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    customer_email: Mapped[str | None] = mapped_column(String(255))
    customer_name: Mapped[str | None] = mapped_column(String(200))
    reason: Mapped[str | None] = mapped_column(Text)
    shift_minutes: Mapped[int | None] = mapped_column(Integer)
    old_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    new_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    event = relationship("CalendarEvent", lazy="selectin")


class RebookToken(Base):
    """Link zur Selbst-Neubuchung nach einer MAYDAY-Absage."""

    __tablename__ = "rebook_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    original_event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
    )
    customer_email: Mapped[str | None] = mapped_column(String(255))
    customer_name: Mapped[str | None] = mapped_column(String(200))
    customer_phone: Mapped[str | None] = mapped_column(String(50))
    original_duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    original_attendee_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    original_location: Mapped[str | None] = mapped_column(String(500))
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    new_event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
