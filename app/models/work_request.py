"""Work Request Models - Arbeitstag-Anträge und Schicht-Übernahmen."""

import enum
import uuid
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class WorkRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


WORK_REQUEST_STATUS_LABELS = {
    WorkRequestStatus.PENDING: "Ausstehend",
    WorkRequestStatus.APPROVED: "Genehmigt",
    WorkRequestStatus.REJECTED: "Abgelehnt",
    WorkRequestStatus.WITHDRAWN: "Zurückgezogen",
}


class WorkRequestAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ShiftCoverageStatus(str, enum.Enum):
    OPEN = "open"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


SHIFT_COVERAGE_STATUS_LABELS = {
    ShiftCoverageStatus.OPEN: "Offen",
    ShiftCoverageStatus.ACCEPTED: "Angenommen",
    ShiftCoverageStatus.CANCELLED: "Storniert",
    ShiftCoverageStatus.EXPIRED: "Abgelaufen",
}


def _default_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=7)


class WorkRequest(Base):
    """Antrag eines Mitarbeiters, an einem Tag zu arbeiten."""

    __tablename__ = "work_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_full_day: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time)
    end_time: Mapped[time | None] = mapped_column(Time)
    reason: Mapped[str | None] = mapped_column(Text)

    status: Mapped[WorkRequestStatus] = mapped_column(
        Enum(WorkRequestStatus, name="work_request_status", values_callable=lambda x: [e.value for e in x]),
        default=WorkRequestStatus.PENDING,
        nullable=False,
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    calendar_event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
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

    employee = relationship("Profile", foreign_keys=[employee_id], lazy="selectin")
    approver = relationship("Profile", foreign_keys=[approved_by], lazy="selectin")

    __table_args__ = (
        Index("ix_work_requests_employee_date", "employee_id", "request_date"),
        Index("ix_work_requests_status", "status"),
    )

    @property
    def status_label(self) -> str:
        return WORK_REQUEST_STATUS_LABELS.get(self.status, self.status.value)


class WorkRequestActionToken(Base):
    """Einmal-Link für Genehmigen/Ablehnen aus der Manager-E-Mail."""

    __tablename__ = "work_request_action_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    work_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[WorkRequestAction] = mapped_column(
        Enum(WorkRequestAction, name="work_request_action", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_default_expiry,
        nullable=False,
    )
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class ShiftCoverageRequest(Base):
    """Rundruf: Wer übernimmt die Schicht an Tag X?"""

    __tablename__ = "shift_coverage_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_full_day: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time)
    end_time: Mapped[time | None] = mapped_column(Time)
    reason: Mapped[str | None] = mapped_column(Text)

    status: Mapped[ShiftCoverageStatus] = mapped_column(
        Enum(ShiftCoverageStatus, name="shift_coverage_status", values_callable=lambda x: [e.value for e in x]),
        default=ShiftCoverageStatus.OPEN,
        nullable=False,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    accepted_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    work_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("work_requests.id", ondelete="SET NULL"),
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_default_expiry,
        nullable=False,
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

    creator = relationship("Profile", foreign_keys=[created_by], lazy="selectin")
    acceptor = relationship("Profile", foreign_keys=[accepted_by], lazy="selectin")
    notifications: Mapped[list["ShiftCoverageNotification"]] = relationship(
        "ShiftCoverageNotification",
        back_populates="coverage_request",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_shift_coverage_requests_status", "status"),
        Index("ix_shift_coverage_requests_date", "request_date"),
    )

    @property
    def status_label(self) -> str:
        return SHIFT_COVERAGE_STATUS_LABELS.get(self.status, self.status.value)


class ShiftCoverageNotification(Base):
    """Benachrichtigung eines Mitarbeiters zu einem Rundruf (mit Annahme-Link)."""

    __tablename__ = "shift_coverage_notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    coverage_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("shift_coverage_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sms_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sms_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accept_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    token_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    token_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    coverage_request: Mapped[ShiftCoverageRequest] = relationship(
        "ShiftCoverageRequest",
        back_populates="notifications",
    )
    employee = relationship("Profile", lazy="selectin")
