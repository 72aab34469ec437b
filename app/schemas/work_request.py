"""Work Request & Schichtübernahme Schemas."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.work_request import (
    ShiftCoverageStatus,
    WorkRequestAction,
    WorkRequestStatus,
)
from app.schemas.profile import ProfileBrief


# ── Arbeitstag-Anträge ──

class WorkRequestInput(BaseModel):
    """Eingabe für Anlegen/Bearbeiten. Formatprüfung im Service (deutsche Meldungen)."""

    request_date: str
    is_full_day: bool = True
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = Field(default=None, max_length=1000)


class DirectWorkRequestInput(WorkRequestInput):
    employee_id: UUID


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class WorkRequestResponse(BaseModel):
    id: UUID
    employee_id: UUID
    employee: ProfileBrief | None = None
    request_date: date
    is_full_day: bool
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None
    status: WorkRequestStatus
    status_label: str
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    calendar_event_id: UUID | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WorkRequestFilters(BaseModel):
    status: WorkRequestStatus | None = None
    employee_id: UUID | None = None
    date_from: date | None = None
    date_to: date | None = None


class WorkRequestStats(BaseModel):
    pending: int = 0
    approved_today: int = 0
    total_month: int = 0
    total_year: int = 0


class TokenActionResult(BaseModel):
    success: bool
    action: WorkRequestAction
    request: WorkRequestResponse


# ── Schichtübernahme ──

class ShiftCoverageInput(BaseModel):
    request_date: date | None = None
    is_full_day: bool = True
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = Field(default=None, max_length=1000)
    employee_ids: list[UUID] = []
    send_email: bool = True
    send_sms: bool = False


class ShiftCoverageNotificationResponse(BaseModel):
    id: UUID
    employee_id: UUID
    employee: ProfileBrief | None = None
    email_sent: bool
    sms_sent: bool
    token_used: bool

    model_config = {"from_attributes": True}


class ShiftCoverageResponse(BaseModel):
    id: UUID
    request_date: date
    is_full_day: bool
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None
    status: ShiftCoverageStatus
    status_label: str
    created_by: UUID | None = None
    accepted_by: UUID | None = None
    acceptor: ProfileBrief | None = None
    accepted_at: datetime | None = None
    work_request_id: UUID | None = None
    expires_at: datetime
    created_at: datetime
    notifications: list[ShiftCoverageNotificationResponse] = []

    model_config = {"from_attributes": True}


class ShiftCoverageCreateResult(BaseModel):
    request: ShiftCoverageResponse
    notified: int = 0
    emails_queued: int = 0
    sms_queued: int = 0


class CoverageTokenInfo(BaseModel):
    """Status eines Annahme-Links (öffentliche Seite)."""

    status: str
    request_date: date | None = None
    time_display: str | None = None
    reason: str | None = None
    employee_name: str | None = None
    accepted_by_name: str | None = None


class CoverageAcceptResult(BaseModel):
    success: bool
    message: str
