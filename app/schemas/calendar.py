"""Calendar Schemas - Kalender-Einträge, Sync, Shop-Buchungen (v1), MAYDAY."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.models.calendar import (
    CancellationReason,
    EventStatus,
    EventType,
    MaydayActionType,
    SyncStatus,
    SyncType,
)
from app.schemas.validators import HHMM, EventIdBatch


class CamelModel(BaseModel):
    """Basis für JSON im camelCase-Format (Shop-API, Statistiken)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BookingGroupBy(str, Enum):
    MONTH = "month"
    WEEK = "week"
    YEAR = "year"


# ── Kalender-Einträge ──

class CalendarEventBase(BaseModel):
    event_type: EventType = EventType.BOOKING
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    customer_first_name: str | None = Field(default=None, max_length=100)
    customer_last_name: str | None = Field(default=None, max_length=100)
    customer_email: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=50)
    duration: int | None = Field(default=None, ge=0)
    attendee_count: int | None = Field(default=None, ge=1)
    location: str | None = Field(default=None, max_length=500)
    remarks: str | None = None
    is_all_day: bool = False
    has_video_recording: bool = False
    status: EventStatus = EventStatus.CONFIRMED
    assigned_instructor_id: UUID | None = None
    assigned_instructor_number: str | None = Field(default=None, max_length=20)
    assigned_instructor_name: str | None = Field(default=None, max_length=200)
    actual_work_start_time: time | None = None
    actual_work_end_time: time | None = None


class CalendarEventCreate(CalendarEventBase):
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("Endzeit muss nach Startzeit liegen")
        return self


class CalendarEventUpdate(BaseModel):
    event_type: EventType | None = None
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    customer_first_name: str | None = Field(default=None, max_length=100)
    customer_last_name: str | None = Field(default=None, max_length=100)
    customer_email: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=50)
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = Field(default=None, ge=0)
    attendee_count: int | None = Field(default=None, ge=1)
    location: str | None = Field(default=None, max_length=500)
    remarks: str | None = None
    is_all_day: bool | None = None
    has_video_recording: bool | None = None
    status: EventStatus | None = None
    assigned_instructor_id: UUID | None = None
    assigned_instructor_number: str | None = None
    assigned_instructor_name: str | None = None
    actual_work_start_time: time | None = None
    actual_work_end_time: time | None = None


class CalendarEventResponse(CalendarEventBase):
    id: UUID
    google_event_id: str | None = None
    start_time: datetime
    end_time: datetime
    cancelled_at: datetime | None = None
    cancellation_reason: CancellationReason | None = None
    cancellation_note: str | None = None
    sync_status: SyncStatus
    sync_error: str | None = None
    last_synced_at: datetime | None = None
    work_request_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CancelEventRequest(BaseModel):
    reason: CancellationReason = CancellationReason.CANCELLED_BY_CUSTOMER
    note: str | None = None
    notify: bool = True


# ── Statistik ──

class BookingStatsPeriod(CamelModel):
    period: str
    count: int
    display_label: str


class BookingStatsResponse(CamelModel):
    total_bookings: int = 0
    data: list[BookingStatsPeriod] = []
    available_years: list[int] = []


# ── Google Sync ──

class SyncResult(BaseModel):
    success: bool = True
    imported: int = 0
    exported: int = 0
    updated: int = 0
    errors: list[str] = []
    sync_token: str | None = None

    def merge(self, other: "SyncResult") -> "SyncResult":
        return SyncResult(
            success=self.success and other.success,
            imported=self.imported + other.imported,
            exported=self.exported + other.exported,
            updated=self.updated + other.updated,
            errors=self.errors + other.errors,
            sync_token=self.sync_token or other.sync_token,
        )


class SyncLogResponse(BaseModel):
    id: UUID
    sync_type: SyncType
    status: str
    events_imported: int
    events_exported: int
    events_updated: int
    errors_count: int
    error_message: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Shop-API v1 ──

class BookingCustomer(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class BookingOut(CamelModel):
    """Buchung im Format der Shop-API."""

    id: UUID
    status: EventStatus
    start_time: datetime
    end_time: datetime
    duration: int | None = None
    title: str | None = None
    location: str | None = None
    customer: BookingCustomer | None = None
    attendee_count: int | None = None
    has_video_recording: bool = False
    remarks: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: CancellationReason | None = None

    @classmethod
    def from_event(cls, event, include_customer: bool = True) -> "BookingOut":
        customer = None
        if include_customer:
            customer = BookingCustomer(
                first_name=event.customer_first_name,
                last_name=event.customer_last_name,
                email=event.customer_email,
                phone=event.customer_phone,
            )
        return cls(
            id=event.id,
            status=event.status,
            start_time=event.start_time,
            end_time=event.end_time,
            duration=event.duration,
            title=event.title,
            location=event.location,
            customer=customer,
            attendee_count=event.attendee_count,
            has_video_recording=event.has_video_recording,
            remarks=event.remarks,
            created_at=event.created_at,
            updated_at=event.updated_at,
            cancelled_at=event.cancelled_at,
            cancellation_reason=event.cancellation_reason,
        )


class ShopBookingCreate(CamelModel):
    """Eingabe der Shop-API. Pflichtfelder werden im Service geprüft."""

    date: str | None = None
    time: str | None = None
    duration: int | None = None
    customer_first_name: str | None = None
    customer_last_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    attendee_count: int | None = None
    remarks: str | None = None
    has_video_recording: bool = False
    location: str | None = None
    shop_order_number: str | None = None
    shop_booking_id: str | None = None
    send_confirmation_email: bool = True


class ShopBookingCancel(CamelModel):
    reason: CancellationReason | None = None
    note: str | None = None


class SlotInfo(CamelModel):
    time: str
    available: bool


class AvailabilityResponse(CamelModel):
    date: str
    duration: int | None = None
    buffer_minutes: int | None = None
    timezone: str | None = None
    opening_hours: dict[str, str] | None = None
    available: bool
    reason: str | None = None
    blocker_title: str | None = None
    slots: list[str] = []
    all_slots: list[SlotInfo] = []


class MonthDay(CamelModel):
    date: str
    available: bool = True
    blocked: bool = False
    fully_blocked: bool = False
    booking_count: int = 0
    blocker_count: int = 0
    blocker_title: str | None = None


# ── MAYDAY ──

class MaydayReason(str, Enum):
    TECHNICAL_ISSUE = "technical_issue"
    STAFF_ILLNESS = "staff_illness"
    OTHER = "other"


class MaydayFilter(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    WEEK = "week"
    CUSTOM = "custom"


class MaydayShiftRequest(BaseModel):
    event_ids: EventIdBatch
    shift_minutes: int = Field(ge=-720, le=720)
    reason: MaydayReason
    reason_note: str | None = Field(default=None, max_length=500)
    send_notifications: bool = True
    send_sms: bool = False

    @model_validator(mode="after")
    def check_shift(self):
        if self.shift_minutes == 0:
            raise ValueError("Verschiebung muss ungleich 0 Minuten sein")
        return self


class MaydayCancelRequest(BaseModel):
    event_ids: EventIdBatch
    reason: MaydayReason
    reason_note: str | None = Field(default=None, max_length=500)
    send_notifications: bool = True
    offer_rebooking: bool = True
    send_sms: bool = False


class MaydayShiftResult(CamelModel):
    success: bool = True
    shifted: int = 0
    notified: int = 0
    sms_queued: int = 0
    errors: list[str] = []


class MaydayCancelResult(CamelModel):
    success: bool = True
    cancelled: int = 0
    notified: int = 0
    sms_queued: int = 0
    rebook_links: int = 0
    errors: list[str] = []


class MaydayConfirmResult(BaseModel):
    status: str
    type: MaydayActionType | None = None


class RebookTokenInfo(BaseModel):
    valid: bool
    error: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    original_duration: int | None = None
    original_attendee_count: int | None = None
    original_location: str | None = None
    expires_at: datetime | None = None


class TimeSlot(BaseModel):
    start: datetime
    end: datetime


class RebookRequest(BaseModel):
    new_start_time: datetime


class RebookResult(CamelModel):
    success: bool = True
    new_event_id: UUID


class UpcomingBookingsParams(BaseModel):
    filter: MaydayFilter = MaydayFilter.TODAY
    from_time: HHMM = None
    custom_date: date | None = None

    @model_validator(mode="after")
    def check_custom(self):
        if self.filter == MaydayFilter.CUSTOM and self.custom_date is None:
            raise ValueError("Für den Filter 'custom' ist ein Datum erforderlich")
        return self
