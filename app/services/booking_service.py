"""Booking Service - Buchungs-API für den Online-Shop (v1).

Öffnungszeiten 10:00-22:00 (Europe/Berlin), Slots im 15-Minuten-Raster,
14 Minuten Puffer nach jeder Buchung. Neue Buchungen werden mit
sync_status=pending gespeichert und vom Kalender-Cron nach Google exportiert.
"""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    ConflictException,
    NotFoundException,
    ValidationException,
)
from app.berlin_time import (
    berlin_today,
    german_date_of,
    german_day_bounds,
    german_time_to_utc,
    periods_overlap,
    utc_to_german,
)
from app.models.calendar import (
    CalendarEvent,
    CancellationReason,
    EventStatus,
    EventType,
    SyncStatus,
)
from app.models.queue import EmailType
from app.schemas.calendar import (
    AvailabilityResponse,
    BookingOut,
    MonthDay,
    ShopBookingCancel,
    ShopBookingCreate,
    SlotInfo,
)
from app.schemas.errors import ErrorCode
from app.services.calendar_service import CalendarService
from app.services.email_queue_service import EmailQueueService
from app.services.email_templates import render_booking_confirmation

logger = logging.getLogger(__name__)

# Öffnungszeiten und Raster
OPENING_HOUR = 10
CLOSING_HOUR = 22
SLOT_INTERVAL_MINUTES = 15
BUFFER_MINUTES = 14
VALID_DURATIONS = (30, 60, 120, 180)

DURATION_LABELS = {
    30: "Economy",
    60: "Business",
    120: "First Class",
    180: "VIP",
}

SHOP_LOCATION = "FLIGHTHOUR Flugsimulator, Essener Str. 99C, 46047 Oberhausen"

EXPORT_DEFAULT_FROM = date(2020, 1, 1)
EXPORT_DEFAULT_LIMIT = 1000
EXPORT_MAX_LIMIT = 5000

_DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_FORMAT = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_EMAIL_FORMAT = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ═══════════════════════════════════════════════════════════════
#  Reine Hilfsfunktionen (ohne DB)
# ═══════════════════════════════════════════════════════════════

def parse_shop_date(value: str | None) -> date:
    """'YYYY-MM-DD' → date. ValidationException bei falschem Format."""
    if not value or not _DATE_FORMAT.match(value):
        raise ValidationException("Invalid date format. Use YYYY-MM-DD", field="date")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationException("Invalid date format. Use YYYY-MM-DD", field="date")


def check_duration(duration: int | None) -> int:
    if duration not in VALID_DURATIONS:
        valid = ", ".join(str(d) for d in VALID_DURATIONS)
        raise ValidationException(f"Invalid duration. Valid values: {valid}", field="duration")
    return duration


@dataclass(frozen=True)
class BusyPeriod:
    start: datetime
    end: datetime


def busy_periods(events: list[CalendarEvent]) -> list[BusyPeriod]:
    """Belegte Zeiträume eines Tages. Buchungen inkl. Puffer danach."""
    periods = []
    for event in events:
        end = event.end_time
        if event.event_type == EventType.BOOKING:
            end = end + timedelta(minutes=BUFFER_MINUTES)
        periods.append(BusyPeriod(event.start_time, end))
    return periods


def compute_slots(day: date, duration: int, busy: list[BusyPeriod]) -> list[SlotInfo]:
    """Alle Start-Slots eines Tages mit Verfügbarkeit.

    Ein Slot belegt Dauer + Puffer und muss bis zur Schließzeit enden.
    """
    closing = german_time_to_utc(day, f"{CLOSING_HOUR:02d}:00")
    slot_length = timedelta(minutes=duration + BUFFER_MINUTES)
    slots = []

    for hour in range(OPENING_HOUR, CLOSING_HOUR):
        for minute in range(0, 60, SLOT_INTERVAL_MINUTES):
            label = f"{hour:02d}:{minute:02d}"
            start = german_time_to_utc(day, label)
            end = start + slot_length
            if end > closing:
                continue
            free = not any(periods_overlap(start, end, p.start, p.end) for p in busy)
            slots.append(SlotInfo(time=label, available=free))
    return slots


def validate_shop_booking(data: ShopBookingCreate) -> tuple[datetime, datetime]:
    """Prüft eine Shop-Buchung und liefert (Start, Ende) in UTC."""
    required = {
        "date": data.date,
        "time": data.time,
        "duration": data.duration,
        "customerFirstName": data.customer_first_name,
        "customerLastName": data.customer_last_name,
        "customerEmail": data.customer_email,
    }
    if any(not value for value in required.values()):
        raise ValidationException(
            "Missing required fields: " + ", ".join(required.keys()),
            ErrorCode.MISSING_REQUIRED_FIELD,
        )

    day = parse_shop_date(data.date)
    if not _TIME_FORMAT.match(data.time):
        raise ValidationException("Invalid time format. Use HH:MM", field="time")
    duration = check_duration(data.duration)
    if not _EMAIL_FORMAT.match(data.customer_email.strip()):
        raise ValidationException("Invalid email format", field="customerEmail")

    start = german_time_to_utc(day, data.time)
    return start, start + timedelta(minutes=duration)


def build_booking_remarks(remarks: str | None, shop_order_number: str | None) -> str | None:
    if not shop_order_number:
        return remarks
    if remarks:
        return f"{remarks}\nShop Order: {shop_order_number}"
    return f"Shop Order: {shop_order_number}"


def summarize_month(year: int, month: int, events: list[CalendarEvent]) -> list[MonthDay]:
    """Pro Berliner Kalendertag: Buchungen, Blocker, ganztägig gesperrt."""
    days_in_month = calendar.monthrange(year, month)[1]
    days = {
        day: MonthDay(date=date(year, month, day).isoformat())
        for day in range(1, days_in_month + 1)
    }

    for event in events:
        local_day = german_date_of(event.start_time)
        if local_day.year != year or local_day.month != month:
            continue
        entry = days[local_day.day]
        if event.event_type == EventType.BOOKING:
            entry.booking_count += 1
        elif event.event_type == EventType.BLOCKER:
            entry.blocker_count += 1
            entry.blocked = True
            if event.is_all_day:
                entry.fully_blocked = True
                entry.available = False
                entry.blocker_title = event.customer_first_name or event.title or "Nicht verfügbar"

    return list(days.values())


# ═══════════════════════════════════════════════════════════════
#  Service
# ═══════════════════════════════════════════════════════════════

class BookingService:
    """Shop-Buchungen: Verfügbarkeit, Anlage, Storno, Export."""

    def __init__(
        self,
        db: AsyncSession,
        calendar_service: CalendarService | None = None,
        queue: EmailQueueService | None = None,
    ):
        self.db = db
        self._calendar = calendar_service
        self._queue = queue

    @property
    def calendar(self) -> CalendarService:
        if self._calendar is None:
            self._calendar = CalendarService(self.db, queue=self._queue)
        return self._calendar

    @property
    def queue(self) -> EmailQueueService:
        if self._queue is None:
            self._queue = EmailQueueService(self.db)
        return self._queue

    async def _active_events_between(
        self,
        start: datetime,
        end: datetime,
        types: tuple[EventType, ...] = (EventType.BOOKING, EventType.BLOCKER),
    ) -> list[CalendarEvent]:
        """Nicht stornierte Einträge, die den Zeitraum schneiden."""
        result = await self.db.execute(
            select(CalendarEvent)
            .where(
                CalendarEvent.status != EventStatus.CANCELLED,
                CalendarEvent.event_type.in_(types),
                CalendarEvent.start_time < end,
                CalendarEvent.end_time > start,
            )
            .order_by(CalendarEvent.start_time.asc())
        )
        return list(result.scalars().all())

    # ==================== Verfügbarkeit ====================

    async def availability(self, date_value: str | None, duration: int | None) -> AvailabilityResponse:
        day = parse_shop_date(date_value)
        duration = check_duration(duration)
        day_start, day_end = german_day_bounds(day)

        events = await self._active_events_between(day_start, day_end)
        day_blocker = next(
            (e for e in events if e.event_type == EventType.BLOCKER and e.is_all_day),
            None,
        )
        if day_blocker is not None:
            return AvailabilityResponse(
                date=day.isoformat(),
                available=False,
                reason="day_blocked",
                blocker_title=day_blocker.customer_first_name or "Nicht verfügbar",
                slots=[],
            )

        all_slots = compute_slots(day, duration, busy_periods(events))
        free = [slot.time for slot in all_slots if slot.available]
        return AvailabilityResponse(
            date=day.isoformat(),
            duration=duration,
            buffer_minutes=BUFFER_MINUTES,
            timezone="Europe/Berlin",
            opening_hours={"start": f"{OPENING_HOUR:02d}:00", "end": f"{CLOSING_HOUR:02d}:00"},
            available=bool(free),
            slots=free,
            all_slots=all_slots,
        )

    # ==================== Abfragen ====================

    async def get_booking(self, booking_id: UUID) -> CalendarEvent:
        event = await self.db.get(CalendarEvent, booking_id)
        if event is None:
            raise NotFoundException("Booking not found", ErrorCode.EVENT_NOT_FOUND)
        return event

    async def bookings_on(self, date_value: str) -> list[CalendarEvent]:
        day = parse_shop_date(date_value)
        day_start, day_end = german_day_bounds(day)
        result = await self.db.execute(
            select(CalendarEvent)
            .where(
                CalendarEvent.event_type == EventType.BOOKING,
                CalendarEvent.start_time >= day_start,
                CalendarEvent.start_time < day_end,
            )
            .order_by(CalendarEvent.start_time.asc())
        )
        return list(result.scalars().all())

    # ==================== Anlegen ====================

    async def create_booking(self, data: ShopBookingCreate) -> CalendarEvent:
        start, end = validate_shop_booking(data)

        buffer = timedelta(minutes=BUFFER_MINUTES)
        conflicts = await self._active_events_between(start - buffer, end + buffer)
        if conflicts:
            raise ConflictException("Slot no longer available", ErrorCode.SLOT_TAKEN)

        first_name = data.customer_first_name.strip()
        last_name = data.customer_last_name.strip()
        event = CalendarEvent(
            event_type=EventType.BOOKING,
            title=f"{DURATION_LABELS[data.duration]} - {first_name} {last_name}",
            customer_first_name=first_name,
            customer_last_name=last_name,
            customer_email=data.customer_email.strip().lower(),
            customer_phone=data.customer_phone,
            start_time=start,
            end_time=end,
            duration=data.duration,
            attendee_count=data.attendee_count or 1,
            location=data.location or SHOP_LOCATION,
            remarks=build_booking_remarks(data.remarks, data.shop_order_number),
            has_video_recording=data.has_video_recording,
            is_all_day=False,
            status=EventStatus.CONFIRMED,
            sync_status=SyncStatus.PENDING,
        )
        self.db.add(event)
        await self.db.flush()
        logger.info(f"Shop-Buchung angelegt: {event.id} am {utc_to_german(start):%d.%m.%Y %H:%M}")

        if data.send_confirmation_email:
            rendered = render_booking_confirmation(
                customer_name=event.customer_name,
                start_time=event.start_time,
                end_time=event.end_time,
                duration=event.duration,
                location=event.location,
                attendee_count=event.attendee_count,
                remarks=data.remarks,
                has_video_recording=event.has_video_recording,
            )
            await self.queue.enqueue_rendered(
                recipient_email=event.customer_email,
                rendered=rendered,
                email_type=EmailType.BOOKING_CONFIRMATION,
                event_id=event.id,
            )
        return event

    # ==================== Storno ====================

    async def cancel_booking(self, booking_id: UUID, data: ShopBookingCancel) -> CalendarEvent:
        event = await self.get_booking(booking_id)
        if event.event_type != EventType.BOOKING:
            raise ValidationException("Can only cancel bookings", ErrorCode.INVALID_STATE)
        if event.status == EventStatus.CANCELLED:
            raise ValidationException("Booking is already cancelled", ErrorCode.ALREADY_CANCELLED)

        reason = (
            CancellationReason.CANCELLED_BY_US
            if data.reason == CancellationReason.CANCELLED_BY_US
            else CancellationReason.CANCELLED_BY_CUSTOMER
        )
        return await self.calendar.cancel_event(event.id, reason, note=data.note, notify=False)

    async def delete_booking(self, booking_id: UUID) -> None:
        """Löscht eine Buchung endgültig (Google-Event zuerst)."""
        event = await self.get_booking(booking_id)
        if event.event_type != EventType.BOOKING:
            raise ValidationException("Can only delete bookings", ErrorCode.INVALID_STATE)
        await self.calendar.delete_event(event.id)

    # ==================== Export ====================

    async def export_bookings(
        self,
        from_date: str | None = None,
        to_date: str | None = None,
        limit: int = EXPORT_DEFAULT_LIMIT,
        offset: int = 0,
        include_customer_data: bool = True,
    ) -> dict:
        start_day = parse_shop_date(from_date) if from_date else EXPORT_DEFAULT_FROM
        end_day = parse_shop_date(to_date) if to_date else berlin_today()
        limit = max(1, min(limit, EXPORT_MAX_LIMIT))
        offset = max(0, offset)

        range_start, _ = german_day_bounds(start_day)
        _, range_end = german_day_bounds(end_day)
        conditions = and_(
            CalendarEvent.event_type == EventType.BOOKING,
            CalendarEvent.status == EventStatus.CONFIRMED,
            CalendarEvent.start_time >= range_start,
            CalendarEvent.start_time < range_end,
        )

        total = (await self.db.execute(select(func.count(CalendarEvent.id)).where(conditions))).scalar() or 0
        result = await self.db.execute(
            select(CalendarEvent)
            .where(conditions)
            .order_by(CalendarEvent.start_time.asc())
            .limit(limit)
            .offset(offset)
        )
        bookings = [
            BookingOut.from_event(event, include_customer=include_customer_data).model_dump(by_alias=True, mode="json")
            for event in result.scalars().all()
        ]
        return {
            "dateRange": {"from": start_day.isoformat(), "to": end_day.isoformat()},
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(bookings) < total,
            "bookings": bookings,
        }

    # ==================== Monatsübersicht ====================

    async def month_overview(self, year: int, month: int) -> dict:
        if not 2020 <= year <= 2100:
            raise ValidationException("Invalid year", field="year")
        if not 1 <= month <= 12:
            raise ValidationException("Invalid month (1-12)", field="month")

        days_in_month = calendar.monthrange(year, month)[1]
        range_start, _ = german_day_bounds(date(year, month, 1))
        _, range_end = german_day_bounds(date(year, month, days_in_month))

        result = await self.db.execute(
            select(CalendarEvent).where(
                CalendarEvent.status != EventStatus.CANCELLED,
                or_(
                    CalendarEvent.event_type == EventType.BOOKING,
                    CalendarEvent.event_type == EventType.BLOCKER,
                ),
                CalendarEvent.start_time >= range_start,
                CalendarEvent.start_time < range_end,
            )
        )
        days = summarize_month(year, month, list(result.scalars().all()))

        return {
            "year": year,
            "month": month,
            "daysInMonth": days_in_month,
            "days": [d.model_dump(by_alias=True) for d in days],
            "summary": {
                "totalDays": days_in_month,
                "blockedDays": sum(1 for d in days if d.fully_blocked),
                "daysWithBookings": sum(1 for d in days if d.booking_count > 0),
                "totalBookings": sum(d.booking_count for d in days),
            },
        }
