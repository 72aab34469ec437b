"""Calendar Service - Kalender-Einträge mit Google-Spiegelung.

Lokale Änderungen werden sofort nach Google übertragen. Schlägt das fehl,
bleibt der Eintrag lokal gespeichert (sync_status=error bzw. pending) und
wird beim nächsten Export-Lauf erneut versucht.
"""

import logging
from collections import Counter
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import NotFoundException, ValidationException
from app.berlin_time import GERMAN_MONTHS_SHORT, utc_to_german, utcnow
from app.models.calendar import (
    CalendarEvent,
    CancellationReason,
    EventStatus,
    EventType,
    SyncStatus,
)
from app.models.queue import EmailType
from app.schemas.calendar import (
    BookingGroupBy,
    BookingStatsPeriod,
    BookingStatsResponse,
    CalendarEventCreate,
    CalendarEventUpdate,
)
from app.schemas.errors import ErrorCode
from app.services.email_queue_service import EmailQueueService
from app.services.email_templates import render_cancellation
from app.services.google_calendar_client import (
    DEFAULT_LOCATION,
    GoogleCalendarClient,
    GoogleCalendarError,
    get_calendar_client,
)

logger = logging.getLogger(__name__)


def _period_key(start: datetime, group_by: BookingGroupBy) -> str:
    local = utc_to_german(start)
    if group_by == BookingGroupBy.YEAR:
        return str(local.year)
    if group_by == BookingGroupBy.WEEK:
        iso_year, iso_week, _ = local.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return f"{local.year}-{local.month:02d}"


def _period_label(key: str, group_by: BookingGroupBy) -> str:
    if group_by == BookingGroupBy.YEAR:
        return key
    if group_by == BookingGroupBy.WEEK:
        year, week = key.split("-W")
        return f"KW {int(week)} {year}"
    year, month = key.split("-")
    return f"{GERMAN_MONTHS_SHORT[int(month) - 1]} {year}"


def compute_booking_stats(
    start_times: list[datetime],
    group_by: BookingGroupBy = BookingGroupBy.MONTH,
    limit: int = 12,
) -> BookingStatsResponse:
    """Buchungen pro Monat/KW/Jahr (Berliner Zeit).

    Bei Monat/Woche werden nur die letzten ``limit`` Perioden geliefert.
    """
    if not start_times:
        return BookingStatsResponse()

    counts = Counter(_period_key(start, group_by) for start in start_times)
    periods = [
        BookingStatsPeriod(period=key, count=counts[key], display_label=_period_label(key, group_by))
        for key in sorted(counts)
    ]
    if group_by != BookingGroupBy.YEAR and len(periods) > limit:
        periods = periods[-limit:]

    years = sorted({utc_to_german(start).year for start in start_times}, reverse=True)
    return BookingStatsResponse(
        total_bookings=len(start_times),
        data=periods,
        available_years=years,
    )


class CalendarService:
    """Service für Kalender-Einträge."""

    def __init__(
        self,
        db: AsyncSession,
        google: GoogleCalendarClient | None = None,
        queue: EmailQueueService | None = None,
    ):
        self.db = db
        self.google = google or get_calendar_client()
        self._queue = queue

    @property
    def queue(self) -> EmailQueueService:
        if self._queue is None:
            self._queue = EmailQueueService(self.db)
        return self._queue

    # ==================== Abfragen ====================

    async def list_events(
        self,
        start: datetime,
        end: datetime,
        event_type: EventType | None = None,
    ) -> list[CalendarEvent]:
        query = (
            select(CalendarEvent)
            .where(CalendarEvent.start_time >= start, CalendarEvent.start_time <= end)
            .order_by(CalendarEvent.start_time.asc())
        )
        if event_type:
            query = query.where(CalendarEvent.event_type == event_type)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_event(self, event_id: UUID) -> CalendarEvent:
        event = await self.db.get(CalendarEvent, event_id)
        if event is None:
            raise NotFoundException("Termin nicht gefunden", ErrorCode.EVENT_NOT_FOUND)
        return event

    async def upcoming(self, limit: int = 5) -> list[CalendarEvent]:
        result = await self.db.execute(
            select(CalendarEvent)
            .where(CalendarEvent.start_time >= utcnow())
            .order_by(CalendarEvent.start_time.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # ==================== Google-Spiegelung ====================

    async def push_to_google(self, event: CalendarEvent) -> bool:
        """Legt das Event in Google an bzw. aktualisiert es.

        Returns:
            True bei Erfolg; bei Fehler steht sync_status auf error.
        """
        if not self.google.is_configured:
            event.sync_status = SyncStatus.PENDING
            return False
        try:
            if event.google_event_id:
                google_event = await self.google.update_event(event.google_event_id, event)
            else:
                google_event = await self.google.create_event(event)
        except GoogleCalendarError as e:
            logger.error(f"Google-Sync für Termin {event.id} fehlgeschlagen: {e.message}")
            event.sync_status = SyncStatus.ERROR
            event.sync_error = e.message
            return False

        event.google_event_id = google_event.get("id", event.google_event_id)
        event.etag = google_event.get("etag")
        event.sync_status = SyncStatus.SYNCED
        event.sync_error = None
        event.last_synced_at = utcnow()
        return True

    async def remove_from_google(self, event: CalendarEvent) -> None:
        """Löscht das Google-Event und entfernt die Verknüpfung. Fehler werden nur geloggt."""
        if not event.google_event_id:
            return
        try:
            await self.google.delete_event(event.google_event_id)
        except GoogleCalendarError as e:
            logger.error(f"Google-Event {event.google_event_id} konnte nicht gelöscht werden: {e.message}")
            return
        event.google_event_id = None
        event.sync_status = SyncStatus.SYNCED
        event.last_synced_at = utcnow()

    # ==================== Anlegen / Ändern / Löschen ====================

    async def create_event(self, data: CalendarEventCreate, created_by: UUID | None = None) -> CalendarEvent:
        values = data.model_dump()
        if not values.get("duration"):
            values["duration"] = int((data.end_time - data.start_time).total_seconds() // 60)
        values["location"] = values.get("location") or DEFAULT_LOCATION

        event = CalendarEvent(
            **values,
            user_id=created_by,
            created_by=created_by,
            sync_status=SyncStatus.PENDING,
        )
        self.db.add(event)
        await self.db.flush()

        await self.push_to_google(event)
        await self.db.flush()
        logger.info(f"Termin angelegt: {event.event_type.value} {event.start_time} ({event.sync_status.value})")
        return event

    async def update_event(self, event_id: UUID, data: CalendarEventUpdate) -> CalendarEvent:
        event = await self.get_event(event_id)
        changes = data.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(event, key, value)
        if event.end_time <= event.start_time:
            raise ValidationException("Endzeit muss nach Startzeit liegen", field="end_time")
        if "start_time" in changes or "end_time" in changes:
            event.duration = int((event.end_time - event.start_time).total_seconds() // 60)

        await self.push_to_google(event)
        await self.db.flush()
        return event

    async def delete_event(self, event_id: UUID) -> None:
        event = await self.get_event(event_id)
        await self.remove_from_google(event)
        await self.db.delete(event)
        await self.db.flush()
        logger.info(f"Termin gelöscht: {event_id}")

    async def cancel_event(
        self,
        event_id: UUID,
        reason: CancellationReason,
        note: str | None = None,
        notify: bool = True,
        cancelled_by: UUID | None = None,
    ) -> CalendarEvent:
        """Storniert einen Termin (Status bleibt erhalten, Google-Event wird gelöscht)."""
        event = await self.get_event(event_id)
        if event.status == EventStatus.CANCELLED:
            raise ValidationException("Termin ist bereits storniert", ErrorCode.ALREADY_CANCELLED)

        event.status = EventStatus.CANCELLED
        event.cancelled_at = utcnow()
        event.cancelled_by = cancelled_by
        event.cancellation_reason = reason
        event.cancellation_note = note
        event.sync_status = SyncStatus.PENDING

        if event.google_event_id:
            await self.remove_from_google(event)
        else:
            event.sync_status = SyncStatus.SYNCED

        if notify and event.customer_email and event.event_type == EventType.BOOKING:
            rendered = render_cancellation(
                customer_name=event.customer_name or "Kunde",
                start_time=event.start_time,
                duration=event.duration_minutes,
                location=event.location or DEFAULT_LOCATION,
                attendee_count=event.attendee_count or 1,
            )
            await self.queue.enqueue_rendered(
                recipient_email=event.customer_email,
                rendered=rendered,
                email_type=EmailType.CANCELLATION,
                event_id=event.id,
            )

        await self.db.flush()
        logger.info(f"Termin storniert: {event.id} ({reason.value})")
        return event

    # ==================== Statistik ====================

    async def booking_stats(
        self,
        group_by: BookingGroupBy = BookingGroupBy.MONTH,
        limit: int = 12,
    ) -> BookingStatsResponse:
        """Nicht stornierte Buchungen gruppiert nach Monat, KW oder Jahr."""
        result = await self.db.execute(
            select(CalendarEvent.start_time)
            .where(
                CalendarEvent.event_type == EventType.BOOKING,
                CalendarEvent.status != EventStatus.CANCELLED,
            )
            .order_by(CalendarEvent.start_time.asc())
        )
        return compute_booking_stats(list(result.scalars().all()), group_by, limit)
