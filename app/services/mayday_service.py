"""MAYDAY Service - Notfall-Verschiebung und -Absage von Buchungen.

Ablauf bei einem Ausfall (Technik, Krankheit):
1. Betroffene Buchungen laden (heute, morgen, Woche, Datum)
2. Verschieben oder absagen, Google Calendar nachziehen
3. Kunden per E-Mail (mit Bestätigungs-Link) und optional SMS informieren
4. Bei Absage: Rebook-Link, über den der Kunde selbst neu bucht
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    AppException,
    ConflictException,
    DatabaseException,
    GoogleCalendarException,
    ValidationException,
)
from app.auth import generate_action_token, is_expired, token_expiry
from app.berlin_time import (
    berlin_today,
    german_date_of,
    german_day_bounds,
    german_time_to_utc,
    utcnow,
)
from app.config import settings
from app.models.calendar import (
    CalendarEvent,
    CancellationReason,
    EventStatus,
    EventType,
    MaydayActionType,
    MaydayConfirmationToken,
    RebookToken,
    SyncStatus,
)
from app.models.queue import EmailType, SMSNotificationType
from app.schemas.calendar import (
    MaydayCancelRequest,
    MaydayCancelResult,
    MaydayConfirmResult,
    MaydayFilter,
    MaydayReason,
    MaydayShiftRequest,
    MaydayShiftResult,
    RebookTokenInfo,
    TimeSlot,
    UpcomingBookingsParams,
)
from app.schemas.errors import ErrorCode
from app.services.calendar_service import CalendarService
from app.services.email_queue_service import EmailQueueService
from app.services.email_templates import (
    render_booking_confirmation,
    render_mayday_cancel,
    render_mayday_shift,
)
from app.services.google_calendar_client import DEFAULT_LOCATION
from app.services.sms_service import SMSQueueService, cancel_sms, shift_sms

logger = logging.getLogger(__name__)

MAYDAY_LOCATION = "FLIGHTHOUR GmbH"
REBOOK_SLOT_STEP_MINUTES = 30
REBOOK_DEFAULT_DURATION = 60


@dataclass(frozen=True)
class ReasonTexts:
    label: str
    email_text: str
    sms_text: str


MAYDAY_REASONS = {
    MaydayReason.TECHNICAL_ISSUE: ReasonTexts(
        label="Technische Probleme",
        email_text="Aufgrund eines technischen Problems",
        sms_text="wegen techn. Probleme",
    ),
    MaydayReason.STAFF_ILLNESS: ReasonTexts(
        label="Krankheitsfall",
        email_text="Aufgrund eines kurzfristigen Krankheitsfalls",
        sms_text="wegen Krankheit",
    ),
    MaydayReason.OTHER: ReasonTexts(
        label="Sonstiges",
        email_text="Aus organisatorischen Gründen",
        sms_text="aus org. Gründen",
    ),
}


# ═══════════════════════════════════════════════════════════════
#  Reine Hilfsfunktionen
# ═══════════════════════════════════════════════════════════════

def upcoming_range(params: UpcomingBookingsParams, today: date | None = None) -> tuple[datetime, datetime]:
    """UTC-Zeitraum für den MAYDAY-Filter (Berliner Tagesgrenzen).

    ``week`` reicht von heute bis einschließlich Sonntag.
    """
    today = today or berlin_today()
    if params.filter == MaydayFilter.CUSTOM:
        first_day = last_day = params.custom_date
    elif params.filter == MaydayFilter.TOMORROW:
        first_day = last_day = today + timedelta(days=1)
    elif params.filter == MaydayFilter.WEEK:
        first_day = today
        last_day = today + timedelta(days=6 - today.weekday())
    else:
        first_day = last_day = today

    start, _ = german_day_bounds(first_day)
    _, end = german_day_bounds(last_day)
    if params.from_time:
        start = german_time_to_utc(first_day, params.from_time)
    return start, end


def gap_slots(
    window_start: datetime,
    window_end: datetime,
    busy: list[tuple[datetime, datetime]],
    duration: int,
    now: datetime,
    step_minutes: int = REBOOK_SLOT_STEP_MINUTES,
) -> list[TimeSlot]:
    """Freie Slots der Länge ``duration`` innerhalb eines Arbeitsfensters.

    Die Lücken zwischen belegten Zeiträumen werden im ``step_minutes``-Raster
    abgelaufen. Nur Slots in der Zukunft.
    """
    length = timedelta(minutes=duration)
    step = timedelta(minutes=step_minutes)
    slots: list[TimeSlot] = []

    gaps = []
    cursor = window_start
    for busy_start, busy_end in sorted(busy):
        if busy_end <= cursor or busy_start >= window_end:
            continue
        if busy_start > cursor:
            gaps.append((cursor, busy_start))
        cursor = max(cursor, busy_end)
    if cursor < window_end:
        gaps.append((cursor, window_end))

    for gap_start, gap_end in gaps:
        slot_start = gap_start
        while slot_start + length <= gap_end:
            if slot_start > now:
                slots.append(TimeSlot(start=slot_start, end=slot_start + length))
            slot_start += step
    return slots


def work_window(fi_event: CalendarEvent) -> tuple[datetime, datetime]:
    """Arbeitszeit eines FI-Einsatzes (tatsächliche Zeiten, sonst Start/Ende)."""
    if fi_event.actual_work_start_time and fi_event.actual_work_end_time:
        day = german_date_of(fi_event.start_time)
        return (
            german_time_to_utc(day, fi_event.actual_work_start_time),
            german_time_to_utc(day, fi_event.actual_work_end_time),
        )
    return fi_event.start_time, fi_event.end_time


def split_customer_name(name: str | None) -> tuple[str | None, str | None]:
    if not name:
        return None, None
    parts = name.strip().split(" ", 1)
    return parts[0], parts[1] if len(parts) > 1 else None


# ═══════════════════════════════════════════════════════════════
#  Service
# ═══════════════════════════════════════════════════════════════

class MaydayService:
    """Notfall-Aktionen für Buchungen."""

    def __init__(
        self,
        db: AsyncSession,
        calendar_service: CalendarService | None = None,
        queue: EmailQueueService | None = None,
        sms: SMSQueueService | None = None,
    ):
        self.db = db
        self._calendar = calendar_service
        self._queue = queue
        self._sms = sms

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

    @property
    def sms(self) -> SMSQueueService:
        if self._sms is None:
            self._sms = SMSQueueService(self.db)
        return self._sms

    @staticmethod
    def _url(path: str) -> str:
        return f"{settings.app_base_url.rstrip('/')}{path}"

    # ==================== Buchungen laden ====================

    async def upcoming_bookings(self, params: UpcomingBookingsParams) -> list[CalendarEvent]:
        start, end = upcoming_range(params)
        result = await self.db.execute(
            select(CalendarEvent)
            .where(
                CalendarEvent.event_type == EventType.BOOKING,
                CalendarEvent.status == EventStatus.CONFIRMED,
                CalendarEvent.start_time >= start,
                CalendarEvent.start_time < end,
            )
            .order_by(CalendarEvent.start_time.asc())
        )
        return list(result.scalars().all())

    # ==================== Verschieben ====================

    async def shift_events(self, request: MaydayShiftRequest) -> MaydayShiftResult:
        texts = MAYDAY_REASONS[request.reason]
        result = MaydayShiftResult()
        delta = timedelta(minutes=request.shift_minutes)

        for event_id in request.event_ids:
            try:
                async with self.db.begin_nested():
                    event = await self.calendar.get_event(event_id)
                    old_start = event.start_time
                    event.start_time = old_start + delta
                    event.end_time = event.end_time + delta
                    await self.db.flush()

                    if event.google_event_id:
                        await self.calendar.push_to_google(event)
                    result.shifted += 1

                    if request.send_notifications and event.customer_email:
                        await self._notify_shift(event, old_start, request.shift_minutes, texts)
                        result.notified += 1
                    if request.send_sms and event.customer_phone:
                        queued = await self.sms.enqueue(
                            event.customer_phone,
                            shift_sms(old_start, event.start_time, texts.sms_text),
                            SMSNotificationType.SHIFT,
                            event_id=event.id,
                        )
                        if queued is not None:
                            result.sms_queued += 1
            except (AppException, SQLAlchemyError) as e:
                logger.error(f"MAYDAY: Verschieben von {event_id} fehlgeschlagen: {e}")
                result.errors.append(f"{event_id}: {e}")

        result.success = not result.errors
        logger.info(
            f"MAYDAY Verschiebung um {request.shift_minutes} min ({texts.label}): "
            f"{result.shifted} verschoben, {result.notified} benachrichtigt"
        )
        return result

    async def _notify_shift(
        self,
        event: CalendarEvent,
        old_start: datetime,
        shift_minutes: int,
        texts: ReasonTexts,
    ) -> None:
        token = MaydayConfirmationToken(
            token=generate_action_token(),
            event_id=event.id,
            action_type=MaydayActionType.SHIFT,
            customer_email=event.customer_email,
            customer_name=event.customer_name,
            reason=texts.email_text,
            shift_minutes=shift_minutes,
            old_start_time=old_start,
            new_start_time=event.start_time,
            expires_at=token_expiry(),
        )
        self.db.add(token)
        await self.db.flush()

        rendered = render_mayday_shift(
            customer_name=event.customer_name,
            old_start=old_start,
            new_start=event.start_time,
            new_end=event.end_time,
            reason=texts.email_text,
            location=event.location or MAYDAY_LOCATION,
            confirm_url=self._url(f"/api/public/mayday/confirm/{token.token}"),
        )
        await self.queue.enqueue_rendered(
            recipient_email=event.customer_email,
            rendered=rendered,
            email_type=EmailType.MAYDAY_NOTIFICATION,
            event_id=event.id,
        )

    # ==================== Absagen ====================

    async def cancel_events(self, request: MaydayCancelRequest, cancelled_by: UUID | None = None) -> MaydayCancelResult:
        texts = MAYDAY_REASONS[request.reason]
        note = f"MAYDAY: {texts.label}"
        if request.reason_note:
            note += f" - {request.reason_note}"
        result = MaydayCancelResult()

        for event_id in request.event_ids:
            try:
                async with self.db.begin_nested():
                    event = await self.calendar.cancel_event(
                        event_id,
                        CancellationReason.CANCELLED_BY_US,
                        note=note,
                        notify=False,
                        cancelled_by=cancelled_by,
                    )
                    result.cancelled += 1

                    rebook_url = None
                    if request.offer_rebooking:
                        rebook = await self._create_rebook_token(event)
                        rebook_url = self._url(f"/rebook/{rebook.token}")
                        result.rebook_links += 1

                    if request.send_notifications and event.customer_email:
                        await self._notify_cancel(event, texts, rebook_url)
                        result.notified += 1
                    if request.send_sms and event.customer_phone:
                        queued = await self.sms.enqueue(
                            event.customer_phone,
                            cancel_sms(event.start_time, texts.sms_text),
                            SMSNotificationType.CANCEL,
                            event_id=event.id,
                        )
                        if queued is not None:
                            result.sms_queued += 1
            except (AppException, SQLAlchemyError) as e:
                logger.error(f"MAYDAY: Absage von {event_id} fehlgeschlagen: {e}")
                result.errors.append(f"{event_id}: {e}")

        result.success = not result.errors
        logger.info(
            f"MAYDAY Absage ({texts.label}): {result.cancelled} abgesagt, "
            f"{result.notified} benachrichtigt, {result.rebook_links} Rebook-Links"
        )
        return result

    async def _create_rebook_token(self, event: CalendarEvent) -> RebookToken:
        token = RebookToken(
            token=generate_action_token(),
            original_event_id=event.id,
            customer_email=event.customer_email,
            customer_name=event.customer_name or None,
            customer_phone=event.customer_phone,
            original_duration=event.duration_minutes or REBOOK_DEFAULT_DURATION,
            original_attendee_count=event.attendee_count or 1,
            original_location=event.location or DEFAULT_LOCATION,
            expires_at=token_expiry(),
        )
        self.db.add(token)
        await self.db.flush()
        return token

    async def _notify_cancel(self, event: CalendarEvent, texts: ReasonTexts, rebook_url: str | None) -> None:
        token = MaydayConfirmationToken(
            token=generate_action_token(),
            event_id=event.id,
            action_type=MaydayActionType.CANCEL,
            customer_email=event.customer_email,
            customer_name=event.customer_name,
            reason=texts.email_text,
            old_start_time=event.start_time,
            expires_at=token_expiry(),
        )
        self.db.add(token)
        await self.db.flush()

        rendered = render_mayday_cancel(
            customer_name=event.customer_name,
            start=event.start_time,
            end=event.end_time,
            reason=texts.email_text,
            location=event.location or MAYDAY_LOCATION,
            rebook_url=rebook_url,
            confirm_url=self._url(f"/api/public/mayday/confirm/{token.token}"),
        )
        await self.queue.enqueue_rendered(
            recipient_email=event.customer_email,
            rendered=rendered,
            email_type=EmailType.MAYDAY_NOTIFICATION,
            event_id=event.id,
        )

    # ==================== Bestätigung durch Kunden ====================

    async def confirm(self, token_value: str) -> MaydayConfirmResult:
        """Kunde bestätigt den Erhalt der MAYDAY-Nachricht."""
        result = await self.db.execute(
            select(MaydayConfirmationToken).where(MaydayConfirmationToken.token == token_value)
        )
        token = result.scalar_one_or_none()
        if token is None:
            return MaydayConfirmResult(status="invalid")
        if token.confirmed:
            return MaydayConfirmResult(status="already", type=token.action_type)
        if is_expired(token.expires_at):
            return MaydayConfirmResult(status="expired", type=token.action_type)

        token.confirmed = True
        token.confirmed_at = utcnow()
        await self.db.flush()
        logger.info(f"MAYDAY-Bestätigung erhalten ({token.action_type.value}) für Termin {token.event_id}")
        return MaydayConfirmResult(status="success", type=token.action_type)

    # ==================== Rebook-Portal ====================

    async def _get_rebook_token(self, token_value: str) -> RebookToken | None:
        result = await self.db.execute(select(RebookToken).where(RebookToken.token == token_value))
        return result.scalar_one_or_none()

    async def validate_rebook_token(self, token_value: str) -> RebookTokenInfo:
        token = await self._get_rebook_token(token_value)
        if token is None:
            return RebookTokenInfo(valid=False, error="invalid")
        if token.used:
            return RebookTokenInfo(valid=False, error="used")
        if is_expired(token.expires_at):
            return RebookTokenInfo(valid=False, error="expired")
        return RebookTokenInfo(
            valid=True,
            customer_name=token.customer_name,
            customer_email=token.customer_email,
            original_duration=token.original_duration,
            original_attendee_count=token.original_attendee_count,
            original_location=token.original_location,
            expires_at=token.expires_at,
        )

    async def available_slots(self, start: datetime, end: datetime, duration: int) -> list[TimeSlot]:
        """Freie Slots innerhalb der Arbeitszeiten eingeteilter FIs."""
        result = await self.db.execute(
            select(CalendarEvent)
            .where(
                CalendarEvent.event_type == EventType.FI_ASSIGNMENT,
                CalendarEvent.status == EventStatus.CONFIRMED,
                CalendarEvent.start_time >= start,
                CalendarEvent.start_time < end,
            )
            .order_by(CalendarEvent.start_time.asc())
        )
        fi_events = list(result.scalars().all())
        now = utcnow()
        slots: list[TimeSlot] = []

        for fi_event in fi_events:
            window_start, window_end = work_window(fi_event)
            day_start, day_end = german_day_bounds(german_date_of(fi_event.start_time))
            busy_result = await self.db.execute(
                select(CalendarEvent.start_time, CalendarEvent.end_time)
                .where(
                    CalendarEvent.event_type.in_((EventType.BOOKING, EventType.BLOCKER)),
                    CalendarEvent.status == EventStatus.CONFIRMED,
                    CalendarEvent.start_time < day_end,
                    CalendarEvent.end_time > day_start,
                )
                .order_by(CalendarEvent.start_time.asc())
            )
            busy = [(row.start_time, row.end_time) for row in busy_result.all()]
            slots.extend(gap_slots(window_start, window_end, busy, duration, now))

        return sorted({(s.start, s.end): s for s in slots}.values(), key=lambda s: s.start)

    async def rebook(self, token_value: str, new_start: datetime) -> CalendarEvent:
        """Neubuchung über den Rebook-Link."""
        token = await self._get_rebook_token(token_value)
        if token is None:
            raise ValidationException("Ungültiger Link.", ErrorCode.INVALID_TOKEN)
        if token.used:
            raise ValidationException("Dieser Link wurde bereits verwendet.", ErrorCode.TOKEN_USED)
        if is_expired(token.expires_at):
            raise ValidationException("Dieser Link ist abgelaufen.", ErrorCode.TOKEN_EXPIRED)

        duration = token.original_duration or REBOOK_DEFAULT_DURATION
        day_start, day_end = german_day_bounds(german_date_of(new_start))
        try:
            slots = await self.available_slots(day_start, day_end, duration)
        except SQLAlchemyError as e:
            logger.error(f"Rebook: Verfügbarkeitsprüfung fehlgeschlagen: {e}")
            raise DatabaseException("Verfügbarkeit konnte nicht geprüft werden.")
        if not any(slot.start == new_start for slot in slots):
            raise ConflictException("Dieser Zeitslot ist leider nicht mehr verfügbar.", ErrorCode.SLOT_TAKEN)

        first_name, last_name = split_customer_name(token.customer_name)
        event = CalendarEvent(
            event_type=EventType.BOOKING,
            title=token.customer_name or "Kunde",
            description="Neu gebucht über MAYDAY Rebook-Portal",
            customer_first_name=first_name,
            customer_last_name=last_name,
            customer_email=token.customer_email,
            customer_phone=token.customer_phone,
            start_time=new_start,
            end_time=new_start + timedelta(minutes=duration),
            duration=duration,
            attendee_count=token.original_attendee_count or 1,
            location=token.original_location or DEFAULT_LOCATION,
            status=EventStatus.CONFIRMED,
            sync_status=SyncStatus.PENDING,
        )
        self.db.add(event)
        await self.db.flush()

        if self.calendar.google.is_configured and not await self.calendar.push_to_google(event):
            raise GoogleCalendarException("Termin konnte nicht erstellt werden.")

        token.used = True
        token.used_at = utcnow()
        token.new_event_id = event.id
        await self.db.flush()

        if event.customer_email:
            rendered = render_booking_confirmation(
                customer_name=event.customer_name or "Kunde",
                start_time=event.start_time,
                end_time=event.end_time,
                duration=duration,
                location=event.location,
                attendee_count=event.attendee_count,
            )
            await self.queue.enqueue_rendered(
                recipient_email=event.customer_email,
                rendered=rendered,
                email_type=EmailType.BOOKING_CONFIRMATION,
                event_id=event.id,
            )

        logger.info(f"Rebook über Token: neuer Termin {event.id} (Original {token.original_event_id})")
        return event
