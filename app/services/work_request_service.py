"""Work Request Service - Anträge von Mitarbeitern auf einen Arbeitstag.

Genehmigte Anträge erzeugen einen FI-Einsatz im Kalender (in Google immer
08:00-09:00, die echten Zeiten stehen in actual_work_start/end_time).
Manager bekommen pro Antrag eine E-Mail mit Genehmigen/Ablehnen-Links.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, time
from uuid import UUID

from ics import Calendar, Event
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.auth import generate_action_token, is_expired, token_expiry
from app.berlin_time import berlin_today, german_time_to_utc, utcnow
from app.config import limits, settings
from app.models.calendar import CalendarEvent, EventStatus, EventType, SyncStatus
from app.models.profile import Profile, UserRole
from app.models.queue import EmailType
from app.models.work_request import (
    WorkRequest,
    WorkRequestAction,
    WorkRequestActionToken,
    WorkRequestStatus,
)
from app.schemas.errors import ErrorCode
from app.schemas.work_request import WorkRequestFilters, WorkRequestInput, WorkRequestStats
from app.services.email_queue_service import EmailQueueService
from app.services.email_templates import render_work_request
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

FI_LOCATION = "FLIGHTHOUR"

_DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_FORMAT = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class ValidatedRequest:
    request_date: date
    is_full_day: bool
    start_time: time | None
    end_time: time | None
    reason: str | None


def validate_request_input(data: WorkRequestInput, today: date | None = None) -> ValidatedRequest:
    """Prüft Datum und Zeiten eines Antrags.

    Raises:
        ValidationException: mit deutscher Meldung für die erste verletzte Regel
    """
    today = today or berlin_today()
    if not _DATE_FORMAT.match(data.request_date or ""):
        raise ValidationException("Ungültiges Datumsformat (erwartet: YYYY-MM-DD)", field="request_date")
    try:
        request_date = date.fromisoformat(data.request_date)
    except ValueError:
        raise ValidationException("Ungültiges Datumsformat (erwartet: YYYY-MM-DD)", field="request_date")
    if request_date < today:
        raise ValidationException("Das Datum darf nicht in der Vergangenheit liegen", field="request_date")

    reason = (data.reason or "").strip() or None
    if data.is_full_day:
        return ValidatedRequest(request_date, True, None, None, reason)

    if not data.start_time or not data.end_time:
        raise ValidationException("Start- und Endzeit sind für Teilzeit-Requests erforderlich")
    start_text = data.start_time.strip()[:5]
    end_text = data.end_time.strip()[:5]
    if not _TIME_FORMAT.match(start_text):
        raise ValidationException("Ungültiges Startzeit-Format (erwartet: HH:MM)", field="start_time")
    if not _TIME_FORMAT.match(end_text):
        raise ValidationException("Ungültiges Endzeit-Format (erwartet: HH:MM)", field="end_time")
    start = time.fromisoformat(start_text)
    end = time.fromisoformat(end_text)
    if end <= start:
        raise ValidationException("Endzeit muss nach Startzeit liegen", field="end_time")
    return ValidatedRequest(request_date, False, start, end, reason)


def time_display(is_full_day: bool, start: time | None, end: time | None) -> str:
    if is_full_day or not start or not end:
        return "Ganztägig"
    return f"{start:%H:%M} - {end:%H:%M} Uhr"


def fi_event_title(employee: Profile, is_full_day: bool, start: time | None, end: time | None) -> str:
    """'FI: Max Muster (12)' plus ' HH:MM-HH:MM' bei Teilzeit."""
    title = f"FI: {employee.full_name}"
    if employee.employee_number:
        title += f" ({employee.employee_number})"
    if not is_full_day and start and end:
        title += f" {start:%H:%M}-{end:%H:%M}"
    return title


def build_work_requests_ics(requests: list[WorkRequest], employee_name: str) -> str:
    """iCalendar mit den genehmigten Arbeitstagen eines Mitarbeiters.

    Ganztägige Anträge erscheinen wie im Google-Kalender als 08:00-09:00,
    Teilzeit-Anträge mit ihren echten Zeiten (Europe/Berlin, als UTC kodiert).
    """
    calendar = Calendar()
    for request in requests:
        if request.is_full_day or not request.start_time or not request.end_time:
            start, end = time(8, 0), time(9, 0)
        else:
            start, end = request.start_time, request.end_time

        lines = [
            f"Typ: {'Ganztägig' if request.is_full_day else 'Teilzeit'}",
            f"Zeit: {time_display(request.is_full_day, request.start_time, request.end_time)}",
        ]
        if request.reason:
            lines.append(f"Grund: {request.reason}")
        lines.append("Status: Genehmigt")
        lines.append(f"Request ID: {request.id}")

        event = Event()
        event.name = f"{employee_name} - Arbeitstag"
        event.begin = german_time_to_utc(request.request_date, start)
        event.end = german_time_to_utc(request.request_date, end)
        event.uid = f"work-request-{request.id}@flighthour.de"
        event.description = "\n".join(lines)
        calendar.events.add(event)
    return calendar.serialize()


class WorkRequestService:
    def __init__(
        self,
        db: AsyncSession,
        queue: EmailQueueService | None = None,
        notifications: NotificationService | None = None,
    ):
        self.db = db
        self._queue = queue
        self.notifications = notifications or NotificationService(db)

    @property
    def queue(self) -> EmailQueueService:
        if self._queue is None:
            self._queue = EmailQueueService(self.db)
        return self._queue

    # ==================== Laden ====================

    async def get_request(self, request_id: UUID) -> WorkRequest:
        request = await self.db.get(WorkRequest, request_id)
        if request is None:
            raise NotFoundException("Request nicht gefunden", ErrorCode.WORK_REQUEST_NOT_FOUND)
        return request

    async def my_requests(self, user_id: UUID) -> list[WorkRequest]:
        result = await self.db.execute(
            select(WorkRequest)
            .where(WorkRequest.employee_id == user_id)
            .order_by(WorkRequest.request_date.desc())
        )
        return list(result.scalars().all())

    async def export_ics(self, user: Profile) -> str:
        """Genehmigte Anträge des Benutzers als .ics-Text."""
        result = await self.db.execute(
            select(WorkRequest)
            .where(
                WorkRequest.employee_id == user.id,
                WorkRequest.status == WorkRequestStatus.APPROVED,
            )
            .order_by(WorkRequest.request_date)
        )
        employee_name = " ".join(filter(None, [user.first_name, user.last_name])) or "Mitarbeiter"
        return build_work_requests_ics(list(result.scalars().all()), employee_name)

    async def list_all(self, filters: WorkRequestFilters | None = None) -> list[WorkRequest]:
        query = select(WorkRequest).order_by(WorkRequest.request_date.desc())
        if filters:
            if filters.status:
                query = query.where(WorkRequest.status == filters.status)
            if filters.employee_id:
                query = query.where(WorkRequest.employee_id == filters.employee_id)
            if filters.date_from:
                query = query.where(WorkRequest.request_date >= filters.date_from)
            if filters.date_to:
                query = query.where(WorkRequest.request_date <= filters.date_to)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def stats(self) -> WorkRequestStats:
        today = berlin_today()
        month_start = today.replace(day=1)
        year_start = today.replace(month=1, day=1)
        today_start = german_time_to_utc(today, "00:00")

        async def count(*conditions) -> int:
            result = await self.db.execute(select(func.count(WorkRequest.id)).where(*conditions))
            return result.scalar() or 0

        return WorkRequestStats(
            pending=await count(WorkRequest.status == WorkRequestStatus.PENDING),
            approved_today=await count(
                WorkRequest.status == WorkRequestStatus.APPROVED,
                WorkRequest.approved_at >= today_start,
            ),
            total_month=await count(WorkRequest.request_date >= month_start),
            total_year=await count(WorkRequest.request_date >= year_start),
        )

    async def pending_count(self) -> int:
        result = await self.db.execute(
            select(func.count(WorkRequest.id)).where(WorkRequest.status == WorkRequestStatus.PENDING)
        )
        return result.scalar() or 0

    async def conflicts(self, request_date: date, exclude_id: UUID | None = None) -> list[WorkRequest]:
        """Andere genehmigte Anträge am selben Tag."""
        query = select(WorkRequest).where(
            WorkRequest.request_date == request_date,
            WorkRequest.status == WorkRequestStatus.APPROVED,
        )
        if exclude_id:
            query = query.where(WorkRequest.id != exclude_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ==================== Mitarbeiter ====================

    async def _ensure_no_duplicate(self, employee_id: UUID, request_date: date, message: str) -> None:
        result = await self.db.execute(
            select(WorkRequest.id).where(
                WorkRequest.employee_id == employee_id,
                WorkRequest.request_date == request_date,
                WorkRequest.status != WorkRequestStatus.WITHDRAWN,
            )
        )
        if result.first() is not None:
            raise ConflictException(message, ErrorCode.DUPLICATE_ENTRY)

    async def create(self, employee: Profile, data: WorkRequestInput) -> WorkRequest:
        validated = validate_request_input(data)
        await self._ensure_no_duplicate(
            employee.id,
            validated.request_date,
            "Sie haben bereits einen Request für dieses Datum",
        )

        request = WorkRequest(
            employee_id=employee.id,
            request_date=validated.request_date,
            is_full_day=validated.is_full_day,
            start_time=validated.start_time,
            end_time=validated.end_time,
            reason=validated.reason,
            status=WorkRequestStatus.PENDING,
        )
        self.db.add(request)
        await self.db.flush()
        logger.info(f"Work Request angelegt: {employee.email} für {validated.request_date}")

        await self._notify_managers(request, employee)
        await self.notifications.notify_managers(
            type="work_request",
            title="Neuer Arbeitsantrag",
            message=f"{employee.full_name} beantragt den {request.request_date:%d.%m.%Y}.",
            link="/requests",
            work_request_id=request.id,
        )
        return request

    async def _notify_managers(self, request: WorkRequest, employee: Profile) -> int:
        """E-Mail mit Genehmigen/Ablehnen-Links an alle aktiven Manager und Admins."""
        result = await self.db.execute(
            select(Profile).where(
                Profile.role.in_((UserRole.MANAGER, UserRole.ADMIN)),
                Profile.is_active.is_(True),
            )
        )
        recipients = list(result.scalars().all())
        if not recipients:
            logger.info("Keine Manager für Work-Request-Benachrichtigung gefunden")
            return 0

        approve = WorkRequestActionToken(
            token=generate_action_token(),
            work_request_id=request.id,
            action=WorkRequestAction.APPROVE,
            expires_at=token_expiry(),
        )
        reject = WorkRequestActionToken(
            token=generate_action_token(),
            work_request_id=request.id,
            action=WorkRequestAction.REJECT,
            expires_at=token_expiry(),
        )
        self.db.add_all([approve, reject])
        await self.db.flush()

        base = settings.app_base_url.rstrip("/")
        for recipient in recipients:
            rendered = render_work_request(
                recipient_name=recipient.full_name,
                employee_name=employee.full_name,
                request_date=request.request_date,
                time_display=time_display(request.is_full_day, request.start_time, request.end_time),
                reason=request.reason,
                approve_url=f"{base}/api/work-requests/action/{approve.token}",
                reject_url=f"{base}/api/work-requests/action/{reject.token}",
                valid_days=limits.TOKEN_VALID_DAYS,
            )
            await self.queue.enqueue_rendered(
                recipient_email=recipient.email,
                rendered=rendered,
                email_type=EmailType.WORK_REQUEST_NOTIFICATION,
            )
        logger.info(f"{len(recipients)} Work-Request-Benachrichtigungen eingereiht")
        return len(recipients)

    async def _get_own_pending(self, request_id: UUID, user_id: UUID, action: str) -> WorkRequest:
        request = await self.db.get(WorkRequest, request_id)
        if (
            request is None
            or request.employee_id != user_id
            or request.status != WorkRequestStatus.PENDING
        ):
            raise NotFoundException(
                f"Request nicht gefunden oder kann nicht {action} werden",
                ErrorCode.WORK_REQUEST_NOT_FOUND,
            )
        return request

    async def update(self, request_id: UUID, user_id: UUID, data: WorkRequestInput) -> WorkRequest:
        request = await self._get_own_pending(request_id, user_id, "bearbeitet")
        validated = validate_request_input(data)
        request.request_date = validated.request_date
        request.is_full_day = validated.is_full_day
        request.start_time = validated.start_time
        request.end_time = validated.end_time
        request.reason = validated.reason
        await self.db.flush()
        return request

    async def withdraw(self, request_id: UUID, user_id: UUID) -> WorkRequest:
        request = await self._get_own_pending(request_id, user_id, "zurückgezogen")
        request.status = WorkRequestStatus.WITHDRAWN
        await self.db.flush()
        return request

    # ==================== Manager ====================

    async def create_fi_event(
        self,
        request: WorkRequest,
        employee: Profile,
        created_by: UUID | None,
        source: str = "genehmigter Request",
    ) -> CalendarEvent:
        """FI-Einsatz für einen genehmigten Antrag (Google-Export übernimmt der Sync-Cron)."""
        if request.is_full_day:
            remarks = f"Ganztägiger Arbeitstag ({source})"
        else:
            remarks = f"Arbeitstag von {request.start_time:%H:%M} bis {request.end_time:%H:%M} ({source})"
        event = CalendarEvent(
            event_type=EventType.FI_ASSIGNMENT,
            title=fi_event_title(employee, request.is_full_day, request.start_time, request.end_time),
            description=request.reason or "Genehmigter Arbeitstag",
            assigned_instructor_id=employee.id,
            assigned_instructor_number=employee.employee_number,
            assigned_instructor_name=employee.full_name,
            is_all_day=request.is_full_day,
            actual_work_start_time=None if request.is_full_day else request.start_time,
            actual_work_end_time=None if request.is_full_day else request.end_time,
            start_time=german_time_to_utc(request.request_date, "08:00"),
            end_time=german_time_to_utc(request.request_date, "09:00"),
            duration=60,
            attendee_count=1,
            status=EventStatus.CONFIRMED,
            location=FI_LOCATION,
            remarks=remarks,
            user_id=employee.id,
            created_by=created_by,
            work_request_id=request.id,
            sync_status=SyncStatus.PENDING,
        )
        self.db.add(event)
        await self.db.flush()
        request.calendar_event_id = event.id
        return event

    async def approve(self, request_id: UUID, approver: Profile) -> WorkRequest:
        request = await self.get_request(request_id)
        if request.status != WorkRequestStatus.PENDING:
            raise ValidationException(
                "Nur ausstehende Requests können genehmigt werden",
                ErrorCode.INVALID_STATE,
            )
        employee = await self.db.get(Profile, request.employee_id)
        if employee is None:
            raise NotFoundException("Mitarbeiter nicht gefunden")

        request.status = WorkRequestStatus.APPROVED
        request.approved_by = approver.id
        request.approved_at = utcnow()
        await self.create_fi_event(request, employee, approver.id)

        await self.notifications.create_notification(
            user_id=employee.id,
            type="work_request",
            title="Arbeitsantrag genehmigt",
            message=f"Ihr Arbeitsantrag vom {request.request_date:%d.%m.%Y} wurde genehmigt.",
            link="/requests",
            work_request_id=request.id,
        )
        await self.db.flush()
        logger.info(f"Work Request {request.id} genehmigt von {approver.email}")
        return request

    async def reject(self, request_id: UUID, approver: Profile, reason: str | None = None) -> WorkRequest:
        request = await self.get_request(request_id)
        if request.status != WorkRequestStatus.PENDING:
            raise ValidationException(
                "Nur ausstehende Requests können abgelehnt werden",
                ErrorCode.INVALID_STATE,
            )
        request.status = WorkRequestStatus.REJECTED
        request.approved_by = approver.id
        request.approved_at = utcnow()
        request.rejection_reason = reason or None

        await self.notifications.create_notification(
            user_id=request.employee_id,
            type="work_request",
            title="Arbeitsantrag abgelehnt",
            message=f"Ihr Arbeitsantrag vom {request.request_date:%d.%m.%Y} wurde abgelehnt.",
            link="/requests",
            work_request_id=request.id,
        )
        await self.db.flush()
        logger.info(f"Work Request {request.id} abgelehnt von {approver.email}")
        return request

    async def create_direct(self, employee_id: UUID, data: WorkRequestInput, creator: Profile) -> WorkRequest:
        """Manager legt einen bereits genehmigten Arbeitstag an."""
        validated = validate_request_input(data)
        employee = await self.db.get(Profile, employee_id)
        if employee is None:
            raise NotFoundException("Mitarbeiter nicht gefunden")
        await self._ensure_no_duplicate(
            employee_id,
            validated.request_date,
            "Es existiert bereits ein Request für diesen Mitarbeiter an diesem Datum",
        )

        request = WorkRequest(
            employee_id=employee_id,
            request_date=validated.request_date,
            is_full_day=validated.is_full_day,
            start_time=validated.start_time,
            end_time=validated.end_time,
            reason=validated.reason,
            status=WorkRequestStatus.APPROVED,
            approved_by=creator.id,
            approved_at=utcnow(),
        )
        self.db.add(request)
        await self.db.flush()
        await self.create_fi_event(request, employee, creator.id)
        await self.db.flush()
        return request

    async def delete(self, request_id: UUID, user: Profile) -> None:
        if not user.is_admin:
            raise ForbiddenException("Nur Admins können Requests löschen")
        request = await self.get_request(request_id)
        if request.calendar_event_id:
            event = await self.db.get(CalendarEvent, request.calendar_event_id)
            if event is not None:
                await self.db.delete(event)
        await self.db.delete(request)
        await self.db.flush()
        logger.info(f"Work Request {request_id} gelöscht")

    # ==================== Links aus der Manager-E-Mail ====================

    async def action_by_token(self, token_value: str, manager: Profile) -> tuple[WorkRequestAction, WorkRequest]:
        if not manager.is_manager_or_admin:
            raise ForbiddenException("Keine Berechtigung zum Bearbeiten von Requests")

        result = await self.db.execute(
            select(WorkRequestActionToken)
            .where(WorkRequestActionToken.token == token_value)
            .with_for_update()
        )
        token = result.scalar_one_or_none()
        if token is None:
            raise ValidationException("Ungültiger Link", ErrorCode.INVALID_TOKEN)
        if token.used:
            raise ValidationException("Dieser Link wurde bereits verwendet", ErrorCode.TOKEN_USED)
        if is_expired(token.expires_at):
            raise ValidationException("Dieser Link ist abgelaufen", ErrorCode.TOKEN_EXPIRED)

        if token.action == WorkRequestAction.APPROVE:
            request = await self.approve(token.work_request_id, manager)
        else:
            request = await self.reject(token.work_request_id, manager)

        token.used = True
        token.used_at = utcnow()
        await self.db.flush()
        return token.action, request
