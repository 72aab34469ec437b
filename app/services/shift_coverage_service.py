"""Shift Coverage Service - Rundruf an Mitarbeiter für unbesetzte Tage.

Wer zuerst über seinen Link annimmt, bekommt die Schicht. Die Annahme
erzeugt einen genehmigten Work Request samt FI-Einsatz im Kalender.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import NotFoundException, ValidationException
from app.auth import generate_action_token
from app.berlin_time import format_german_date, utcnow
from app.config import limits, settings
from app.models.profile import Profile
from app.models.queue import EmailType, SMSNotificationType
from app.models.work_request import (
    ShiftCoverageNotification,
    ShiftCoverageRequest,
    ShiftCoverageStatus,
    WorkRequest,
    WorkRequestStatus,
)
from app.schemas.errors import ErrorCode
from app.schemas.work_request import (
    CoverageAcceptResult,
    CoverageTokenInfo,
    ShiftCoverageInput,
)
from app.services.email_queue_service import EmailQueueService
from app.services.email_templates import render_shift_coverage
from app.services.sms_service import SMSQueueService, shift_coverage_sms
from app.services.work_request_service import WorkRequestService, time_display

logger = logging.getLogger(__name__)


def validate_coverage_input(data: ShiftCoverageInput) -> None:
    """Pflichtangaben in fester Reihenfolge prüfen."""
    if data.request_date is None:
        raise ValidationException("Datum ist erforderlich", field="request_date")
    if not data.employee_ids:
        raise ValidationException("Mindestens ein Mitarbeiter muss ausgewählt werden", field="employee_ids")
    if not data.send_email and not data.send_sms:
        raise ValidationException("Mindestens eine Benachrichtigungsart muss ausgewählt werden")
    if not data.is_full_day and data.start_time and data.end_time and data.end_time <= data.start_time:
        raise ValidationException("Endzeit muss nach Startzeit liegen", field="end_time")


class ShiftCoverageService:
    def __init__(
        self,
        db: AsyncSession,
        queue: EmailQueueService | None = None,
        sms: SMSQueueService | None = None,
        work_requests: WorkRequestService | None = None,
    ):
        self.db = db
        self._queue = queue
        self._sms = sms
        self.work_requests = work_requests or WorkRequestService(db, queue=queue)

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

    # ==================== Anlegen ====================

    async def create_request(self, data: ShiftCoverageInput, creator: Profile) -> tuple[ShiftCoverageRequest, dict]:
        """Legt den Rundruf an und benachrichtigt die ausgewählten Mitarbeiter.

        Returns:
            (Anfrage, {"notified", "emails_queued", "sms_queued"})
        """
        validate_coverage_input(data)

        result = await self.db.execute(
            select(Profile).where(
                Profile.id.in_(data.employee_ids),
                Profile.is_active.is_(True),
            )
        )
        employees = list(result.scalars().all())
        if not employees:
            raise ValidationException("Keine gültigen Mitarbeiter gefunden")

        request = ShiftCoverageRequest(
            request_date=data.request_date,
            is_full_day=data.is_full_day,
            start_time=None if data.is_full_day else data.start_time,
            end_time=None if data.is_full_day else data.end_time,
            reason=(data.reason or "").strip() or None,
            status=ShiftCoverageStatus.OPEN,
            created_by=creator.id,
        )
        self.db.add(request)
        await self.db.flush()

        counts = {"notified": 0, "emails_queued": 0, "sms_queued": 0}
        display = time_display(request.is_full_day, request.start_time, request.end_time)
        base = settings.app_base_url.rstrip("/")

        for employee in employees:
            notification = ShiftCoverageNotification(
                coverage_request_id=request.id,
                employee_id=employee.id,
                accept_token=generate_action_token(),
            )
            self.db.add(notification)
            await self.db.flush()
            counts["notified"] += 1

            if data.send_email and employee.email:
                rendered = render_shift_coverage(
                    first_name=employee.first_name,
                    request_date=request.request_date,
                    time_display=display,
                    reason=request.reason,
                    accept_url=f"{base}/api/public/shift-coverage/{notification.accept_token}",
                    valid_days=limits.TOKEN_VALID_DAYS,
                )
                await self.queue.enqueue_rendered(
                    recipient_email=employee.email,
                    rendered=rendered,
                    email_type=EmailType.SHIFT_COVERAGE_REQUEST,
                )
                notification.email_sent = True
                notification.email_sent_at = utcnow()
                counts["emails_queued"] += 1

            if data.send_sms and employee.phone:
                queued = await self.sms.enqueue(
                    employee.phone,
                    shift_coverage_sms(request.request_date),
                    SMSNotificationType.SHIFT_COVERAGE,
                )
                if queued is not None:
                    notification.sms_sent = True
                    notification.sms_sent_at = utcnow()
                    counts["sms_queued"] += 1

        await self.db.flush()
        await self.db.refresh(request, attribute_names=["notifications"])
        logger.info(
            f"Schichtübernahme für {request.request_date} angefragt: "
            f"{counts['notified']} Mitarbeiter, {counts['emails_queued']} E-Mails, {counts['sms_queued']} SMS"
        )
        return request, counts

    # ==================== Übersicht ====================

    async def list_requests(self) -> list[ShiftCoverageRequest]:
        """Alle Anfragen, neueste zuerst. Abgelaufene offene werden dabei auf expired gesetzt."""
        result = await self.db.execute(
            select(ShiftCoverageRequest).order_by(ShiftCoverageRequest.created_at.desc())
        )
        requests = list(result.scalars().all())
        now = utcnow()
        expired = 0
        for request in requests:
            if request.status == ShiftCoverageStatus.OPEN and request.expires_at < now:
                request.status = ShiftCoverageStatus.EXPIRED
                expired += 1
        if expired:
            await self.db.flush()
            logger.info(f"{expired} Schichtanfragen abgelaufen")
        return requests

    async def list_open(self) -> list[ShiftCoverageRequest]:
        return [r for r in await self.list_requests() if r.status == ShiftCoverageStatus.OPEN]

    async def open_count(self) -> int:
        result = await self.db.execute(
            select(func.count(ShiftCoverageRequest.id)).where(
                ShiftCoverageRequest.status == ShiftCoverageStatus.OPEN,
                ShiftCoverageRequest.expires_at > utcnow(),
            )
        )
        return result.scalar() or 0

    async def cancel_request(self, request_id: UUID) -> ShiftCoverageRequest:
        request = await self.db.get(ShiftCoverageRequest, request_id)
        if request is None:
            raise NotFoundException("Anfrage nicht gefunden")
        if request.status != ShiftCoverageStatus.OPEN:
            raise ValidationException("Nur offene Anfragen können storniert werden", ErrorCode.INVALID_STATE)
        request.status = ShiftCoverageStatus.CANCELLED
        await self.db.flush()
        return request

    # ==================== Annahme-Link (öffentlich) ====================

    async def _load_token(self, token: str) -> ShiftCoverageNotification | None:
        result = await self.db.execute(
            select(ShiftCoverageNotification).where(ShiftCoverageNotification.accept_token == token)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _token_status(notification: ShiftCoverageNotification, request: ShiftCoverageRequest) -> str:
        if notification.token_used or request.status == ShiftCoverageStatus.ACCEPTED:
            return "already_accepted"
        if request.status == ShiftCoverageStatus.CANCELLED:
            return "cancelled"
        if request.status == ShiftCoverageStatus.EXPIRED or request.expires_at < utcnow():
            return "expired"
        return "valid"

    async def validate_token(self, token: str) -> CoverageTokenInfo:
        notification = await self._load_token(token)
        if notification is None:
            return CoverageTokenInfo(status="invalid")

        request = await self.db.get(ShiftCoverageRequest, notification.coverage_request_id)
        if request is None:
            return CoverageTokenInfo(status="invalid")

        status = self._token_status(notification, request)
        info = CoverageTokenInfo(
            status=status,
            request_date=request.request_date,
            time_display=time_display(request.is_full_day, request.start_time, request.end_time),
            reason=request.reason,
            employee_name=notification.employee.full_name if notification.employee else None,
        )
        if status == "already_accepted" and request.acceptor is not None:
            info.accepted_by_name = request.acceptor.full_name
        return info

    async def accept(self, token: str) -> CoverageAcceptResult:
        """Schicht übernehmen. Der Status wird unter Zeilensperre erneut geprüft."""
        notification = await self._load_token(token)
        if notification is None:
            return CoverageAcceptResult(success=False, message="Ungültiger oder abgelaufener Link.")

        result = await self.db.execute(
            select(ShiftCoverageRequest)
            .where(ShiftCoverageRequest.id == notification.coverage_request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            return CoverageAcceptResult(success=False, message="Anfrage nicht gefunden.")

        status = self._token_status(notification, request)
        if status == "already_accepted":
            name = request.acceptor.full_name if request.acceptor else "einem Kollegen"
            return CoverageAcceptResult(success=False, message=f"Diese Schicht wurde bereits von {name} übernommen.")
        if status == "expired":
            return CoverageAcceptResult(success=False, message="Diese Anfrage ist abgelaufen.")
        if status == "cancelled":
            return CoverageAcceptResult(success=False, message="Diese Anfrage wurde storniert.")

        employee = await self.db.get(Profile, notification.employee_id)
        if employee is None:
            return CoverageAcceptResult(success=False, message="Mitarbeiter nicht gefunden.")

        now = utcnow()
        notification.token_used = True
        notification.token_used_at = now
        request.status = ShiftCoverageStatus.ACCEPTED
        request.accepted_by = employee.id
        request.accepted_at = now

        reason = f"Schichtübernahme: {request.reason or 'Auf Anfrage'}"
        work_request = WorkRequest(
            employee_id=employee.id,
            request_date=request.request_date,
            is_full_day=request.is_full_day,
            start_time=request.start_time,
            end_time=request.end_time,
            reason=reason,
            status=WorkRequestStatus.APPROVED,
            approved_by=request.created_by,
            approved_at=now,
        )
        self.db.add(work_request)
        await self.db.flush()
        request.work_request_id = work_request.id

        await self.work_requests.create_fi_event(
            work_request,
            employee,
            request.created_by,
            source="Schichtübernahme",
        )

        await self.db.execute(
            update(ShiftCoverageNotification)
            .where(
                ShiftCoverageNotification.coverage_request_id == request.id,
                ShiftCoverageNotification.id != notification.id,
            )
            .values(token_used=True, token_used_at=now)
        )
        await self.db.flush()

        logger.info(f"Schicht {request.request_date} übernommen von {employee.email}")
        return CoverageAcceptResult(
            success=True,
            message=f"Du bist jetzt für den {format_german_date(request.request_date, with_weekday=True)} eingetragen!",
        )
