"""Service-Tests gegen die Test-Datenbank (Queues, Posteingang, Sync, Tokens).

Benötigen PostgreSQL unter TEST_DATABASE_URL, sonst werden sie übersprungen.
"""

from datetime import date, datetime, timedelta, timezone
from email.message import EmailMessage
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sqlalchemy import func, select

from tests.conftest import CalendarEventFactory, ProfileFactory, TicketFactory


def _failing_storage():
    """Storage, dessen Uploads mit einem S3-Fehler abbrechen."""
    from botocore.exceptions import ClientError

    from app.services.storage_service import StorageService

    client = MagicMock()
    client.put_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
        "PutObject",
    )
    return StorageService("ticket-attachments", client=client)


def _incoming(subject: str, sender: str = "kunde@example.com", attachments=None):
    from app.services.email_ingest_service import IncomingEmail

    return IncomingEmail(
        message_id="<test@example.com>",
        from_address=sender,
        from_name="Erika Musterfrau",
        reply_to=None,
        subject=subject,
        text="Hallo, ich habe eine Frage zu meinem Gutschein.",
        attachments=attachments or [],
    )


# ==================== E-MAIL-QUEUE ====================

class TestEmailQueueProcessing:
    """Tests für process_queue (Versuche, Zähler, fehlerhafte Einträge)."""

    async def _add_item(self, db_session, subject: str, minute: int):
        from app.models.queue import EmailQueueItem, EmailType, QueueStatus

        item = EmailQueueItem(
            type=EmailType.CANCELLATION,
            recipient_email="kunde@example.com",
            subject=subject,
            content="<p>Ihr Termin wurde abgesagt.</p>",
            body="Ihr Termin wurde abgesagt.",
            status=QueueStatus.PENDING,
            attempts=0,
            created_at=datetime(2030, 1, 1, 12, minute, tzinfo=timezone.utc),
        )
        db_session.add(item)
        await db_session.flush()
        return item

    @pytest.mark.asyncio
    async def test_bad_subject_does_not_block_batch(self, db_session, monkeypatch):
        """Ein Betreff mit Zeilenumbruch scheitert allein, die übrigen E-Mails gehen raus."""
        from app.config import settings
        from app.models.queue import QueueStatus
        from app.services.email_queue_service import EmailQueueService

        monkeypatch.setattr(settings, "smtp_host", "smtp.test")
        first = await self._add_item(db_session, "Absage Ihres Termins", 0)
        broken = await self._add_item(db_session, "Absage\nBcc: fremd@example.com", 1)
        last = await self._add_item(db_session, "Absage Ihres Termins", 2)

        service = EmailQueueService(db_session)
        with patch("app.services.mailer.aiosmtplib.send", new=AsyncMock()) as send:
            result = await service.process_queue()

        assert result["processed"] == 3
        assert result["succeeded"] == 2
        assert result["failed"] == 1
        assert send.await_count == 2
        assert first.status == QueueStatus.SENT
        assert last.status == QueueStatus.SENT
        assert broken.status == QueueStatus.PENDING
        assert broken.attempts == 1
        assert broken.error_message.startswith("Ungültige Nachricht")

    @pytest.mark.asyncio
    async def test_failed_after_max_attempts(self, db_session, monkeypatch):
        """Nach QUEUE_MAX_ATTEMPTS Fehlversuchen wird die E-Mail als failed markiert."""
        from app.config import limits, settings
        from app.models.queue import QueueStatus
        from app.services.email_queue_service import EmailQueueService

        monkeypatch.setattr(settings, "smtp_host", "smtp.test")
        broken = await self._add_item(db_session, "Absage\r\nX-Injected: 1", 0)
        service = EmailQueueService(db_session)

        with patch("app.services.mailer.aiosmtplib.send", new=AsyncMock()):
            for _ in range(limits.QUEUE_MAX_ATTEMPTS):
                result = await service.process_queue()
                assert result["failed"] == 1
            final = await service.process_queue()

        assert broken.status == QueueStatus.FAILED
        assert broken.attempts == limits.QUEUE_MAX_ATTEMPTS
        assert final["processed"] == 0
        assert final["message"] == "No pending emails"

    @pytest.mark.asyncio
    async def test_retry_then_sent(self, db_session):
        """Ein vorübergehender SMTP-Fehler führt zu einem zweiten Versuch."""
        from app.models.queue import QueueStatus
        from app.services.email_queue_service import EmailQueueService

        item = await self._add_item(db_session, "Absage Ihres Termins", 0)
        mailer = MagicMock()
        mailer.send = AsyncMock(side_effect=[
            {"success": False, "message_id": None, "error": "SMTP-Fehler: 421"},
            {"success": True, "message_id": "<1@flighthour.de>", "error": None},
        ])
        service = EmailQueueService(db_session, mailer=mailer)

        first = await service.process_queue()
        assert first == {
            "success": True,
            "processed": 1,
            "succeeded": 0,
            "failed": 1,
            "errors": [f"Email {item.id}: SMTP-Fehler: 421"],
        }
        assert item.status == QueueStatus.PENDING

        second = await service.process_queue()
        assert second["succeeded"] == 1
        assert item.status == QueueStatus.SENT
        assert item.attempts == 2
        assert item.error_message is None

    @pytest.mark.asyncio
    async def test_enqueue_collapses_linebreaks(self, db_session):
        from app.services.email_queue_service import EmailQueueService

        item = await EmailQueueService(db_session).enqueue(
            recipient_email="kunde@example.com",
            subject="Ihre Anfrage\r\nBcc: fremd@example.com",
            content="Hallo",
        )
        assert item.subject == "Ihre Anfrage Bcc: fremd@example.com"


# ==================== SMS-QUEUE ====================

class TestSMSQueueProcessing:
    """Tests für die SMS-Queue mit Twilio-Attrappe."""

    def _client(self, handler):
        from app.services.sms_service import TwilioClient
        return TwilioClient(
            account_sid="AC123",
            auth_token="geheim",
            from_number="+4920812345",
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_sent_and_retry(self, db_session):
        from urllib.parse import parse_qs

        from app.models.queue import QueueStatus, SMSNotificationType
        from app.services.sms_service import SMSQueueService

        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            if form["To"] == ["+491711234567"]:
                return httpx.Response(201, json={"sid": "SM1"})
            return httpx.Response(400, json={"message": "Number is unreachable"})

        service = SMSQueueService(db_session, client=self._client(handler))
        ok = await service.enqueue("0171 1234567", "Ihr Termin wurde verschoben.", SMSNotificationType.SHIFT)
        bad = await service.enqueue("+491709999999", "Ihr Termin wurde verschoben.", SMSNotificationType.SHIFT)

        result = await service.process_queue()

        assert result == {"success": True, "processed": 2, "sent": 1, "failed": 0}
        assert ok.status == QueueStatus.SENT
        assert ok.twilio_message_id == "SM1"
        assert bad.status == QueueStatus.PENDING
        assert bad.attempts == 1
        assert bad.error_message == "Number is unreachable"

    @pytest.mark.asyncio
    async def test_invalid_number_not_enqueued(self, db_session):
        from app.models.queue import SMSNotificationType
        from app.services.sms_service import SMSQueueService

        service = SMSQueueService(db_session, client=self._client(lambda r: httpx.Response(201)))
        assert await service.enqueue("12", "Test", SMSNotificationType.CANCEL) is None

    @pytest.mark.asyncio
    async def test_not_configured(self, db_session):
        from app.services.sms_service import SMSQueueService, TwilioClient

        service = SMSQueueService(db_session, client=TwilioClient(account_sid="", auth_token="", from_number=""))
        result = await service.process_queue()
        assert result["message"] == "Twilio not configured"
        assert result["sent"] == 0


# ==================== POSTEINGANG ====================

class TestEmailIngest:
    """Tests für EmailIngestService.process_email und fetch_and_process."""

    @pytest.mark.asyncio
    async def test_new_ticket_with_confirmation(self, db_session):
        from app.models.queue import EmailQueueItem, EmailType
        from app.models.ticket import Ticket
        from app.services.attachment_service import AttachmentService
        from app.services.email_ingest_service import EmailIngestService

        service = EmailIngestService(db_session, attachments=AttachmentService(db_session, storage=_failing_storage()))
        outcome = await service.process_email(_incoming("Frage zum Gutschein"))
        assert outcome == "created"

        ticket = (await db_session.execute(select(Ticket))).scalar_one()
        assert ticket.subject == "Frage zum Gutschein"
        assert ticket.created_from_email == "kunde@example.com"

        queued = (await db_session.execute(select(EmailQueueItem))).scalar_one()
        assert queued.type == EmailType.TICKET_CONFIRMATION
        assert queued.recipient_email == "kunde@example.com"
        assert ticket.display_number in queued.subject

    @pytest.mark.asyncio
    async def test_attachment_upload_failure_keeps_ticket(self, db_session):
        """Scheitert der Upload eines Anhangs, wird das Ticket trotzdem angelegt."""
        from app.models.queue import EmailQueueItem
        from app.models.ticket import Ticket, TicketAttachment
        from app.services.attachment_service import AttachmentService
        from app.services.email_ingest_service import EmailIngestService, IncomingAttachment

        email = _incoming(
            "Rechnung anbei",
            attachments=[IncomingAttachment("rechnung.pdf", "application/pdf", b"%PDF-1.4")],
        )
        service = EmailIngestService(db_session, attachments=AttachmentService(db_session, storage=_failing_storage()))

        assert await service.process_email(email) == "created"
        assert (await db_session.execute(select(func.count(Ticket.id)))).scalar_one() == 1
        assert (await db_session.execute(select(func.count(TicketAttachment.id)))).scalar_one() == 0
        assert (await db_session.execute(select(func.count(EmailQueueItem.id)))).scalar_one() == 1

    @pytest.mark.asyncio
    async def test_reply_threading(self, db_session):
        """[TICKET-xxxxxx] im Betreff hängt die E-Mail als Nachricht an und öffnet das Ticket."""
        from app.models.queue import EmailQueueItem
        from app.models.ticket import Ticket, TicketMessage, TicketStatus
        from app.services.email_ingest_service import EmailIngestService

        ticket = TicketFactory.create(status=TicketStatus.RESOLVED)
        db_session.add(ticket)
        await db_session.flush()

        service = EmailIngestService(db_session)
        outcome = await service.process_email(_incoming(f"Re: [{ticket.display_number}] Gutschein einlösen"))

        assert outcome == "replied"
        assert ticket.status == TicketStatus.OPEN
        messages = (await db_session.execute(
            select(TicketMessage).where(TicketMessage.ticket_id == ticket.id)
        )).scalars().all()
        assert len(messages) == 1
        assert messages[0].sender_id is None
        assert "Gutschein" in messages[0].content
        assert (await db_session.execute(select(func.count(Ticket.id)))).scalar_one() == 1
        assert (await db_session.execute(select(func.count(EmailQueueItem.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_unknown_ticket_number_creates_ticket(self, db_session):
        from app.services.email_ingest_service import EmailIngestService

        outcome = await EmailIngestService(db_session).process_email(_incoming("Re: [TICKET-999999] Gutschein"))
        assert outcome == "created"

    @pytest.mark.asyncio
    async def test_blacklisted_sender_skipped(self, db_session):
        from app.models.ticket import EmailBlacklist, Ticket
        from app.services.email_ingest_service import EmailIngestService

        db_session.add(EmailBlacklist(email_address="spam@example.com", reason="Werbung"))
        await db_session.flush()

        outcome = await EmailIngestService(db_session).process_email(
            _incoming("Gewinnspiel", sender="SPAM@Example.com")
        )
        assert outcome == "skipped"
        assert (await db_session.execute(select(func.count(Ticket.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_auto_tags_without_confirmation(self, db_session):
        """Eine Regel mit create_ticket=False taggt das Ticket, unterdrückt aber die Bestätigung."""
        from app.models.queue import EmailQueueItem
        from app.models.ticket import Tag, TagEmailRule, Ticket, ticket_tags
        from app.services.email_ingest_service import EmailIngestService

        tag = Tag(name="Partner", color="#10b981")
        db_session.add(tag)
        await db_session.flush()
        db_session.add(TagEmailRule(tag_id=tag.id, email_address="partner@example.com", create_ticket=False))
        await db_session.flush()

        outcome = await EmailIngestService(db_session).process_email(
            _incoming("Monatsabrechnung", sender="Partner@Example.com")
        )
        assert outcome == "created"

        ticket = (await db_session.execute(select(Ticket))).scalar_one()
        tag_ids = (await db_session.execute(
            select(ticket_tags.c.tag_id).where(ticket_tags.c.ticket_id == ticket.id)
        )).scalars().all()
        assert tag_ids == [tag.id]
        assert (await db_session.execute(select(func.count(EmailQueueItem.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_fetch_and_process(self, db_session, monkeypatch):
        """Cron-Einstieg mit Attrappe statt IMAP: Nachrichten werden gezählt."""
        from app.config import settings
        from app.services.attachment_service import AttachmentService
        from app.services.email_ingest_service import EmailIngestService

        monkeypatch.setattr(settings, "imap_host", "imap.test")
        monkeypatch.setattr(settings, "imap_user", "support@flighthour.de")

        msg = EmailMessage()
        msg["From"] = "Erika Musterfrau <erika@example.com>"
        msg["Subject"] = "Terminanfrage"
        msg.set_content("Haben Sie am Samstag noch frei?")
        msg.add_attachment(b"%PDF", maintype="application", subtype="pdf", filename="gutschein.pdf")

        service = EmailIngestService(
            db_session,
            fetcher=lambda credentials: [msg.as_bytes()],
            attachments=AttachmentService(db_session, storage=_failing_storage()),
        )
        stats = await service.fetch_and_process()

        assert stats["processed"] == 1
        assert stats["created"] == 1
        assert stats["errors"] == []

    @pytest.mark.asyncio
    async def test_fetch_without_credentials(self, db_session, monkeypatch):
        from app.config import settings
        from app.services.email_ingest_service import EmailIngestService

        monkeypatch.setattr(settings, "imap_host", "")
        stats = await EmailIngestService(db_session, fetcher=lambda c: []).fetch_and_process()
        assert stats["errors"] == ["Keine IMAP-Zugangsdaten konfiguriert"]


# ==================== SCHICHT-ABDECKUNG ====================

class TestShiftCoverageAccept:
    """Tests für die Annahme per Link (wer zuerst annimmt, bekommt die Schicht)."""

    async def _coverage(self, db_session, creator, employees, **kwargs):
        from app.models.work_request import (
            ShiftCoverageNotification,
            ShiftCoverageRequest,
            ShiftCoverageStatus,
        )

        request = ShiftCoverageRequest(
            request_date=date(2030, 6, 15),
            is_full_day=True,
            reason="Krankheitsfall",
            status=kwargs.get("status", ShiftCoverageStatus.OPEN),
            created_by=creator.id,
        )
        db_session.add(request)
        await db_session.flush()
        for index, employee in enumerate(employees):
            db_session.add(ShiftCoverageNotification(
                coverage_request_id=request.id,
                employee_id=employee.id,
                accept_token=f"token-{index}-{request.id.hex[:8]}",
            ))
        await db_session.flush()
        return request

    @pytest.mark.asyncio
    async def test_first_accept_wins(self, db_session, manager, employee):
        from app.models.calendar import CalendarEvent, EventType
        from app.models.work_request import ShiftCoverageStatus, WorkRequest, WorkRequestStatus
        from app.services.shift_coverage_service import ShiftCoverageService

        colleague = ProfileFactory.create(first_name="Lena", last_name="Kopilot", employee_number="FI-08")
        db_session.add(colleague)
        await db_session.flush()
        request = await self._coverage(db_session, manager, [employee, colleague])
        first_token = f"token-0-{request.id.hex[:8]}"
        second_token = f"token-1-{request.id.hex[:8]}"

        service = ShiftCoverageService(db_session)
        accepted = await service.accept(first_token)
        assert accepted.success is True

        late = await service.accept(second_token)
        assert late.success is False
        assert late.message == "Diese Schicht wurde bereits von Erik Pilot übernommen."

        info = await service.validate_token(second_token)
        assert info.status == "already_accepted"
        assert info.accepted_by_name == "Erik Pilot"

        assert request.status == ShiftCoverageStatus.ACCEPTED
        assert request.accepted_by == employee.id
        work_request = (await db_session.execute(select(WorkRequest))).scalar_one()
        assert work_request.status == WorkRequestStatus.APPROVED
        assert work_request.employee_id == employee.id
        fi_event = (await db_session.execute(select(CalendarEvent))).scalar_one()
        assert fi_event.event_type == EventType.FI_ASSIGNMENT
        assert fi_event.work_request_id == work_request.id

    @pytest.mark.asyncio
    async def test_cancelled_request(self, db_session, manager, employee):
        from app.models.work_request import ShiftCoverageStatus
        from app.services.shift_coverage_service import ShiftCoverageService

        request = await self._coverage(db_session, manager, [employee], status=ShiftCoverageStatus.CANCELLED)
        token = f"token-0-{request.id.hex[:8]}"
        service = ShiftCoverageService(db_session)

        assert (await service.validate_token(token)).status == "cancelled"
        result = await service.accept(token)
        assert result.success is False
        assert result.message == "Diese Anfrage wurde storniert."

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session):
        from app.services.shift_coverage_service import ShiftCoverageService

        service = ShiftCoverageService(db_session)
        assert (await service.validate_token("gibt-es-nicht")).status == "invalid"
        assert (await service.accept("gibt-es-nicht")).message == "Ungültiger oder abgelaufener Link."


# ==================== GOOGLE CALENDAR SYNC ====================

def _google_event(google_id: str, summary: str, **kwargs) -> dict:
    event = {
        "id": google_id,
        "etag": '"1"',
        "summary": summary,
        "status": "confirmed",
        "start": {"dateTime": "2030-06-15T10:00:00Z"},
        "end": {"dateTime": "2030-06-15T11:00:00Z"},
    }
    event.update(kwargs)
    return event


class TestCalendarSync:
    """Tests für Import (Upsert, Soft-Delete) und Export mit Google-Attrappe."""

    def _google(self, events=None, created=None):
        google = MagicMock()
        google.list_events = AsyncMock(return_value=(events or [], "sync-2"))
        google.create_event = AsyncMock(return_value=created or {"id": "g-neu", "etag": '"7"'})
        return google

    @pytest.mark.asyncio
    async def test_import_upsert_and_soft_cancel(self, db_session, admin):
        from app.models.calendar import CalendarEvent, EventStatus
        from app.services.calendar_sync_service import CalendarSyncService

        existing = CalendarEventFactory.create(google_event_id="g-alt", customer_first_name="Alt")
        gone = CalendarEventFactory.create(google_event_id="g-weg")
        db_session.add_all([existing, gone])
        await db_session.flush()

        google = self._google([
            _google_event("g-neu", "Hans Flieger"),
            _google_event("g-alt", "Petra Pilotin"),
            {"id": "g-weg", "status": "cancelled"},
        ])
        result = await CalendarSyncService(db_session, google=google).import_from_google()

        assert result.success is True
        assert result.imported == 1
        assert result.updated == 2
        assert result.sync_token == "sync-2"
        assert existing.customer_first_name == "Petra"
        assert gone.status == EventStatus.CANCELLED

        new_event = (await db_session.execute(
            select(CalendarEvent).where(CalendarEvent.google_event_id == "g-neu")
        )).scalar_one()
        assert new_event.user_id == admin.id
        assert new_event.customer_last_name == "Flieger"

    @pytest.mark.asyncio
    async def test_import_without_admin(self, db_session):
        from app.models.calendar import CalendarEvent
        from app.services.calendar_sync_service import CalendarSyncService

        google = self._google([_google_event("g-neu", "Hans Flieger")])
        result = await CalendarSyncService(db_session, google=google).import_from_google()

        assert result.imported == 0
        assert "Kein Admin-Benutzer" in result.errors[0]
        assert (await db_session.execute(select(func.count(CalendarEvent.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_import_google_error(self, db_session):
        from app.services.calendar_sync_service import CalendarSyncService
        from app.services.google_calendar_client import GoogleCalendarError

        google = MagicMock()
        google.list_events = AsyncMock(side_effect=GoogleCalendarError("Zeitüberschreitung beim Google-Token-Abruf"))
        result = await CalendarSyncService(db_session, google=google).import_from_google()

        assert result.success is False
        assert result.errors == ["Zeitüberschreitung beim Google-Token-Abruf"]

    @pytest.mark.asyncio
    async def test_export_pending(self, db_session):
        from app.models.calendar import SyncStatus
        from app.services.calendar_sync_service import CalendarSyncService
        from app.services.google_calendar_client import GoogleCalendarError

        pending = CalendarEventFactory.create(sync_status=SyncStatus.PENDING)
        broken = CalendarEventFactory.create(
            sync_status=SyncStatus.PENDING,
            start_time=datetime(2030, 6, 16, 10, 0, tzinfo=timezone.utc),
        )
        pending.created_at = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        broken.created_at = datetime(2030, 1, 1, 12, 1, tzinfo=timezone.utc)
        db_session.add_all([pending, broken])
        await db_session.flush()

        google = self._google()
        google.create_event = AsyncMock(side_effect=[
            {"id": "g-neu", "etag": '"7"'},
            GoogleCalendarError("Quota überschritten", status_code=403),
        ])
        result = await CalendarSyncService(db_session, google=google).export_to_google()

        assert result.exported == 1
        assert pending.google_event_id == "g-neu"
        assert pending.sync_status == SyncStatus.SYNCED
        assert broken.sync_status == SyncStatus.ERROR
        assert broken.sync_error == "Quota überschritten"

    @pytest.mark.asyncio
    async def test_full_sync_writes_log(self, db_session, admin):
        from app.models.calendar import CalendarSyncLog, SyncType
        from app.services.calendar_sync_service import CalendarSyncService

        google = self._google([_google_event("g-neu", "Hans Flieger")])
        await CalendarSyncService(db_session, google=google).full_sync(SyncType.MANUAL)

        log = (await db_session.execute(select(CalendarSyncLog))).scalar_one()
        assert log.status == "success"
        assert log.events_imported == 1
        assert log.sync_token == "sync-2"


# ==================== MAYDAY-TOKENS ====================

class TestMaydayTokens:
    """Tests für Bestätigungs- und Rebook-Links."""

    def _service(self, db_session):
        from app.services.calendar_service import CalendarService
        from app.services.mayday_service import MaydayService

        google = MagicMock()
        google.is_configured = False
        return MaydayService(db_session, calendar_service=CalendarService(db_session, google=google))

    @pytest.mark.asyncio
    async def test_confirm_states(self, db_session):
        from app.models.calendar import MaydayActionType, MaydayConfirmationToken

        now = datetime.now(timezone.utc)
        db_session.add_all([
            MaydayConfirmationToken(token="bestaetigen", action_type=MaydayActionType.SHIFT, expires_at=now + timedelta(days=7)),
            MaydayConfirmationToken(token="abgelaufen", action_type=MaydayActionType.CANCEL, expires_at=now - timedelta(minutes=1)),
        ])
        await db_session.flush()
        service = self._service(db_session)

        first = await service.confirm("bestaetigen")
        assert first.status == "success"
        assert first.type == MaydayActionType.SHIFT
        assert (await service.confirm("bestaetigen")).status == "already"
        assert (await service.confirm("abgelaufen")).status == "expired"
        assert (await service.confirm("unbekannt")).status == "invalid"

    async def _rebook_setup(self, db_session, token_value: str, expires_in: timedelta = timedelta(days=7)):
        from app.models.calendar import EventType, RebookToken

        fi_event = CalendarEventFactory.create(
            event_type=EventType.FI_ASSIGNMENT,
            start_time=datetime(2030, 6, 15, 8, 0, tzinfo=timezone.utc),
            duration=240,
            customer_first_name=None,
            customer_last_name=None,
            customer_email=None,
            title="FI: Erik Pilot (FI-07)",
        )
        booked = CalendarEventFactory.create(start_time=datetime(2030, 6, 15, 8, 0, tzinfo=timezone.utc))
        token = RebookToken(
            token=token_value,
            customer_name="Erika Musterfrau",
            customer_email="erika@example.com",
            original_duration=60,
            original_attendee_count=2,
            expires_at=datetime.now(timezone.utc) + expires_in,
        )
        db_session.add_all([fi_event, booked, token])
        await db_session.flush()
        return token

    @pytest.mark.asyncio
    async def test_rebook_success_and_reuse(self, db_session):
        from app.api.exception_handlers import ValidationException
        from app.models.queue import EmailQueueItem, EmailType

        token = await self._rebook_setup(db_session, "neu-buchen")
        service = self._service(db_session)
        assert (await service.validate_rebook_token("neu-buchen")).valid is True

        new_start = datetime(2030, 6, 15, 9, 0, tzinfo=timezone.utc)
        event = await service.rebook("neu-buchen", new_start)

        assert event.start_time == new_start
        assert event.attendee_count == 2
        assert token.used is True
        assert token.new_event_id == event.id
        queued = (await db_session.execute(select(EmailQueueItem))).scalar_one()
        assert queued.type == EmailType.BOOKING_CONFIRMATION

        info = await service.validate_rebook_token("neu-buchen")
        assert info.valid is False
        assert info.error == "used"
        with pytest.raises(ValidationException, match="bereits verwendet"):
            await service.rebook("neu-buchen", new_start)

    @pytest.mark.asyncio
    async def test_rebook_taken_slot(self, db_session):
        from app.api.exception_handlers import ConflictException

        await self._rebook_setup(db_session, "belegt")
        with pytest.raises(ConflictException, match="nicht mehr verfügbar"):
            await self._service(db_session).rebook("belegt", datetime(2030, 6, 15, 8, 0, tzinfo=timezone.utc))

    @pytest.mark.asyncio
    async def test_rebook_expired(self, db_session):
        from app.api.exception_handlers import ValidationException

        await self._rebook_setup(db_session, "alt", expires_in=timedelta(minutes=-1))
        service = self._service(db_session)
        assert (await service.validate_rebook_token("alt")).error == "expired"
        with pytest.raises(ValidationException, match="abgelaufen"):
            await service.rebook("alt", datetime(2030, 6, 15, 9, 0, tzinfo=timezone.utc))


# ==================== ZEITERFASSUNG ====================

class TestClosedMonth:
    """Tests für die Sperre abgeschlossener Monate."""

    @pytest.mark.asyncio
    async def test_closed_month_rejects_changes(self, db_session, employee, admin):
        from app.api.exception_handlers import ValidationException
        from app.schemas.errors import ErrorCode
        from app.schemas.time_tracking import CloseMonthRequest, TimeEntryInput
        from app.services.time_tracking_service import MONTH_CLOSED_MESSAGE, TimeTrackingService

        service = TimeTrackingService(db_session)
        entry = await service.create_entry(
            employee.id,
            TimeEntryInput(date=date(2030, 5, 10), duration_minutes=240, description="Simulator-Schicht"),
        )
        report = await service.close_month(
            CloseMonthRequest(employee_id=employee.id, year=2030, month=5),
            admin,
        )
        assert report.total_minutes == 240

        edit = TimeEntryInput(date=date(2030, 5, 10), duration_minutes=300)
        with pytest.raises(ValidationException) as exc_info:
            await service.update_entry(entry.id, employee.id, edit)
        assert exc_info.value.message == MONTH_CLOSED_MESSAGE
        assert exc_info.value.error_code == ErrorCode.MONTH_CLOSED

        with pytest.raises(ValidationException, match="abgeschlossen"):
            await service.create_entry(employee.id, TimeEntryInput(date=date(2030, 5, 11), duration_minutes=60))
        with pytest.raises(ValidationException, match="abgeschlossen"):
            await service.delete_entry(entry.id, employee.id)

        # Verschieben in einen abgeschlossenen Monat
        june_entry = await service.create_entry(
            employee.id, TimeEntryInput(date=date(2030, 6, 3), duration_minutes=60)
        )
        with pytest.raises(ValidationException, match="abgeschlossen"):
            await service.update_entry(june_entry.id, employee.id, TimeEntryInput(date=date(2030, 5, 31), duration_minutes=60))

        await service.reopen_month(employee.id, 2030, 5)
        updated = await service.update_entry(entry.id, employee.id, edit)
        assert updated.duration_minutes == 300


# ==================== KONTAKTE ====================

class TestContacts:
    """Tests für die Kontaktliste aus Buchungen."""

    async def _seed(self, db_session):
        db_session.add_all([
            CalendarEventFactory.create(start_time=datetime(2030, 6, 15, 10, 0, tzinfo=timezone.utc)),
            CalendarEventFactory.create(
                start_time=datetime(2030, 7, 1, 10, 0, tzinfo=timezone.utc),
                customer_email="Erika@Example.com",
                customer_phone=None,
            ),
            CalendarEventFactory.create(
                start_time=datetime(2030, 5, 1, 10, 0, tzinfo=timezone.utc),
                customer_first_name="Max",
                customer_last_name="Flieger",
                customer_email="max@example.org",
                customer_phone=None,
            ),
            CalendarEventFactory.create(customer_email=None),
        ])
        await db_session.flush()

    @pytest.mark.asyncio
    async def test_grouped_by_email(self, db_session):
        from app.services.contact_service import ContactService

        await self._seed(db_session)
        contacts = await ContactService(db_session).list_contacts()

        assert [c.email for c in contacts] == ["erika@example.com", "max@example.org"]
        erika = contacts[0]
        assert erika.event_count == 2
        assert erika.last_event == datetime(2030, 7, 1, 10, 0, tzinfo=timezone.utc)
        assert erika.phone == "+491511234567"
        assert erika.full_name == "Erika Musterfrau"

    @pytest.mark.asyncio
    async def test_search(self, db_session):
        from app.services.contact_service import ContactService

        await self._seed(db_session)
        service = ContactService(db_session)
        assert [c.email for c in await service.list_contacts("FLIEGER")] == ["max@example.org"]
        assert [c.email for c in await service.list_contacts("1511")] == ["erika@example.com"]
        assert await service.list_contacts("niemand") == []

    @pytest.mark.asyncio
    async def test_detail_with_tickets(self, db_session):
        from app.services.contact_service import ContactService

        await self._seed(db_session)
        own = TicketFactory.create(created_from_email="erika@example.com")
        reply = TicketFactory.create(subject="Rückfrage", created_from_email="info@flighthour.de")
        reply.reply_to_email = "ERIKA@example.com"
        db_session.add_all([own, reply, TicketFactory.create(created_from_email="max@example.org")])
        await db_session.flush()

        detail = await ContactService(db_session).get_contact("Erika@example.com")

        assert detail.email == "erika@example.com"
        assert len(detail.events) == 2
        assert detail.events[0].start_time > detail.events[1].start_time
        assert {t.id for t in detail.tickets} == {own.id, reply.id}
        assert detail.tickets[0].display_number.startswith("TICKET-")

    @pytest.mark.asyncio
    async def test_unknown_contact(self, db_session):
        from app.api.exception_handlers import NotFoundException
        from app.services.contact_service import ContactService

        with pytest.raises(NotFoundException, match="Kontakt nicht gefunden"):
            await ContactService(db_session).get_contact("unbekannt@example.com")


# ==================== DOKUMENTE ====================

def _document_storage():
    from app.services.storage_service import StorageService

    client = MagicMock()
    client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"%PDF-1.7"))}
    return StorageService("documents", client=client)


def _pdf(title: str = "Dienstplan Juni", assigned_to=None, content: bytes = b"%PDF-1.7", mime_type="application/pdf"):
    from app.services.document_service import DocumentUpload

    return DocumentUpload(
        filename="Dienstplan Juni.pdf",
        content=content,
        mime_type=mime_type,
        title=title,
        assigned_to=assigned_to,
    )


class TestDocuments:
    """Tests für die Dokumentenablage."""

    @pytest.mark.asyncio
    async def test_visibility(self, db_session, admin, employee, manager):
        from app.api.exception_handlers import ForbiddenException
        from app.services.document_service import DocumentService

        service = DocumentService(db_session, storage=_document_storage())
        general = await service.upload(_pdf("Sicherheitsunterweisung"), admin)
        personal = await service.upload(_pdf("Gehaltsabrechnung", assigned_to=employee.id), admin)
        foreign = await service.upload(_pdf("Vertrag", assigned_to=manager.id), admin)

        assert general.category == "Allgemein"
        assert general.storage_path.startswith("general/")
        assert personal.category == "Persönlich"
        assert personal.storage_path.startswith(f"personal/{employee.id}/")
        assert personal.storage_path.endswith(".pdf")

        visible = {d.id for d in await service.list_for_user(employee)}
        assert visible == {general.id, personal.id}
        assert len(await service.list_for_user(admin)) == 3

        document, content = await service.download(personal.id, employee)
        assert document.id == personal.id
        assert content == b"%PDF-1.7"
        with pytest.raises(ForbiddenException, match="Keine Berechtigung für dieses Dokument"):
            await service.download(foreign.id, employee)

    @pytest.mark.asyncio
    async def test_upload_rules(self, db_session, admin, employee):
        from app.api.exception_handlers import ForbiddenException, ValidationException
        from app.schemas.errors import ErrorCode
        from app.services.document_service import DocumentService

        service = DocumentService(db_session, storage=_document_storage())

        with pytest.raises(ForbiddenException, match="Nur Administratoren"):
            await service.upload(_pdf(), employee)
        with pytest.raises(ValidationException, match="Keine Datei ausgewählt"):
            await service.upload(_pdf(content=b""), admin)
        with pytest.raises(ValidationException, match="Dateityp nicht erlaubt"):
            await service.upload(_pdf(mime_type="application/zip"), admin)
        with pytest.raises(ValidationException) as exc_info:
            await service.upload(_pdf(content=b"x" * (10 * 1024 * 1024 + 1)), admin)
        assert exc_info.value.error_code == ErrorCode.FILE_TOO_LARGE
        assert exc_info.value.message == "Datei ist zu groß. Maximum: 10MB"

        service.storage.client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_object_removed_when_insert_fails(self, db_session, admin):
        from sqlalchemy.exc import SQLAlchemyError

        from app.services.document_service import DocumentService

        service = DocumentService(db_session, storage=_document_storage())
        with pytest.raises(SQLAlchemyError):
            await service.upload(_pdf(title="x" * 300), admin)

        key = service.storage.client.put_object.call_args.kwargs["Key"]
        service.storage.client.delete_object.assert_called_once_with(Bucket="documents", Key=key)

    @pytest.mark.asyncio
    async def test_delete_admin_only(self, db_session, admin, employee):
        from app.api.exception_handlers import ForbiddenException, NotFoundException
        from app.models.document import Document
        from app.services.document_service import DocumentService

        service = DocumentService(db_session, storage=_document_storage())
        document = await service.upload(_pdf(), admin)

        with pytest.raises(ForbiddenException, match="Dokumente löschen"):
            await service.delete(document.id, employee)

        await service.delete(document.id, admin)
        assert await db_session.get(Document, document.id) is None
        service.storage.client.delete_object.assert_called_once_with(Bucket="documents", Key=document.storage_path)
        with pytest.raises(NotFoundException, match="Dokument nicht gefunden"):
            await service.delete(document.id, admin)


# ==================== KALENDER-EXPORT ARBEITSTAGE ====================

class TestWorkRequestExport:
    """Tests für den iCalendar-Export genehmigter Anträge."""

    @pytest.mark.asyncio
    async def test_only_approved_own_requests(self, db_session, employee, manager):
        from datetime import time

        from ics import Calendar

        from app.models.work_request import WorkRequestStatus
        from app.services.work_request_service import WorkRequestService
        from tests.conftest import WorkRequestFactory

        full_day = WorkRequestFactory.create(
            employee.id, request_date=date(2030, 6, 15), status=WorkRequestStatus.APPROVED, reason="Messe",
        )
        part_time = WorkRequestFactory.create(
            employee.id,
            request_date=date(2030, 6, 20),
            is_full_day=False,
            start_time=time(13, 0),
            end_time=time(17, 0),
            status=WorkRequestStatus.APPROVED,
        )
        pending = WorkRequestFactory.create(employee.id, request_date=date(2030, 6, 22))
        foreign = WorkRequestFactory.create(
            manager.id, request_date=date(2030, 6, 15), status=WorkRequestStatus.APPROVED,
        )
        db_session.add_all([full_day, part_time, pending, foreign])
        await db_session.flush()

        content = await WorkRequestService(db_session).export_ics(employee)

        assert content.startswith("BEGIN:VCALENDAR")
        assert "Erik Pilot - Arbeitstag" in content
        assert "20300615T060000" in content  # 08:00 Berlin (Sommerzeit)
        assert "20300620T110000" in content
        assert "20300620T150000" in content

        events = {e.uid: e for e in Calendar(content).events}
        assert set(events) == {
            f"work-request-{full_day.id}@flighthour.de",
            f"work-request-{part_time.id}@flighthour.de",
        }
        assert "Grund: Messe" in events[f"work-request-{full_day.id}@flighthour.de"].description
        assert "Teilzeit" in events[f"work-request-{part_time.id}@flighthour.de"].description

    @pytest.mark.asyncio
    async def test_empty_export(self, db_session, employee):
        from app.services.work_request_service import WorkRequestService

        content = await WorkRequestService(db_session).export_ics(employee)
        assert "BEGIN:VCALENDAR" in content
        assert "BEGIN:VEVENT" not in content


# ==================== BENACHRICHTIGUNGS-EINSTELLUNGEN ====================

class TestNotificationPreferences:
    """Tests für abschaltbare Benachrichtigungstypen."""

    async def _notifications(self, db_session, user_id):
        from app.models.notification import Notification

        result = await db_session.execute(select(Notification).where(Notification.user_id == user_id))
        return list(result.scalars().all())

    @pytest.mark.asyncio
    async def test_disabled_type_is_skipped(self, db_session, manager):
        from app.schemas.notification import NotificationPreferences
        from app.services.notification_service import NotificationService

        service = NotificationService(db_session)
        assert service.get_preferences(manager) == NotificationPreferences()

        updated = await service.update_preferences(manager, NotificationPreferences(work_request=False))
        assert updated.work_request is False
        assert updated.new_ticket is True

        skipped = await service.create_notification(manager.id, "work_request", "Neuer Arbeitsantrag", "Text")
        created = await service.create_notification(manager.id, "new_ticket", "Neues Ticket", "Text")
        assert skipped is None
        assert created is not None
        assert [n.type for n in await self._notifications(db_session, manager.id)] == ["new_ticket"]

    @pytest.mark.asyncio
    async def test_work_request_notifies_enabled_managers(self, db_session, employee, manager, admin):
        from app.schemas.notification import NotificationPreferences
        from app.schemas.work_request import WorkRequestInput
        from app.services.notification_service import NotificationService
        from app.services.work_request_service import WorkRequestService

        await NotificationService(db_session).update_preferences(admin, NotificationPreferences(work_request=False))
        request = await WorkRequestService(db_session).create(
            employee, WorkRequestInput(request_date="2099-06-15", reason="Messe")
        )

        manager_notes = await self._notifications(db_session, manager.id)
        assert [(n.type, n.work_request_id) for n in manager_notes] == [("work_request", request.id)]
        assert await self._notifications(db_session, admin.id) == []

    @pytest.mark.asyncio
    async def test_ticket_assignment(self, db_session, employee, manager):
        from app.schemas.ticket import TicketUpdate
        from app.services.ticket_service import TicketService

        ticket = TicketFactory.create()
        db_session.add(ticket)
        await db_session.flush()
        service = TicketService(db_session)

        await service.update_ticket(ticket.id, TicketUpdate(assigned_to=employee.id), actor=manager)
        await service.update_ticket(ticket.id, TicketUpdate(assigned_to=employee.id), actor=manager)
        await service.update_ticket(ticket.id, TicketUpdate(assigned_to=manager.id), actor=manager)

        notes = await self._notifications(db_session, employee.id)
        assert [(n.type, n.ticket_id) for n in notes] == [("ticket_assignment", ticket.id)]
        assert await self._notifications(db_session, manager.id) == []

    @pytest.mark.asyncio
    async def test_ingested_ticket_notifies_managers(self, db_session, manager):
        from app.models.ticket import Ticket
        from app.services.email_ingest_service import EmailIngestService

        await EmailIngestService(db_session).process_email(_incoming("Frage zum Gutschein"))

        ticket = (await db_session.execute(select(Ticket))).scalar_one()
        notes = await self._notifications(db_session, manager.id)
        assert [(n.type, n.ticket_id) for n in notes] == [("new_ticket", ticket.id)]
