"""Tests für externe Anbindungen (Google Calendar, Twilio, SMTP, IMAP, Storage).

HTTP-Aufrufe laufen gegen httpx.MockTransport, SMTP und S3 werden gemockt.
"""

import json
from datetime import date, datetime, time, timezone
from email.message import EmailMessage
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from tests.conftest import CalendarEventFactory


# ==================== GOOGLE: BESCHREIBUNG ====================

class TestEventDescription:
    """Tests für den Beschreibungstext der Google-Events."""

    def test_booking_description(self):
        from app.services.google_calendar_client import format_event_description

        event = CalendarEventFactory.create()
        event.attendee_count = 2
        event.remarks = "Geburtstag"
        text = format_event_description(event)

        assert text.startswith("EVENT_TYPE:BOOKING")
        assert "Telefon: +491511234567" in text
        assert "E-Mail: erika@example.com" in text
        assert "Anzahl Teilnehmer: 2" in text
        assert text.endswith("Bemerkungen:\nGeburtstag")

    def test_fi_work_times(self):
        from app.models.calendar import EventType
        from app.services.google_calendar_client import format_event_description

        event = CalendarEventFactory.create(
            event_type=EventType.FI_ASSIGNMENT,
            actual_work_start_time=time(9, 30),
            actual_work_end_time=time(17, 0),
            customer_phone=None,
            customer_email=None,
        )
        assert "Tatsächliche Arbeitszeiten: 09:30 - 17:00" in format_event_description(event)

    def test_own_format_roundtrip(self):
        """Eigenes Format wird vollständig zurückgelesen."""
        from app.models.calendar import EventType
        from app.services.google_calendar_client import format_event_description, parse_event_description

        event = CalendarEventFactory.create()
        event.attendee_count = 3
        event.remarks = "Bitte pünktlich"
        parsed = parse_event_description(format_event_description(event))

        assert parsed["event_type"] == EventType.BOOKING
        assert parsed["customer_phone"] == "+491511234567"
        assert parsed["customer_email"] == "erika@example.com"
        assert parsed["attendee_count"] == 3
        assert parsed["remarks"] == "Bitte pünktlich"

    def test_external_customer_line(self):
        """Fremdformat: 'Customer: Vorname(n) Nachname' und freie Telefonnummer."""
        from app.services.google_calendar_client import parse_event_description

        parsed = parse_event_description("Customer: Hans Peter Meier\nRückruf 0170 1234567")
        assert parsed["customer_first_name"] == "Hans Peter"
        assert parsed["customer_last_name"] == "Meier"
        assert parsed["customer_phone"] == "01701234567"
        assert "event_type" not in parsed

    def test_name_from_first_line(self):
        from app.services.google_calendar_client import parse_event_description

        parsed = parse_event_description("Erika Musterfrau\nkontakt: erika@example.com")
        assert parsed["customer_first_name"] == "Erika"
        assert parsed["customer_last_name"] == "Musterfrau"
        assert parsed["customer_email"] == "erika@example.com"

    def test_empty(self):
        from app.services.google_calendar_client import parse_event_description
        assert parse_event_description(None) == {}


class TestEventBody:
    """Tests für den Google-Event-Body."""

    def test_fi_shown_at_eight(self):
        """FI-Einsätze erscheinen immer 08:00-09:00 Berliner Zeit."""
        from app.models.calendar import EventType
        from app.services.google_calendar_client import FI_COLOR_ID, build_event_body

        event = CalendarEventFactory.create(
            event_type=EventType.FI_ASSIGNMENT,
            start_time=datetime(2030, 6, 15, 10, 0, tzinfo=timezone.utc),
            duration=8 * 60,
        )
        body = build_event_body(event)

        assert body["start"]["dateTime"] == "2030-06-15T06:00:00+00:00"
        assert body["end"]["dateTime"] == "2030-06-15T07:00:00+00:00"
        assert body["start"]["timeZone"] == "Europe/Berlin"
        assert body["colorId"] == FI_COLOR_ID

    def test_booking_keeps_times(self):
        from app.services.google_calendar_client import build_event_body

        event = CalendarEventFactory.create()
        body = build_event_body(event)

        assert body["summary"] == event.title
        assert body["start"]["dateTime"] == event.start_time.isoformat()
        assert body["status"] == "confirmed"
        assert "colorId" not in body

    def test_fi_summary_without_title(self):
        from app.models.calendar import EventType
        from app.services.google_calendar_client import build_event_summary

        event = CalendarEventFactory.create(
            event_type=EventType.FI_ASSIGNMENT,
            actual_work_start_time=time(10, 0),
            actual_work_end_time=time(18, 0),
        )
        event.title = None
        event.assigned_instructor_name = "Max Pilot"
        event.assigned_instructor_number = "12"
        assert build_event_summary(event) == "FI: Max Pilot (12) 10:00-18:00"


# ==================== GOOGLE: CLIENT ====================

def _google_client(handler):
    from app.services.google_calendar_client import GoogleCalendarClient

    client = GoogleCalendarClient(
        client_email="sync@flighthour.iam.gserviceaccount.com",
        private_key="unbenutzt",
        calendar_id="kalender@group.calendar.google.com",
        transport=httpx.MockTransport(handler),
    )
    # Token-Cache vorbelegen, damit kein JWT signiert werden muss
    client._access_token = "test-token"
    client._token_expires_at = float("inf")
    return client


class TestGoogleCalendarClient:
    """Tests für den Google Calendar Client."""

    @pytest.mark.asyncio
    async def test_list_events_follows_pages(self):
        """Alle Seiten werden geladen, der Sync-Token kommt von der letzten."""
        seen_params = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer test-token"
            seen_params.append(dict(request.url.params))
            if "pageToken" not in request.url.params:
                return httpx.Response(200, json={"items": [{"id": "a"}], "nextPageToken": "p2"})
            return httpx.Response(200, json={"items": [{"id": "b"}], "nextSyncToken": "sync-1"})

        client = _google_client(handler)
        events, sync_token = await client.list_events(sync_token="alt")
        await client.close()

        assert [e["id"] for e in events] == ["a", "b"]
        assert sync_token == "sync-1"
        assert seen_params[0]["syncToken"] == "alt"
        assert seen_params[1]["pageToken"] == "p2"
        assert "syncToken" not in seen_params[1]

    @pytest.mark.asyncio
    async def test_list_events_expired_sync_token(self):
        from app.services.google_calendar_client import GoogleCalendarError

        client = _google_client(lambda request: httpx.Response(410, text="gone"))
        with pytest.raises(GoogleCalendarError) as exc:
            await client.list_events(sync_token="abgelaufen")
        assert exc.value.status_code == 410

    @pytest.mark.asyncio
    async def test_create_event(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            body = json.loads(request.content)
            assert body["description"].startswith("EVENT_TYPE:BOOKING")
            return httpx.Response(200, json={"id": "g-1", "etag": '"1"'})

        client = _google_client(handler)
        created = await client.create_event(CalendarEventFactory.create())
        assert created["id"] == "g-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [204, 404, 410])
    async def test_delete_tolerates_missing(self, status_code):
        """Bereits gelöschte Events gelten als Erfolg."""
        client = _google_client(lambda request: httpx.Response(status_code))
        await client.delete_event("g-1")

    @pytest.mark.asyncio
    async def test_delete_error(self):
        from app.services.google_calendar_client import GoogleCalendarError

        client = _google_client(lambda request: httpx.Response(500, text="kaputt"))
        with pytest.raises(GoogleCalendarError) as exc:
            await client.delete_event("g-1")
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_not_configured(self):
        from app.services.google_calendar_client import GoogleCalendarClient, GoogleCalendarError

        client = GoogleCalendarClient(client_email="", private_key="")
        assert client.is_configured is False
        with pytest.raises(GoogleCalendarError, match="nicht konfiguriert"):
            await client.get_access_token()

    def _token_client(self, handler):
        from app.services.google_calendar_client import GoogleCalendarClient

        client = GoogleCalendarClient(
            client_email="sync@flighthour.iam.gserviceaccount.com",
            private_key="unbenutzt",
            calendar_id="kalender@group.calendar.google.com",
            transport=httpx.MockTransport(handler),
        )
        client._signed_assertion = lambda now: "signierte-assertion"
        return client

    @pytest.mark.asyncio
    async def test_access_token_cached(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            form = parse_qs(request.content.decode())
            assert form["assertion"] == ["signierte-assertion"]
            return httpx.Response(200, json={"access_token": "frisch", "expires_in": 3600})

        client = self._token_client(handler)
        assert await client.get_access_token() == "frisch"
        assert await client.get_access_token() == "frisch"
        assert len(calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exception",
        [httpx.ConnectError("down"), httpx.ReadTimeout("langsam")],
    )
    async def test_access_token_network_error(self, exception):
        """Netzwerkfehler beim Token-Abruf werden zu GoogleCalendarError."""
        from app.services.google_calendar_client import GoogleCalendarError

        def handler(request: httpx.Request) -> httpx.Response:
            raise exception

        client = self._token_client(handler)
        with pytest.raises(GoogleCalendarError):
            await client.get_access_token()

    @pytest.mark.asyncio
    async def test_access_token_invalid_json(self):
        from app.services.google_calendar_client import GoogleCalendarError

        client = self._token_client(lambda request: httpx.Response(200, text="<html>Wartung</html>"))
        with pytest.raises(GoogleCalendarError, match="Ungültige Antwort"):
            await client.get_access_token()

    @pytest.mark.asyncio
    async def test_create_event_token_failure(self):
        """Beim Anlegen schlägt ein Token-Fehler als GoogleCalendarError durch."""
        from app.services.google_calendar_client import GoogleCalendarError

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down")

        client = self._token_client(handler)
        with pytest.raises(GoogleCalendarError, match="nicht erreichbar"):
            await client.create_event(CalendarEventFactory.create())


# ==================== GOOGLE: IMPORT ====================

class TestGoogleEventMapping:
    """Tests für die Übersetzung Google-Event → lokale Felder."""

    def test_fi_summary(self):
        from app.models.calendar import EventType
        from app.services.calendar_sync_service import google_event_to_fields

        fields = google_event_to_fields({
            "id": "g-fi",
            "summary": "FI: Max Pilot (12)",
            "start": {"dateTime": "2030-06-15T08:00:00+02:00"},
            "end": {"dateTime": "2030-06-15T09:00:00+02:00"},
        })
        assert fields["event_type"] == EventType.FI_ASSIGNMENT
        assert fields["assigned_instructor_name"] == "Max Pilot"
        assert fields["assigned_instructor_number"] == "12"
        assert fields["duration"] == 60
        assert fields["customer_first_name"] is None

    def test_all_day_blocker(self):
        from app.models.calendar import EventType
        from app.services.calendar_sync_service import google_event_to_fields

        fields = google_event_to_fields({
            "id": "g-block",
            "summary": "Wartung",
            "description": "EVENT_TYPE:BLOCKER",
            "start": {"date": "2030-06-20"},
            "end": {"date": "2030-06-21"},
        })
        assert fields["event_type"] == EventType.BLOCKER
        assert fields["is_all_day"] is True
        assert fields["start_time"] == datetime(2030, 6, 19, 22, 0, tzinfo=timezone.utc)
        assert fields["duration"] == 24 * 60
        assert fields["customer_first_name"] == "Wartung"

    def test_booking_name_from_summary(self):
        from app.models.calendar import EventStatus, EventType
        from app.services.calendar_sync_service import google_event_to_fields

        fields = google_event_to_fields({
            "id": "g-b",
            "summary": "Erika Musterfrau",
            "status": "cancelled",
            "start": {"dateTime": "2030-06-15T10:00:00Z"},
            "end": {"dateTime": "2030-06-15T11:00:00Z"},
        })
        assert fields["event_type"] == EventType.BOOKING
        assert fields["status"] == EventStatus.CANCELLED
        assert fields["customer_first_name"] == "Erika"
        assert fields["customer_last_name"] == "Musterfrau"
        assert fields["attendee_count"] == 1

    def test_skip_without_summary(self):
        from app.services.calendar_sync_service import google_event_to_fields

        assert google_event_to_fields({
            "id": "g-x",
            "start": {"dateTime": "2030-06-15T10:00:00Z"},
            "end": {"dateTime": "2030-06-15T11:00:00Z"},
        }) is None


# ==================== SMS ====================

class TestPhoneNumbers:
    """Tests für die Normalisierung deutscher Telefonnummern."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0171 1234567", "+491711234567"),
            ("0049 171 1234567", "+491711234567"),
            ("+49 (171) 123-4567", "+491711234567"),
            ("1711234567", "+491711234567"),
        ],
    )
    def test_normalize(self, raw, expected):
        from app.services.sms_service import normalize_phone_number
        assert normalize_phone_number(raw) == expected

    def test_validity(self):
        from app.services.sms_service import is_valid_phone_number
        assert is_valid_phone_number("0171 1234567")
        assert not is_valid_phone_number("0171")
        assert not is_valid_phone_number(None)

    def test_texts(self):
        from app.services.sms_service import cancel_sms, shift_coverage_sms, shift_sms

        start = datetime(2030, 6, 15, 10, 0, tzinfo=timezone.utc)
        shifted = datetime(2030, 6, 15, 11, 0, tzinfo=timezone.utc)
        assert "am 15.06. verschiebt sich wegen Krankheit auf 13:00 Uhr" in shift_sms(start, shifted, "wegen Krankheit")
        assert "muss wegen techn. Probleme leider ausfallen" in cancel_sms(start, "wegen techn. Probleme")
        assert shift_coverage_sms(date(2030, 6, 15)).startswith("FLIGHTHOUR: Am 15.06.")


class TestTwilioClient:
    """Tests für den Twilio-Versand."""

    def _client(self, handler):
        from app.services.sms_service import TwilioClient
        return TwilioClient(
            account_sid="AC123",
            auth_token="geheim",
            from_number="+4920812345",
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_send(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
            form = parse_qs(request.content.decode())
            assert form["To"] == ["+491711234567"]
            assert form["From"] == ["+4920812345"]
            return httpx.Response(201, json={"sid": "SM1"})

        client = self._client(handler)
        assert await client.send_sms("0171 1234567", "Hallo") == "SM1"
        await client.close()

    @pytest.mark.asyncio
    async def test_api_error(self):
        from app.services.sms_service import TwilioError

        client = self._client(lambda request: httpx.Response(400, json={"message": "Invalid 'To' Phone Number"}))
        with pytest.raises(TwilioError, match="Invalid 'To'") as exc:
            await client.send_sms("0171 1234567", "Hallo")
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_rejects_before_request(self):
        """Ungültige Nummer und zu lange Texte gehen nicht an Twilio."""
        from app.config import limits
        from app.services.sms_service import TwilioError

        handler = MagicMock()
        client = self._client(handler)
        with pytest.raises(TwilioError, match="Invalid phone number"):
            await client.send_sms("12", "Hallo")
        with pytest.raises(TwilioError, match="Message too long"):
            await client.send_sms("0171 1234567", "x" * (limits.SMS_MAX_LENGTH + 1))
        handler.assert_not_called()


# ==================== SMTP ====================

class TestMailer:
    """Tests für den SMTP-Versand."""

    def _mail(self):
        from app.services.mailer import MailAttachment, OutgoingMail
        return OutgoingMail(
            to="kunde@example.com",
            subject="[TICKET-000042] Ihre Anfrage",
            text="Hallo",
            html="<p>Hallo</p>",
            headers={"X-Ticket-ID": "abc"},
            attachments=[MailAttachment("rechnung.pdf", b"%PDF", "application/pdf")],
        )

    def test_build_message(self):
        from app.config import settings
        from app.services.mailer import build_message

        msg = build_message(self._mail())

        assert msg["To"] == "kunde@example.com"
        assert msg["Reply-To"] == settings.smtp_from_email
        assert msg["X-Ticket-ID"] == "abc"
        assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>Hallo</p>"
        assert [part.get_filename() for part in msg.iter_attachments()] == ["rechnung.pdf"]

    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch):
        from app.config import settings
        from app.services.mailer import Mailer

        monkeypatch.setattr(settings, "smtp_host", "")
        result = await Mailer().send(self._mail())
        assert result["success"] is False
        assert result["error"] == "SMTP nicht konfiguriert"

    @pytest.mark.asyncio
    async def test_send(self, monkeypatch):
        from app.config import settings
        from app.services.mailer import Mailer

        monkeypatch.setattr(settings, "smtp_host", "smtp.test")
        with patch("app.services.mailer.aiosmtplib.send", new=AsyncMock()) as send:
            result = await Mailer().send(self._mail())

        assert result["success"] is True
        assert result["message_id"].startswith("<")
        assert send.await_args.kwargs["hostname"] == "smtp.test"

    @pytest.mark.asyncio
    async def test_smtp_error(self, monkeypatch):
        import aiosmtplib

        from app.config import settings
        from app.services.mailer import Mailer

        monkeypatch.setattr(settings, "smtp_host", "smtp.test")
        with patch(
            "app.services.mailer.aiosmtplib.send",
            new=AsyncMock(side_effect=aiosmtplib.SMTPException("kaputt")),
        ):
            result = await Mailer().send(self._mail())

        assert result["success"] is False
        assert result["error"].startswith("SMTP-Fehler")

    @pytest.mark.asyncio
    async def test_invalid_header(self, monkeypatch):
        """Ein Betreff mit Zeilenumbruch wird als Fehler gemeldet, nicht geworfen."""
        from app.config import settings
        from app.services.mailer import Mailer, OutgoingMail

        monkeypatch.setattr(settings, "smtp_host", "smtp.test")
        mail = OutgoingMail(to="kunde@example.com", subject="Hallo\nBcc: fremd@example.com", text="x")
        with patch("app.services.mailer.aiosmtplib.send", new=AsyncMock()) as send:
            result = await Mailer().send(mail)

        assert result["success"] is False
        assert result["error"].startswith("Ungültige Nachricht")
        send.assert_not_awaited()


# ==================== IMAP ====================

def _raw_email() -> bytes:
    msg = EmailMessage()
    msg["From"] = "Erika Musterfrau <Erika@Example.com>"
    msg["Reply-To"] = "antwort@example.com"
    msg["Subject"] = "Re: [TICKET-000042] Gutschein"
    msg["Message-ID"] = "<abc@example.com>"
    msg.set_content("Hallo\nWelt")
    msg.add_alternative("<p>Hallo</p><script>alert(1)</script>", subtype="html")
    msg.add_attachment(b"%PDF", maintype="application", subtype="pdf", filename="rechnung.pdf")
    return msg.as_bytes()


class TestIncomingEmail:
    """Tests für das Parsen eingehender E-Mails."""

    def test_parse_message(self):
        from app.services.email_ingest_service import parse_message

        email = parse_message(_raw_email())

        assert email.from_name == "Erika Musterfrau"
        assert email.sender_address == "antwort@example.com"
        assert email.subject == "Re: [TICKET-000042] Gutschein"
        assert email.text.startswith("Hallo\nWelt")
        assert len(email.attachments) == 1
        assert email.attachments[0].filename == "rechnung.pdf"
        assert email.attachments[0].content == b"%PDF"

    def test_body_prefers_clean_html(self):
        from app.services.email_ingest_service import build_body, parse_message
        assert build_body(parse_message(_raw_email())) == "<p>Hallo</p>"

    def test_body_from_text(self):
        from app.services.email_ingest_service import IncomingEmail, build_body

        email = IncomingEmail(None, "a@example.com", None, None, "Frage", text="a < b\nc")
        assert build_body(email) == "<p>a &lt; b<br>c</p>"

    def test_empty_body(self):
        from app.services.email_ingest_service import EMPTY_BODY_HTML, IncomingEmail, build_body

        email = IncomingEmail(None, "a@example.com", None, None, "Frage")
        assert build_body(email) == EMPTY_BODY_HTML

    def test_uploads(self):
        from app.services.email_ingest_service import parse_message, to_uploads

        (upload,) = to_uploads(parse_message(_raw_email()).attachments)
        assert upload.mime_type == "application/pdf"
        assert upload.is_inline is False

    def test_encoded_subject_with_linebreak(self):
        """RFC-2047-Betreffe mit kodiertem Zeilenumbruch werden einzeilig."""
        from app.services.email_ingest_service import parse_message

        raw = (
            b"From: kunde@example.com\r\n"
            b"Subject: =?utf-8?q?Hallo=0AWelt?=\r\n"
            b"Content-Type: text/plain; charset=utf-8\r\n"
            b"\r\n"
            b"Inhalt\r\n"
        )
        assert parse_message(raw).subject == "Hallo Welt"


class TestEmailHelpers:
    """Tests für Betreff-Zuordnung, Priorität und Bereinigung."""

    def test_ticket_number_in_subject(self):
        from app.services.email_helpers import extract_ticket_info

        ref = extract_ticket_info("AW: [TICKET-000042] Gutschein")
        assert ref.found
        assert ref.ticket_number == 42

    def test_legacy_uuid_in_subject(self):
        import uuid

        from app.services.email_helpers import extract_ticket_info

        ticket_id = uuid.uuid4()
        assert extract_ticket_info(f"Re: [TICKET-{ticket_id}]").ticket_id == ticket_id
        assert not extract_ticket_info("Neue Anfrage").found

    @pytest.mark.parametrize(
        "subject,body,expected",
        [
            ("DRINGEND", "", "urgent"),
            ("Frage", "Der Simulator startet nicht", "urgent"),
            ("Problem mit Gutschein", "", "high"),
            ("Frage", "Wann habt ihr offen?", "low"),
        ],
    )
    def test_priority(self, subject, body, expected):
        from app.services.email_helpers import detect_priority
        assert detect_priority(subject, body) == expected

    def test_clean_html(self):
        from app.services.email_helpers import clean_html_for_storage

        cleaned = clean_html_for_storage('<a href="javascript:evil()" onclick="x()">Link</a><iframe src="x"></iframe>')
        assert "javascript" not in cleaned
        assert "onclick" not in cleaned
        assert "iframe" not in cleaned

    @pytest.mark.parametrize(
        "payload",
        [
            "<img src=x onerror=alert(1)>",
            '<svg/onload="alert(1)">',
            "<a href=javascript:alert(1)>x</a>",
            "<script>alert(1)",
            "<script>alert(1)</script>",
            '<a href="JaVaScRiPt:alert(1)">x</a>',
            "<img src=\"data:text/html;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg==\">",
            '<p style="background:url(javascript:alert(1))">x</p>',
            "<iframe src=//evil.example></iframe>",
            "<math><mi xlink:href=javascript:alert(1)>x</mi></math>",
        ],
    )
    def test_clean_html_blocks_xss(self, payload):
        from app.services.email_helpers import clean_html_for_storage

        cleaned = clean_html_for_storage(payload).lower()
        for needle in ("<script", "onerror", "onload", "javascript:", "<svg", "<iframe", "data:text/html", "<math"):
            assert needle not in cleaned

    def test_clean_html_keeps_formatting(self):
        from app.services.email_helpers import clean_html_for_storage

        cleaned = clean_html_for_storage(
            '<table border="0"><tr><td colspan="2"><b>Termin</b></td></tr></table>'
            '<p style="color: red; position: fixed">Hallo</p>'
            '<a href="https://flighthour.de" target="_blank">Web</a>'
            '<img src="cid:logo@flighthour">'
            "<style>p { color: red }</style>"
        )
        assert '<td colspan="2"><b>Termin</b></td>' in cleaned
        assert 'style="color: red;"' in cleaned
        assert "position" not in cleaned
        assert 'href="https://flighthour.de"' in cleaned
        assert 'src="cid:logo@flighthour"' in cleaned
        assert "color: red }" not in cleaned

    def test_single_line(self):
        from app.services.email_helpers import single_line

        assert single_line("Hallo\r\n  Welt\nnoch was ") == "Hallo Welt noch was"
        assert single_line(None) == ""

    def test_sanitize_filename(self):
        from app.services.email_helpers import sanitize_filename
        assert sanitize_filename("../Rechnung März 2030.pdf") == ".._Rechnung_M_rz_2030.pdf"


# ==================== STORAGE ====================

class TestStorage:
    """Tests für den Object Storage."""

    def test_object_names(self):
        from app.services.storage_service import ticket_object_path, unique_object_name

        name = unique_object_name("rechnung.pdf")
        assert name.endswith(".pdf")
        assert unique_object_name("ohne_endung").endswith(".dat")
        assert ticket_object_path("t-1", name) == f"tickets/t-1/{name}"

    def test_upload_and_download(self):
        from app.services.storage_service import StorageService

        s3 = MagicMock()
        s3.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"inhalt"))}
        storage = StorageService("ticket-attachments", client=s3)

        assert storage.upload("tickets/t-1/a.pdf", b"inhalt", "application/pdf") == "tickets/t-1/a.pdf"
        assert s3.put_object.call_args.kwargs["Bucket"] == "ticket-attachments"
        assert storage.download("tickets/t-1/a.pdf") == b"inhalt"

    def test_missing_object(self):
        from botocore.exceptions import ClientError

        from app.services.storage_service import StorageService

        s3 = MagicMock()
        s3.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        assert StorageService("b", client=s3).download("fehlt") is None

    def test_not_configured(self, monkeypatch):
        from app.api.exception_handlers import StorageException
        from app.config import settings
        from app.services.storage_service import StorageService

        monkeypatch.setattr(settings, "storage_access_key_id", "")
        storage = StorageService("b")
        assert storage.is_available is False
        assert storage.delete("x") is False
        with pytest.raises(StorageException):
            storage.upload("x", b"", "text/plain")
