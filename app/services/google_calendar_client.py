"""Google Calendar API Client (Service Account).

Authentifizierung per signiertem JWT (RS256, jwt-bearer Grant).
Dokumentation: https://developers.google.com/calendar/api/v3/reference
"""

import logging
import re
import time as time_module
from datetime import date, datetime, time
from typing import Any
from urllib.parse import quote

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from app.berlin_time import BERLIN, german_date_of, german_time_to_utc
from app.config import limits, settings
from app.models.calendar import EventType

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

DEFAULT_LOCATION = "FLIGHTHOUR Flugsimulator"
FI_COLOR_ID = "5"        # Gelb
BLOCKER_COLOR_ID = "11"  # Rot

# Sekunden vor Ablauf, ab denen ein neues Token geholt wird
TOKEN_EXPIRY_BUFFER = 60


class GoogleCalendarError(Exception):
    """Fehler bei der Kommunikation mit Google Calendar."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
#  Beschreibung (EVENT_TYPE-Marker, Kundendaten)
# ═══════════════════════════════════════════════════════════════

_EVENT_TYPE_MARKER = re.compile(r"^EVENT_TYPE:(BLOCKER|FI_ASSIGNMENT|BOOKING)", re.IGNORECASE)
_CUSTOMER_LINE = re.compile(r"Customer:\s*(.+)", re.IGNORECASE)
_FIRST_LINE = re.compile(r"^([^<\n]+)")
_PHONE_LINE = re.compile(r"Telefon:\s*(.+)", re.IGNORECASE)
_GENERIC_PHONE = re.compile(r"(?:^|\n|\s)((?:\+[1-9][0-9]{0,3}|0)[1-9][0-9\s]{7,14})(?:\s|$|\n)", re.MULTILINE)
_EMAIL_LINE = re.compile(r"E-Mail:\s*(.+)", re.IGNORECASE)
_GENERIC_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_ATTENDEES = re.compile(r"Anzahl Teilnehmer:\s*(\d+)", re.IGNORECASE)
_REMARKS = re.compile(r"Bemerkungen:\s*\n(.+)", re.IGNORECASE | re.DOTALL)


def _hhmm(value: time | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return str(value)[:5]


def _has_work_times(event) -> bool:
    return bool(event.actual_work_start_time and event.actual_work_end_time)


def format_event_description(event) -> str:
    """Beschreibungstext für Google (beginnt mit dem EVENT_TYPE-Marker)."""
    event_type = EventType(event.event_type)
    parts = [f"EVENT_TYPE:{event_type.value.upper()}", ""]

    if event_type == EventType.FI_ASSIGNMENT and not event.is_all_day and _has_work_times(event):
        parts.append(
            f"Tatsächliche Arbeitszeiten: {_hhmm(event.actual_work_start_time)} - "
            f"{_hhmm(event.actual_work_end_time)}"
        )
        parts.append("")

    if event.customer_phone:
        parts.append(f"Telefon: {event.customer_phone}")
    if event.customer_email:
        parts.append(f"E-Mail: {event.customer_email}")
    if event.attendee_count:
        parts.append(f"Anzahl Teilnehmer: {event.attendee_count}")
    if event.remarks:
        parts.append(f"\nBemerkungen:\n{event.remarks}")

    return "\n".join(parts)


def _split_name(full_name: str, single_is_last: bool) -> tuple[str, str] | None:
    """Letztes Wort = Nachname, Rest = Vorname."""
    words = full_name.split()
    if len(words) >= 2:
        return " ".join(words[:-1]), words[-1]
    if len(words) == 1 and single_is_last:
        return "", words[0]
    return None


def parse_event_description(description: str | None) -> dict[str, Any]:
    """Liest Event-Typ und Kundendaten aus einer Google-Beschreibung.

    Versteht sowohl das eigene Format (EVENT_TYPE-Marker, "Telefon:" usw.)
    als auch Beschreibungen externer Buchungssysteme ("Customer: Name",
    Name in der ersten Zeile, freie Telefonnummern/E-Mail-Adressen).
    """
    if not description:
        return {}

    data: dict[str, Any] = {}

    marker = _EVENT_TYPE_MARKER.match(description)
    if marker:
        data["event_type"] = EventType(marker.group(1).lower())

    customer = _CUSTOMER_LINE.search(description)
    if customer:
        name = _split_name(customer.group(1).strip(), single_is_last=True)
        if name:
            data["customer_first_name"], data["customer_last_name"] = name

    if not data.get("customer_first_name") and not data.get("customer_last_name"):
        first_line = _FIRST_LINE.match(description)
        if first_line:
            line = first_line.group(1).strip()
            if (
                line
                and not line.startswith("✈")
                and not re.match(r"^[0-9+]", line)
                and not re.match(r"^EVENT_TYPE:", line, re.IGNORECASE)
            ):
                name = _split_name(line, single_is_last=False)
                if name:
                    data["customer_first_name"], data["customer_last_name"] = name

    phone = _PHONE_LINE.search(description)
    if phone:
        data["customer_phone"] = phone.group(1).strip()
    else:
        generic_phone = _GENERIC_PHONE.search(description)
        if generic_phone:
            data["customer_phone"] = re.sub(r"\s+", "", generic_phone.group(1))

    email = _EMAIL_LINE.search(description)
    if email:
        data["customer_email"] = email.group(1).strip()
    else:
        generic_email = _GENERIC_EMAIL.search(description)
        if generic_email:
            data["customer_email"] = generic_email.group(0)

    attendees = _ATTENDEES.search(description)
    if attendees:
        data["attendee_count"] = int(attendees.group(1))

    remarks = _REMARKS.search(description)
    if remarks:
        data["remarks"] = remarks.group(1).strip()

    return data


# ═══════════════════════════════════════════════════════════════
#  Event-Body
# ═══════════════════════════════════════════════════════════════

def _at_berlin(value: datetime, hhmm: str) -> datetime:
    day: date = german_date_of(value)
    return german_time_to_utc(day, hhmm)


def build_event_summary(event) -> str:
    event_type = EventType(event.event_type)
    if event.title:
        return event.title
    if event_type == EventType.BLOCKER:
        return event.customer_first_name or "Blocker"
    if event_type == EventType.FI_ASSIGNMENT:
        name = event.assigned_instructor_name or "Unbekannt"
        number = f" ({event.assigned_instructor_number})" if event.assigned_instructor_number else ""
        summary = f"FI: {name}{number}"
        if not event.is_all_day and _has_work_times(event):
            summary += f" {_hhmm(event.actual_work_start_time)}-{_hhmm(event.actual_work_end_time)}"
        return summary
    return f"{event.customer_first_name or ''} {event.customer_last_name or ''}".strip()


def build_event_body(event) -> dict[str, Any]:
    """Google-Event aus einem lokalen Kalender-Eintrag.

    FI-Einsätze erscheinen in Google immer 08:00-09:00, ganztägige Blocker
    05:00-22:00 (jeweils Berliner Zeit am Tag des Eintrags).
    """
    event_type = EventType(event.event_type)
    start, end = event.start_time, event.end_time

    if event_type == EventType.FI_ASSIGNMENT:
        start, end = _at_berlin(start, "08:00"), _at_berlin(end, "09:00")
    elif event_type == EventType.BLOCKER and event.is_all_day:
        start, end = _at_berlin(start, "05:00"), _at_berlin(end, "22:00")

    status = getattr(event, "status", None)
    body: dict[str, Any] = {
        "summary": build_event_summary(event),
        "description": format_event_description(event),
        "location": event.location or DEFAULT_LOCATION,
        "start": {"dateTime": start.isoformat(), "timeZone": str(BERLIN)},
        "end": {"dateTime": end.isoformat(), "timeZone": str(BERLIN)},
        "status": getattr(status, "value", status) or "confirmed",
    }
    if event_type == EventType.FI_ASSIGNMENT:
        body["colorId"] = FI_COLOR_ID
    elif event_type == EventType.BLOCKER:
        body["colorId"] = BLOCKER_COLOR_ID
    return body


# ═══════════════════════════════════════════════════════════════
#  Client
# ═══════════════════════════════════════════════════════════════

def _json(response: httpx.Response) -> dict:
    try:
        return response.json()
    except ValueError as e:
        raise GoogleCalendarError(f"Ungültige Antwort von Google (HTTP {response.status_code})") from e


class GoogleCalendarClient:
    """Client für die Google Calendar API v3."""

    def __init__(
        self,
        client_email: str | None = None,
        private_key: str | None = None,
        calendar_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_email = client_email if client_email is not None else settings.google_client_email
        self.private_key = (private_key if private_key is not None else settings.google_private_key).replace(
            "\\n", "\n"
        )
        self.calendar_id = calendar_id or settings.google_calendar_id
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._token_expires_at: float = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_email and self.private_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Gibt den HTTP-Client zurück (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(limits.TIMEOUT_GOOGLE),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ==================== Auth ====================

    def _signed_assertion(self, now: int) -> str:
        claims = {
            "iss": self.client_email,
            "scope": CALENDAR_SCOPE,
            "aud": TOKEN_URI,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JOSEError as e:
            raise GoogleCalendarError(f"JWT konnte nicht signiert werden: {e}") from e

    async def get_access_token(self) -> str:
        """Access-Token (gecacht bis 60 Sekunden vor Ablauf)."""
        if self._access_token and time_module.time() < self._token_expires_at:
            return self._access_token

        if not self.is_configured:
            raise GoogleCalendarError("Google Service Account nicht konfiguriert")

        now = int(time_module.time())
        client = await self._get_client()
        try:
            response = await client.post(
                TOKEN_URI,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": self._signed_assertion(now)},
            )
        except httpx.TimeoutException as e:
            raise GoogleCalendarError("Zeitüberschreitung beim Google-Token-Abruf") from e
        except httpx.HTTPError as e:
            raise GoogleCalendarError(f"Google-Token-Endpoint nicht erreichbar: {e}") from e

        if response.status_code != 200:
            raise GoogleCalendarError(
                f"Failed to get access token: {response.text}",
                status_code=response.status_code,
            )

        data = _json(response)
        token = data.get("access_token")
        if not token:
            raise GoogleCalendarError("No access token received from Google")

        self._access_token = token
        self._token_expires_at = time_module.time() + int(data.get("expires_in", 3600)) - TOKEN_EXPIRY_BUFFER
        return token

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        token = await self.get_access_token()
        client = await self._get_client()
        url = f"{CALENDAR_API_BASE}/calendars/{quote(self.calendar_id, safe='')}/events{path}"
        try:
            return await client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise GoogleCalendarError("Zeitüberschreitung bei Google Calendar") from e
        except httpx.HTTPError as e:
            raise GoogleCalendarError(f"Google Calendar nicht erreichbar: {e}") from e

    # ==================== Events ====================

    async def list_events(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        sync_token: str | None = None,
    ) -> tuple[list[dict], str | None]:
        """Alle Events (folgt allen Seiten).

        Parameter-Vorrang pro Seite: pageToken, dann syncToken, dann Zeitraum.

        Returns:
            (events, next_sync_token)
        """
        events: list[dict] = []
        page_token: str | None = None
        next_sync_token: str | None = None
        page_count = 0

        while True:
            params: dict[str, str] = {
                "maxResults": str(limits.CALENDAR_PAGE_SIZE),
                "singleEvents": "true",
                "orderBy": "startTime",
                "showDeleted": "true",
            }
            if page_token:
                params["pageToken"] = page_token
            elif sync_token:
                params["syncToken"] = sync_token
            else:
                if time_min:
                    params["timeMin"] = time_min.isoformat()
                if time_max:
                    params["timeMax"] = time_max.isoformat()

            response = await self._request("GET", "", params=params)
            if response.status_code != 200:
                raise GoogleCalendarError(
                    f"Failed to list events: {response.text}",
                    status_code=response.status_code,
                )

            data = _json(response)
            page_events = data.get("items", [])
            events.extend(page_events)
            page_count += 1
            logger.debug(f"Google: Seite {page_count} mit {len(page_events)} Events")

            page_token = data.get("nextPageToken")
            next_sync_token = data.get("nextSyncToken")
            if not page_token:
                break

        logger.info(f"Google: {len(events)} Events auf {page_count} Seite(n) geladen")
        return events, next_sync_token

    async def create_event(self, event) -> dict:
        response = await self._request("POST", "", json=build_event_body(event))
        if response.status_code not in (200, 201):
            raise GoogleCalendarError(
                f"Failed to create event: {response.text}",
                status_code=response.status_code,
            )
        return _json(response)

    async def update_event(self, google_event_id: str, event) -> dict:
        response = await self._request("PUT", f"/{google_event_id}", json=build_event_body(event))
        if response.status_code != 200:
            raise GoogleCalendarError(
                f"Failed to update event: {response.text}",
                status_code=response.status_code,
            )
        return _json(response)

    async def delete_event(self, google_event_id: str) -> None:
        """Löscht ein Event. Bereits gelöschte Events (404/410) gelten als Erfolg."""
        response = await self._request("DELETE", f"/{google_event_id}")
        if response.status_code in (200, 204, 404, 410):
            return
        raise GoogleCalendarError(
            f"Failed to delete event: {response.text}",
            status_code=response.status_code,
        )


_calendar_client: GoogleCalendarClient | None = None


def get_calendar_client() -> GoogleCalendarClient:
    """Prozessweiter Client (teilt den Token-Cache)."""
    global _calendar_client
    if _calendar_client is None:
        _calendar_client = GoogleCalendarClient()
    return _calendar_client
