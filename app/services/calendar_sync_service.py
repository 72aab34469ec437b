"""Calendar Sync Service - Abgleich Google Calendar ↔ Datenbank.

Import (Google → DB):
    Upsert über google_event_id, in Google gelöschte Events werden lokal
    nur storniert (Soft-Delete).
Export (DB → Google):
    Lokale Einträge ohne google_event_id mit sync_status=pending.

Ein Fehler bei einem Event bricht den Lauf nicht ab.
"""

import logging
import re
import time as time_module
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.berlin_time import german_time_to_utc, utcnow
from app.config import limits
from app.models.calendar import (
    CalendarEvent,
    CalendarSyncLog,
    EventStatus,
    EventType,
    SyncStatus,
    SyncType,
)
from app.models.profile import Profile, UserRole
from app.schemas.calendar import SyncResult
from app.services.google_calendar_client import (
    DEFAULT_LOCATION,
    GoogleCalendarClient,
    GoogleCalendarError,
    get_calendar_client,
    parse_event_description,
)

logger = logging.getLogger(__name__)

_FI_SUMMARY = re.compile(r"^FI:\s*(.+?)(?:\s*\((\d+)\))?$")


# ═══════════════════════════════════════════════════════════════
#  Google-Event → lokale Felder
# ═══════════════════════════════════════════════════════════════

def _parse_google_time(value: dict | None) -> tuple[datetime | None, bool]:
    """Liefert (UTC-Zeitpunkt, ganztägig). Ganztägige Events beginnen um 00:00 Berliner Zeit."""
    if not value:
        return None, False
    if value.get("dateTime"):
        return datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00")), False
    if value.get("date"):
        return german_time_to_utc(date.fromisoformat(value["date"]), "00:00"), True
    return None, False


def google_event_to_fields(google_event: dict) -> dict[str, Any] | None:
    """Übersetzt ein Google-Event in Spaltenwerte. None = überspringen."""
    summary = (google_event.get("summary") or "").strip()
    start, is_all_day = _parse_google_time(google_event.get("start"))
    end, _ = _parse_google_time(google_event.get("end"))
    if not summary or start is None or end is None:
        return None

    description = google_event.get("description") or ""
    parsed = parse_event_description(description)

    fields: dict[str, Any] = {
        "google_event_id": google_event["id"],
        "etag": google_event.get("etag"),
        "title": summary,
        "description": description,
        "start_time": start,
        "end_time": end,
        "duration": round((end - start).total_seconds() / 60),
        "is_all_day": is_all_day,
        "customer_phone": parsed.get("customer_phone"),
        "customer_email": parsed.get("customer_email"),
        "attendee_count": parsed.get("attendee_count") or 1,
        "remarks": parsed.get("remarks"),
        "location": google_event.get("location") or DEFAULT_LOCATION,
        "status": EventStatus(google_event.get("status") or "confirmed"),
        "sync_status": SyncStatus.SYNCED,
        "sync_error": None,
        "last_synced_at": utcnow(),
    }

    fi_match = _FI_SUMMARY.match(summary) if summary.startswith("FI:") else None
    if summary.startswith("FI:"):
        fields["event_type"] = EventType.FI_ASSIGNMENT
        if fi_match:
            fields["assigned_instructor_name"] = fi_match.group(1).strip()
            fields["assigned_instructor_number"] = fi_match.group(2)
        else:
            fields["assigned_instructor_name"] = re.sub(r"^FI:\s*", "", summary).strip()
            fields["assigned_instructor_number"] = None
        fields["customer_first_name"] = None
        fields["customer_last_name"] = None
        return fields

    event_type = parsed.get("event_type", EventType.BOOKING)
    fields["event_type"] = event_type

    if event_type == EventType.BLOCKER:
        fields["customer_first_name"] = summary
        fields["customer_last_name"] = None
        return fields

    if parsed.get("customer_first_name") or parsed.get("customer_last_name"):
        fields["customer_first_name"] = parsed.get("customer_first_name") or "Unknown"
        fields["customer_last_name"] = parsed.get("customer_last_name") or "Customer"
    else:
        words = summary.split(" ")
        fields["customer_first_name"] = words[0] or "Unknown"
        fields["customer_last_name"] = " ".join(words[1:]) or "Customer"
    return fields


# ═══════════════════════════════════════════════════════════════
#  Service
# ═══════════════════════════════════════════════════════════════

class CalendarSyncService:
    """Bidirektionaler Abgleich mit Google Calendar."""

    def __init__(self, db: AsyncSession, google: GoogleCalendarClient | None = None):
        self.db = db
        self.google = google or get_calendar_client()

    async def _first_admin_id(self):
        result = await self.db.execute(
            select(Profile.id)
            .where(Profile.role == UserRole.ADMIN)
            .order_by(Profile.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _find_by_google_id(self, google_event_id: str) -> CalendarEvent | None:
        result = await self.db.execute(
            select(CalendarEvent).where(CalendarEvent.google_event_id == google_event_id)
        )
        return result.scalar_one_or_none()

    # ==================== Import ====================

    async def import_from_google(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        sync_token: str | None = None,
    ) -> SyncResult:
        """Google → DB. Standard-Zeitraum: ±365 Tage."""
        result = SyncResult()
        now = utcnow()
        window = timedelta(days=limits.CALENDAR_IMPORT_WINDOW_DAYS)
        time_min = time_min or now - window
        time_max = time_max or now + window

        try:
            events, next_sync_token = await self.google.list_events(time_min, time_max, sync_token)
        except GoogleCalendarError as e:
            logger.error(f"Google-Import fehlgeschlagen: {e.message}")
            result.success = False
            result.errors.append(e.message)
            return result

        result.sync_token = next_sync_token
        admin_id = await self._first_admin_id()

        for google_event in events:
            google_id = google_event.get("id", "?")
            try:
                async with self.db.begin_nested():
                    await self._process_google_event(google_event, admin_id, result)
            except (SQLAlchemyError, ValueError) as e:
                logger.error(f"Google-Event {google_id} konnte nicht importiert werden: {e}")
                result.errors.append(f"Event {google_id}: {e}")

        logger.info(
            f"Google-Import: {result.imported} neu, {result.updated} aktualisiert, "
            f"{len(result.errors)} Fehler"
        )
        return result

    async def _process_google_event(self, google_event: dict, admin_id, result: SyncResult) -> None:
        google_id = google_event["id"]
        existing = await self._find_by_google_id(google_id)

        if google_event.get("status") == "cancelled":
            if existing is not None and existing.status != EventStatus.CANCELLED:
                existing.status = EventStatus.CANCELLED
                existing.sync_status = SyncStatus.SYNCED
                existing.last_synced_at = utcnow()
                result.updated += 1
                logger.info(f"Google-Event {google_id} gelöscht → lokal storniert")
            return

        fields = google_event_to_fields(google_event)
        if fields is None:
            logger.debug(f"Google-Event {google_id} übersprungen (Start, Ende oder Titel fehlt)")
            return

        if admin_id is None:
            result.errors.append(f"Event {google_id}: Kein Admin-Benutzer für den Import vorhanden")
            return

        if existing is None:
            self.db.add(CalendarEvent(**fields, user_id=admin_id))
            result.imported += 1
        else:
            for key, value in fields.items():
                setattr(existing, key, value)
            result.updated += 1
        await self.db.flush()

    # ==================== Export ====================

    async def export_to_google(self) -> SyncResult:
        """DB → Google für noch nicht übertragene Einträge (max. 50 pro Lauf)."""
        result = SyncResult()
        query = await self.db.execute(
            select(CalendarEvent)
            .where(
                CalendarEvent.google_event_id.is_(None),
                CalendarEvent.sync_status == SyncStatus.PENDING,
                CalendarEvent.status != EventStatus.CANCELLED,
            )
            .order_by(CalendarEvent.created_at.asc())
            .limit(limits.CALENDAR_EXPORT_BATCH)
        )
        events = list(query.scalars().all())

        for event in events:
            try:
                google_event = await self.google.create_event(event)
            except GoogleCalendarError as e:
                logger.error(f"Export von Termin {event.id} fehlgeschlagen: {e.message}")
                result.errors.append(f"Event {event.id}: {e.message}")
                event.sync_status = SyncStatus.ERROR
                event.sync_error = e.message
                continue

            event.google_event_id = google_event.get("id")
            event.etag = google_event.get("etag")
            event.sync_status = SyncStatus.SYNCED
            event.sync_error = None
            event.last_synced_at = utcnow()
            result.exported += 1

        await self.db.flush()
        logger.info(f"Google-Export: {result.exported} von {len(events)} übertragen")
        return result

    # ==================== Voll-Sync ====================

    async def full_sync(self, sync_type: SyncType = SyncType.FULL, sync_token: str | None = None) -> SyncResult:
        """Import, dann Export. Schreibt eine Zeile ins Sync-Protokoll."""
        logger.info("Starte Google Calendar Sync")
        imported = await self.import_from_google(sync_token=sync_token)
        exported = await self.export_to_google()
        combined = imported.merge(exported)
        await self.log_sync(combined, sync_type)
        return combined

    async def log_sync(self, result: SyncResult, sync_type: SyncType) -> CalendarSyncLog:
        entry = CalendarSyncLog(
            sync_type=sync_type,
            status="success" if result.success else "error",
            events_imported=result.imported,
            events_exported=result.exported,
            events_updated=result.updated,
            errors_count=len(result.errors),
            error_message="; ".join(result.errors) if result.errors else None,
            sync_token=result.sync_token,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def log_failure(self, message: str) -> CalendarSyncLog:
        return await self.log_sync(SyncResult(success=False, errors=[message]), SyncType.CRON)

    async def last_sync_status(self) -> CalendarSyncLog | None:
        result = await self.db.execute(
            select(CalendarSyncLog).order_by(CalendarSyncLog.created_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def run_cron(self) -> dict:
        """Cron-Einstieg. Liefert die Antwort für /api/cron/sync-calendar."""
        started = time_module.monotonic()
        result = await self.full_sync(SyncType.CRON)
        duration_ms = int((time_module.monotonic() - started) * 1000)

        logger.info(
            f"Cron-Sync fertig in {duration_ms} ms: {result.imported} importiert, "
            f"{result.exported} exportiert, {result.updated} aktualisiert"
        )
        return {
            "success": result.success,
            "timestamp": utcnow().isoformat(),
            "duration": duration_ms,
            "stats": {
                "imported": result.imported,
                "exported": result.exported,
                "updated": result.updated,
                "errors": len(result.errors),
            },
            "errors": result.errors or None,
            "syncToken": result.sync_token,
        }
