"""Cron API Routes - Kalender-Sync, E-Mail-/SMS-Versand, Posteingang, Aufräumen.

Authentifizierung über ``?key=<CRON_SECRET>`` oder ``Authorization: Bearer``.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import verify_cron_secret
from app.berlin_time import utcnow
from app.database import get_db
from app.schemas.notification import CleanupResult
from app.services.calendar_sync_service import CalendarSyncService
from app.services.email_ingest_service import EmailIngestService, IMAPError
from app.services.email_queue_service import EmailQueueService
from app.services.google_calendar_client import GoogleCalendarError
from app.services.notification_service import NotificationService
from app.services.sms_service import SMSQueueService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_secret)],
)


def _failure(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": message, "timestamp": utcnow().isoformat()},
    )


# ==================== Google Calendar ====================

@router.post("/sync-calendar", summary="Google Calendar Sync (Import + Export)")
async def sync_calendar(db: AsyncSession = Depends(get_db)):
    service = CalendarSyncService(db)
    try:
        return await service.run_cron()
    except (GoogleCalendarError, SQLAlchemyError) as e:
        message = getattr(e, "message", None) or str(e)
        logger.error(f"Cron-Sync fehlgeschlagen: {message}")
        await db.rollback()
        await service.log_failure(message)
        return _failure(message)


@router.get("/sync-calendar")
async def sync_calendar_info():
    return {
        "endpoint": "/api/cron/sync-calendar",
        "method": "POST",
        "description": "Synchronisiert den Google Kalender (Import, dann Export ausstehender Termine)",
        "auth": "?key=<CRON_SECRET> oder Authorization: Bearer <CRON_SECRET>",
    }


# ==================== Versand-Queues ====================

@router.post("/process-email-queue", summary="Ausstehende E-Mails versenden")
async def process_email_queue(db: AsyncSession = Depends(get_db)):
    return await EmailQueueService(db).process_queue()


@router.post("/process-sms-queue", summary="Ausstehende SMS versenden")
async def process_sms_queue(db: AsyncSession = Depends(get_db)):
    return await SMSQueueService(db).process_queue()


# ==================== Posteingang ====================

@router.post("/fetch-emails", summary="Posteingang abrufen (IMAP)")
async def fetch_emails(db: AsyncSession = Depends(get_db)):
    """Neue E-Mails zu Tickets bzw. Ticket-Antworten verarbeiten."""
    try:
        stats = await EmailIngestService(db).fetch_and_process()
    except IMAPError as e:
        logger.error(f"E-Mail-Abruf fehlgeschlagen: {e}")
        return _failure(str(e))
    return {"success": True, **stats}


# ==================== Aufräumen ====================

@router.post("/cleanup-notifications", response_model=CleanupResult)
async def cleanup_notifications(db: AsyncSession = Depends(get_db)):
    return await NotificationService(db).cleanup()
