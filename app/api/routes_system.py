"""System API Routes - Status der Integrationen und Versand-Queues (Admin)."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.api.exception_handlers import NotFoundException
from app.berlin_time import utcnow
from app.config import settings
from app.database import check_db_connection, get_db
from app.models.profile import Profile
from app.models.queue import QueueStatus
from app.schemas.queue import (
    EmailQueueItemResponse,
    IntegrationStatus,
    RetryResult,
    SMSQueueItemResponse,
    SystemStatus,
)
from app.services.email_ingest_service import EmailIngestService
from app.services.email_queue_service import EmailQueueService
from app.services.sms_service import SMSQueueService
from app.services.storage_service import ticket_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/status", response_model=SystemStatus)
async def system_status(
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Datenbank, konfigurierte Dienste und Zustand der E-Mail-Queue."""
    db_ok = await check_db_connection()
    imap_ok = (await EmailIngestService(db).load_credentials()) is not None

    integrations = IntegrationStatus(
        smtp=settings.smtp_configured,
        imap=imap_ok,
        google_calendar=settings.google_configured,
        twilio=settings.twilio_configured,
        storage=ticket_storage().is_available,
    )
    return SystemStatus(
        status="ok" if db_ok else "degraded",
        environment=settings.environment,
        database=db_ok,
        integrations=integrations,
        email_queue=await EmailQueueService(db).counts_by_status(),
        timestamp=utcnow(),
    )


# ==================== E-Mail-Queue ====================

@router.get("/email-queue", response_model=list[EmailQueueItemResponse])
async def list_email_queue(
    status_filter: QueueStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await EmailQueueService(db).list_queue(status=status_filter, limit=limit)


@router.post("/email-queue/retry-all", response_model=RetryResult)
async def retry_all_failed_emails(
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    count = await EmailQueueService(db).retry_all_failed()
    return RetryResult(success=True, reset=count)


@router.post("/email-queue/{item_id}/retry", response_model=RetryResult)
async def retry_email(
    item_id: UUID,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await EmailQueueService(db).retry(item_id):
        raise NotFoundException("Queue-Eintrag nicht gefunden")
    logger.info(f"E-Mail {item_id} von {user.email} erneut eingereiht")
    return RetryResult(success=True, reset=1)


# ==================== SMS-Queue ====================

@router.get("/sms-queue", response_model=list[SMSQueueItemResponse])
async def list_sms_queue(
    status_filter: QueueStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SMSQueueService(db).list_queue(status=status_filter, limit=limit)
