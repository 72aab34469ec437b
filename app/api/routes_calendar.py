"""Calendar API Routes - Termine, Buchungsstatistik, Google-Sync."""

import logging
from datetime import date, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_admin, require_manager
from app.api.exception_handlers import ValidationException
from app.berlin_time import berlin_today, german_day_bounds
from app.database import get_db
from app.models.calendar import EventType, SyncType
from app.models.profile import Profile
from app.schemas.calendar import (
    BookingGroupBy,
    BookingStatsResponse,
    CalendarEventCreate,
    CalendarEventResponse,
    CalendarEventUpdate,
    CancelEventRequest,
    SyncLogResponse,
    SyncResult,
)
from app.services.calendar_service import CalendarService
from app.services.calendar_sync_service import CalendarSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Kalender"])


# ==================== Abfragen ====================

@router.get("/events", response_model=list[CalendarEventResponse], summary="Termine im Zeitraum")
async def list_events(
    start: date | None = Query(default=None, description="Erster Tag (Berlin), Standard: heute"),
    end: date | None = Query(default=None, description="Letzter Tag (Berlin), Standard: +30 Tage"),
    event_type: EventType | None = Query(default=None),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    start = start or berlin_today()
    end = end or start + timedelta(days=30)
    if end < start:
        raise ValidationException("Enddatum muss nach dem Startdatum liegen", field="end")
    range_start = german_day_bounds(start)[0]
    range_end = german_day_bounds(end)[1]
    return await CalendarService(db).list_events(range_start, range_end, event_type)


@router.get("/events/upcoming", response_model=list[CalendarEventResponse])
async def upcoming_events(
    limit: int = Query(default=5, ge=1, le=50),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).upcoming(limit)


@router.get("/events/{event_id}", response_model=CalendarEventResponse)
async def get_event(
    event_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).get_event(event_id)


@router.get("/stats", response_model=BookingStatsResponse, summary="Buchungsstatistik")
async def booking_stats(
    group_by: BookingGroupBy = Query(default=BookingGroupBy.MONTH, alias="groupBy"),
    limit: int = Query(default=12, ge=1, le=120),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Nicht stornierte Buchungen pro Monat, KW oder Jahr."""
    return await CalendarService(db).booking_stats(group_by, limit)


# ==================== Verwaltung ====================

@router.post("/events", response_model=CalendarEventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: CalendarEventCreate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Termin anlegen und sofort nach Google übertragen."""
    event = await CalendarService(db).create_event(data, created_by=user.id)
    await db.refresh(event)
    return event


@router.patch("/events/{event_id}", response_model=CalendarEventResponse)
async def update_event(
    event_id: UUID,
    data: CalendarEventUpdate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    event = await CalendarService(db).update_event(event_id, data)
    await db.refresh(event)
    return event


@router.post("/events/{event_id}/cancel", response_model=CalendarEventResponse)
async def cancel_event(
    event_id: UUID,
    data: CancelEventRequest,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    event = await CalendarService(db).cancel_event(
        event_id,
        reason=data.reason,
        note=data.note,
        notify=data.notify,
        cancelled_by=user.id,
    )
    await db.refresh(event)
    return event


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: UUID,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await CalendarService(db).delete_event(event_id)


# ==================== Google-Sync ====================

@router.post("/sync", response_model=SyncResult, summary="Manueller Google-Sync")
async def manual_sync(
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"Manueller Kalender-Sync gestartet von {user.email}")
    return await CalendarSyncService(db).full_sync(SyncType.MANUAL)


@router.get("/sync/status", response_model=SyncLogResponse | None)
async def last_sync_status(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Letzter Eintrag im Sync-Protokoll."""
    return await CalendarSyncService(db).last_sync_status()
