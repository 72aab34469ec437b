"""MAYDAY API Routes - Notfall-Verschiebung und -Absage (nur Manager/Admins).

Die Kunden-Links (Bestätigung, Rebook) liegen in ``routes_public``.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_manager
from app.api.exception_handlers import ValidationException
from app.database import get_db
from app.models.profile import Profile
from app.schemas.calendar import (
    CalendarEventResponse,
    MaydayCancelRequest,
    MaydayCancelResult,
    MaydayFilter,
    MaydayShiftRequest,
    MaydayShiftResult,
    UpcomingBookingsParams,
)
from app.services.mayday_service import MAYDAY_REASONS, MaydayService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mayday", tags=["MAYDAY"])


@router.get("/reasons")
async def list_reasons(user: Profile = Depends(require_manager)):
    """Auswahl der Gründe mit Texten für E-Mail und SMS."""
    return [
        {
            "value": reason.value,
            "label": texts.label,
            "email_text": texts.email_text,
            "sms_text": texts.sms_text,
        }
        for reason, texts in MAYDAY_REASONS.items()
    ]


@router.get("/bookings", response_model=list[CalendarEventResponse], summary="Betroffene Buchungen")
async def upcoming_bookings(
    filter: MaydayFilter = Query(default=MaydayFilter.TODAY),
    from_time: str | None = Query(default=None, description="Ab Uhrzeit HH:MM (Berlin)"),
    custom_date: date | None = Query(default=None),
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    try:
        params = UpcomingBookingsParams(filter=filter, from_time=from_time, custom_date=custom_date)
    except ValidationError as e:
        raise ValidationException(e.errors()[0]["msg"])
    return await MaydayService(db).upcoming_bookings(params)


@router.post("/shift", response_model=MaydayShiftResult, summary="Termine verschieben")
async def shift_events(
    data: MaydayShiftRequest,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    logger.warning(
        f"MAYDAY Verschiebung um {data.shift_minutes} min für {len(data.event_ids)} Termine "
        f"({data.reason.value}) durch {user.email}"
    )
    return await MaydayService(db).shift_events(data)


@router.post("/cancel", response_model=MaydayCancelResult, summary="Termine absagen")
async def cancel_events(
    data: MaydayCancelRequest,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    logger.warning(
        f"MAYDAY Absage für {len(data.event_ids)} Termine ({data.reason.value}) durch {user.email}"
    )
    return await MaydayService(db).cancel_events(data, cancelled_by=user.id)
