"""Öffentliche Token-Links (ohne Login).

- MAYDAY-Bestätigung durch Kunden
- Rebook-Portal nach MAYDAY-Absage
- Annahme einer Schichtübernahme durch Mitarbeiter

Alle Endpunkte sind per Rate-Limit (PUBLIC_TOKEN) geschützt.
"""

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import ValidationException
from app.api.rate_limiter import RateLimitTier, limit
from app.berlin_time import berlin_today, german_day_bounds
from app.database import get_db
from app.schemas.calendar import (
    MaydayConfirmResult,
    RebookRequest,
    RebookResult,
    RebookTokenInfo,
    TimeSlot,
)
from app.schemas.errors import ErrorCode
from app.schemas.work_request import CoverageAcceptResult, CoverageTokenInfo
from app.services.mayday_service import REBOOK_DEFAULT_DURATION, MaydayService
from app.services.shift_coverage_service import ShiftCoverageService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/public",
    tags=["Öffentliche Links"],
    dependencies=[Depends(limit(RateLimitTier.PUBLIC_TOKEN))],
)

REBOOK_SEARCH_DAYS = 14


# ==================== MAYDAY ====================

@router.get("/mayday/confirm/{token}", response_model=MaydayConfirmResult)
async def confirm_mayday(token: str, db: AsyncSession = Depends(get_db)):
    """Kunde bestätigt den Erhalt der Verschiebung/Absage."""
    return await MaydayService(db).confirm(token)


@router.get("/mayday/rebook/{token}", response_model=RebookTokenInfo)
async def validate_rebook_token(token: str, db: AsyncSession = Depends(get_db)):
    return await MaydayService(db).validate_rebook_token(token)


@router.get("/mayday/rebook/{token}/slots", response_model=list[TimeSlot])
async def rebook_slots(
    token: str,
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    db: AsyncSession = Depends(get_db),
):
    """Freie Slots für die Neubuchung (Dauer aus der ursprünglichen Buchung)."""
    service = MaydayService(db)
    info = await service.validate_rebook_token(token)
    if not info.valid:
        raise ValidationException("Ungültiger oder abgelaufener Link.", ErrorCode.INVALID_TOKEN)

    from_date = from_date or berlin_today()
    to_date = to_date or from_date + timedelta(days=REBOOK_SEARCH_DAYS)
    if to_date < from_date:
        raise ValidationException("Enddatum muss nach dem Startdatum liegen", field="to")
    return await service.available_slots(
        german_day_bounds(from_date)[0],
        german_day_bounds(to_date)[1],
        info.original_duration or REBOOK_DEFAULT_DURATION,
    )


@router.post("/mayday/rebook/{token}", response_model=RebookResult)
async def rebook(token: str, data: RebookRequest, db: AsyncSession = Depends(get_db)):
    if data.new_start_time.tzinfo is None:
        raise ValidationException("Startzeit muss eine Zeitzone enthalten", field="new_start_time")
    event = await MaydayService(db).rebook(token, data.new_start_time)
    return RebookResult(new_event_id=event.id)


# ==================== Schichtübernahme ====================

@router.get("/shift-coverage/{token}", response_model=CoverageTokenInfo)
async def validate_coverage_token(token: str, db: AsyncSession = Depends(get_db)):
    return await ShiftCoverageService(db).validate_token(token)


@router.post("/shift-coverage/{token}", response_model=CoverageAcceptResult)
async def accept_coverage(token: str, db: AsyncSession = Depends(get_db)):
    """Wer zuerst annimmt, bekommt die Schicht."""
    return await ShiftCoverageService(db).accept(token)
