"""Zeiterfassung API Routes - Einträge, Kategorien, Monatsabschluss, Abrechnung."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_admin
from app.api.exception_handlers import NotFoundException
from app.berlin_time import berlin_today
from app.database import get_db
from app.models.profile import Profile
from app.schemas.time_tracking import (
    CloseMonthRequest,
    EmployeeSettingsInput,
    EmployeeSettingsResponse,
    MonthlyReportData,
    MonthlyStats,
    TimeCategoryCreate,
    TimeCategoryResponse,
    TimeCategoryUpdate,
    TimeEntryInput,
    TimeEntryResponse,
    TimeReportResponse,
)
from app.services.time_tracking_service import TimeTrackingService

router = APIRouter(prefix="/time-tracking", tags=["Zeiterfassung"])


def _year_month(year: int | None, month: int | None) -> tuple[int, int]:
    today = berlin_today()
    return year or today.year, month or today.month


# ==================== Einträge ====================

@router.get("/entries", response_model=list[TimeEntryResponse])
async def list_entries(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    employee_id: UUID | None = Query(default=None, description="Nur für Admins"),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Einträge eines Monats, neueste zuerst."""
    year, month = _year_month(year, month)
    target = employee_id or user.id
    TimeTrackingService.ensure_can_view(user, target)
    return await TimeTrackingService(db).entries(year, month, target)


@router.get("/stats", response_model=MonthlyStats)
async def monthly_stats(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    employee_id: UUID | None = Query(default=None),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    year, month = _year_month(year, month)
    target = employee_id or user.id
    TimeTrackingService.ensure_can_view(user, target)
    return await TimeTrackingService(db).monthly_stats(year, month, target)


@router.post("/entries", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    data: TimeEntryInput,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TimeTrackingService(db).create_entry(user.id, data)


@router.put("/entries/{entry_id}", response_model=TimeEntryResponse)
async def update_entry(
    entry_id: UUID,
    data: TimeEntryInput,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TimeTrackingService(db).update_entry(entry_id, user.id, data)


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TimeTrackingService(db).delete_entry(entry_id, user.id)


# ==================== Kategorien ====================

@router.get("/categories", response_model=list[TimeCategoryResponse])
async def list_categories(
    include_inactive: bool = Query(default=False),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TimeTrackingService(db).categories(include_inactive=include_inactive and user.is_admin)


@router.post("/categories", response_model=TimeCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: TimeCategoryCreate,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TimeTrackingService(db).create_category(data)


@router.patch("/categories/{category_id}", response_model=TimeCategoryResponse)
async def update_category(
    category_id: UUID,
    data: TimeCategoryUpdate,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TimeTrackingService(db).update_category(category_id, data)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: UUID,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await TimeTrackingService(db).delete_category(category_id)


# ==================== Monatsabschluss (Admin) ====================

@router.post("/reports/close", response_model=TimeReportResponse)
async def close_month(
    data: CloseMonthRequest,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    report = await TimeTrackingService(db).close_month(data, user)
    await db.refresh(report)
    return report


@router.post("/reports/reopen", response_model=TimeReportResponse)
async def reopen_month(
    employee_id: UUID = Query(...),
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    report = await TimeTrackingService(db).reopen_month(employee_id, year, month)
    await db.refresh(report)
    return report


@router.get("/reports", response_model=list[TimeReportResponse])
async def reports_for_month(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    year, month = _year_month(year, month)
    return await TimeTrackingService(db).reports_for_month(year, month)


@router.get("/reports/monthly", response_model=MonthlyReportData, summary="Monatsabrechnung")
async def monthly_report(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Abrechnungsdaten aller Mitarbeiter (Stunden × Satz + Provision)."""
    year, month = _year_month(year, month)
    return await TimeTrackingService(db).monthly_report_data(year, month)


# ==================== Vergütung (Admin) ====================

@router.get("/settings/{employee_id}", response_model=EmployeeSettingsResponse)
async def get_employee_settings(
    employee_id: UUID,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    settings_row = await TimeTrackingService(db).get_employee_settings(employee_id)
    if settings_row is None:
        raise NotFoundException("Keine Vergütungseinstellungen vorhanden")
    return settings_row


@router.put("/settings/{employee_id}", response_model=EmployeeSettingsResponse)
async def save_employee_settings(
    employee_id: UUID,
    data: EmployeeSettingsInput,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TimeTrackingService(db).save_employee_settings(employee_id, data)
