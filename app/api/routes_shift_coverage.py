"""Shift Coverage API Routes - Rundruf für unbesetzte Tage (Manager/Admins)."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_manager
from app.database import get_db
from app.models.profile import Profile
from app.schemas.profile import ProfileBrief
from app.schemas.work_request import (
    ShiftCoverageCreateResult,
    ShiftCoverageInput,
    ShiftCoverageResponse,
)
from app.services.employee_service import EmployeeService
from app.services.shift_coverage_service import ShiftCoverageService

router = APIRouter(prefix="/shift-coverage", tags=["Schichtübernahme"])


@router.get("", response_model=list[ShiftCoverageResponse])
async def list_requests(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Alle Anfragen (abgelaufene werden dabei markiert)."""
    return await ShiftCoverageService(db).list_requests()


@router.get("/open", response_model=list[ShiftCoverageResponse])
async def list_open(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await ShiftCoverageService(db).list_open()


@router.get("/open/count")
async def open_count(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return {"count": await ShiftCoverageService(db).open_count()}


@router.get("/employees", response_model=list[ProfileBrief])
async def selectable_employees(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Aktive Mitarbeiter ohne Austrittsdatum."""
    return await EmployeeService(db).active_employees_for_coverage()


@router.post("", response_model=ShiftCoverageCreateResult, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: ShiftCoverageInput,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    request, counts = await ShiftCoverageService(db).create_request(data, user)
    await db.refresh(request)
    return ShiftCoverageCreateResult(
        request=ShiftCoverageResponse.model_validate(request),
        **counts,
    )


@router.post("/{request_id}/cancel", response_model=ShiftCoverageResponse)
async def cancel_request(
    request_id: UUID,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    request = await ShiftCoverageService(db).cancel_request(request_id)
    await db.refresh(request)
    return request
