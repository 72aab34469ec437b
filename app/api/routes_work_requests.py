"""Work Requests API Routes - Anträge auf Arbeitstage."""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_admin, require_manager
from app.database import get_db
from app.models.profile import Profile
from app.models.work_request import WorkRequestStatus
from app.schemas.work_request import (
    DirectWorkRequestInput,
    RejectRequest,
    TokenActionResult,
    WorkRequestFilters,
    WorkRequestInput,
    WorkRequestResponse,
    WorkRequestStats,
)
from app.services.work_request_service import WorkRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/work-requests", tags=["Work Requests"])


# ==================== Mitarbeiter ====================

@router.get("/mine", response_model=list[WorkRequestResponse])
async def my_requests(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WorkRequestService(db).my_requests(user.id)


@router.get("/export")
async def export_requests(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Genehmigte Anträge als iCalendar-Datei."""
    content = await WorkRequestService(db).export_ics(user)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="work-requests-{user.id}.ics"'},
    )


@router.post("", response_model=WorkRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: WorkRequestInput,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Neuer Antrag. Manager bekommen eine E-Mail mit Genehmigen/Ablehnen-Links."""
    request = await WorkRequestService(db).create(user, data)
    await db.refresh(request)
    return request


@router.put("/{request_id}", response_model=WorkRequestResponse)
async def update_request(
    request_id: UUID,
    data: WorkRequestInput,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await WorkRequestService(db).update(request_id, user.id, data)
    await db.refresh(request)
    return request


@router.post("/{request_id}/withdraw", response_model=WorkRequestResponse)
async def withdraw_request(
    request_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await WorkRequestService(db).withdraw(request_id, user.id)
    await db.refresh(request)
    return request


# ==================== Manager ====================

@router.get("", response_model=list[WorkRequestResponse])
async def list_requests(
    status_filter: WorkRequestStatus | None = Query(default=None, alias="status"),
    employee_id: UUID | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    filters = WorkRequestFilters(
        status=status_filter,
        employee_id=employee_id,
        date_from=date_from,
        date_to=date_to,
    )
    return await WorkRequestService(db).list_all(filters)


@router.get("/stats", response_model=WorkRequestStats)
async def request_stats(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await WorkRequestService(db).stats()


@router.get("/pending/count")
async def pending_count(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return {"count": await WorkRequestService(db).pending_count()}


@router.get("/conflicts", response_model=list[WorkRequestResponse])
async def conflicts(
    request_date: date = Query(..., alias="date"),
    exclude_id: UUID | None = Query(default=None),
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Andere genehmigte Anträge am selben Tag."""
    return await WorkRequestService(db).conflicts(request_date, exclude_id)


@router.post("/direct", response_model=WorkRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_direct(
    data: DirectWorkRequestInput,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    request = await WorkRequestService(db).create_direct(data.employee_id, data, user)
    await db.refresh(request)
    return request


@router.get("/action/{token}", response_model=TokenActionResult, summary="Link aus der Manager-E-Mail")
async def action_by_token(
    token: str,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    action, request = await WorkRequestService(db).action_by_token(token, user)
    await db.refresh(request)
    return TokenActionResult(
        success=True,
        action=action,
        request=WorkRequestResponse.model_validate(request),
    )


@router.post("/{request_id}/approve", response_model=WorkRequestResponse)
async def approve_request(
    request_id: UUID,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    request = await WorkRequestService(db).approve(request_id, user)
    await db.refresh(request)
    return request


@router.post("/{request_id}/reject", response_model=WorkRequestResponse)
async def reject_request(
    request_id: UUID,
    data: RejectRequest,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    request = await WorkRequestService(db).reject(request_id, user, data.reason)
    await db.refresh(request)
    return request


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: UUID,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await WorkRequestService(db).delete(request_id, user)
