"""Employees API Routes - Mitarbeiterliste, eigenes Profil, Rollen."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_admin
from app.database import get_db
from app.models.profile import Profile
from app.schemas.profile import ProfileResponse, ProfileUpdate, RoleUpdate, StatusUpdate
from app.services.employee_service import EmployeeService

router = APIRouter(tags=["Mitarbeiter"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(user: Profile = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    data: ProfileUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Eigenes Profil (Name, Telefon, E-Mail-Signatur)."""
    return await EmployeeService(db).update_profile(user, data)


@router.get("/employees", response_model=list[ProfileResponse])
async def list_employees(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService(db).list_employees()


@router.get("/employees/managers", response_model=list[ProfileResponse])
async def list_managers(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService(db).list_managers()


@router.get("/employees/{employee_id}", response_model=ProfileResponse)
async def get_employee(
    employee_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService(db).get_employee(employee_id)


@router.patch("/employees/{employee_id}/role", response_model=ProfileResponse)
async def update_role(
    employee_id: UUID,
    data: RoleUpdate,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService(db).update_role(employee_id, data.role, user)
    await db.refresh(employee)
    return employee


@router.patch("/employees/{employee_id}/status", response_model=ProfileResponse)
async def update_status(
    employee_id: UUID,
    data: StatusUpdate,
    user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService(db).set_status(employee_id, data.is_active, user)
    await db.refresh(employee)
    return employee
