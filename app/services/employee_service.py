"""Employee Service - Mitarbeiterprofile, Rollen und Status."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import ForbiddenException, NotFoundException, ValidationException
from app.models.profile import Profile, UserRole
from app.schemas.profile import ProfileUpdate

logger = logging.getLogger(__name__)


class EmployeeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_employees(self) -> list[Profile]:
        result = await self.db.execute(select(Profile).order_by(Profile.first_name.asc()))
        return list(result.scalars().all())

    async def list_managers(self) -> list[Profile]:
        result = await self.db.execute(
            select(Profile)
            .where(Profile.role.in_([UserRole.MANAGER, UserRole.ADMIN]))
            .order_by(Profile.first_name.asc())
        )
        return list(result.scalars().all())

    async def active_employees_for_coverage(self) -> list[Profile]:
        """Aktive Mitarbeiter ohne Austrittsdatum (Auswahl für Schichtanfragen)."""
        result = await self.db.execute(
            select(Profile)
            .where(Profile.is_active.is_(True), Profile.exit_date.is_(None))
            .order_by(Profile.first_name.asc())
        )
        return list(result.scalars().all())

    async def get_employee(self, employee_id: UUID) -> Profile:
        employee = await self.db.get(Profile, employee_id)
        if employee is None:
            raise NotFoundException("Mitarbeiter nicht gefunden")
        return employee

    async def update_profile(self, user: Profile, data: ProfileUpdate) -> Profile:
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(user, key, value.strip() if isinstance(value, str) else value)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update_role(self, employee_id: UUID, role: UserRole, admin: Profile) -> Profile:
        if employee_id == admin.id:
            raise ForbiddenException("Die eigene Rolle kann nicht geändert werden")
        employee = await self.get_employee(employee_id)
        old_role = employee.role
        employee.role = role
        await self.db.flush()
        logger.info(f"Rolle von {employee.email} geändert: {old_role.value} -> {role.value} (durch {admin.email})")
        return employee

    async def set_status(self, employee_id: UUID, is_active: bool, admin: Profile) -> Profile:
        if employee_id == admin.id and not is_active:
            raise ValidationException("Das eigene Konto kann nicht deaktiviert werden")
        employee = await self.get_employee(employee_id)
        employee.is_active = is_active
        await self.db.flush()
        logger.info(f"Status von {employee.email}: {'aktiv' if is_active else 'inaktiv'} (durch {admin.email})")
        return employee
