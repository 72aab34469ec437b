"""Time Tracking Service - Zeiterfassung, Monatsabschluss, Abrechnungsdaten.

Abgeschlossene Monate sind für Mitarbeiter gesperrt, genehmigte Einträge
unveränderlich. Die Monatsabrechnung wird als JSON geliefert.
"""

import calendar
import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.berlin_time import utcnow
from app.models.profile import Profile
from app.models.time_tracking import EmployeeSettings, TimeCategory, TimeEntry, TimeReport
from app.schemas.errors import ErrorCode
from app.schemas.time_tracking import (
    CloseMonthRequest,
    EmployeeReportRow,
    EmployeeSettingsInput,
    MonthlyReportData,
    MonthlyStats,
    ReportTotals,
    TimeCategoryCreate,
    TimeCategoryUpdate,
    TimeEntryInput,
)

logger = logging.getLogger(__name__)

GERMAN_MONTHS = [
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
]

MONTH_CLOSED_MESSAGE = "Dieser Monat wurde bereits abgeschlossen"


def month_range(year: int, month: int) -> tuple[date, date]:
    """Erster und letzter Tag eines Monats."""
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def compute_monthly_stats(entries: Iterable[TimeEntry]) -> MonthlyStats:
    entries = list(entries)
    total_minutes = sum(e.duration_minutes for e in entries)
    days_worked = len({e.date for e in entries})
    return MonthlyStats(
        total_minutes=total_minutes,
        total_hours=round(total_minutes / 60, 2),
        days_worked=days_worked,
        average_per_day=round(total_minutes / days_worked) if days_worked else 0,
        entries_count=len(entries),
    )


def build_report_row(
    employee: Profile,
    entries: list[TimeEntry],
    hourly_rate: Decimal,
    report: TimeReport | None,
) -> EmployeeReportRow:
    """Abrechnungszeile: Zwischenlohn = Stunden × Satz, Provision = Bonus."""
    stats = compute_monthly_stats(entries)
    rate = float(hourly_rate or 0)
    interim = round(stats.total_hours * rate, 2)
    bonus = float(report.bonus_amount) if report else 0.0
    return EmployeeReportRow(
        employee_id=employee.id,
        employee_name=employee.full_name,
        employee_email=employee.email,
        work_days=stats.days_worked,
        total_hours=stats.total_hours,
        hourly_rate=rate,
        interim_salary=interim,
        bonus_amount=bonus,
        evaluation_count=report.evaluation_count if report else 0,
        provision=bonus,
        total_salary=round(interim + bonus, 2),
    )


def sum_report_rows(rows: list[EmployeeReportRow]) -> ReportTotals:
    return ReportTotals(
        total_days=sum(r.work_days for r in rows),
        total_hours=round(sum(r.total_hours for r in rows), 2),
        total_interim=round(sum(r.interim_salary for r in rows), 2),
        total_evaluations=sum(r.evaluation_count for r in rows),
        total_provision=round(sum(r.provision for r in rows), 2),
        total_salary=round(sum(r.total_salary for r in rows), 2),
    )


class TimeTrackingService:
    """Service für Zeiteinträge, Kategorien und Monatsabschlüsse."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Einträge ====================

    async def entries(self, year: int, month: int, employee_id: UUID) -> list[TimeEntry]:
        first, last = month_range(year, month)
        result = await self.db.execute(
            select(TimeEntry)
            .where(
                TimeEntry.employee_id == employee_id,
                TimeEntry.date >= first,
                TimeEntry.date <= last,
            )
            .order_by(TimeEntry.date.desc(), TimeEntry.start_time.desc())
        )
        return list(result.scalars().all())

    async def monthly_stats(self, year: int, month: int, employee_id: UUID) -> MonthlyStats:
        return compute_monthly_stats(await self.entries(year, month, employee_id))

    async def _month_closed(self, employee_id: UUID, day: date) -> bool:
        result = await self.db.execute(
            select(TimeReport.id).where(
                TimeReport.employee_id == employee_id,
                TimeReport.year == day.year,
                TimeReport.month == day.month,
                TimeReport.is_closed.is_(True),
            )
        )
        return result.first() is not None

    async def _ensure_open_month(self, employee_id: UUID, day: date) -> None:
        if await self._month_closed(employee_id, day):
            raise ValidationException(MONTH_CLOSED_MESSAGE, ErrorCode.MONTH_CLOSED)

    async def _get_own_entry(self, entry_id: UUID, user_id: UUID) -> TimeEntry:
        entry = await self.db.get(TimeEntry, entry_id)
        if entry is None or entry.employee_id != user_id:
            raise NotFoundException("Eintrag nicht gefunden")
        return entry

    async def create_entry(self, user_id: UUID, data: TimeEntryInput) -> TimeEntry:
        if data.duration_minutes <= 0:
            raise ValidationException("Dauer muss größer als 0 sein", field="duration_minutes")
        await self._ensure_open_month(user_id, data.date)

        entry = TimeEntry(
            employee_id=user_id,
            category_id=data.category_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            duration_minutes=data.duration_minutes,
            description=data.description,
            is_approved=False,
        )
        self.db.add(entry)
        await self.db.flush()
        await self.db.refresh(entry)
        return entry

    async def update_entry(self, entry_id: UUID, user_id: UUID, data: TimeEntryInput) -> TimeEntry:
        entry = await self._get_own_entry(entry_id, user_id)
        if entry.is_approved:
            raise ValidationException("Genehmigte Einträge können nicht bearbeitet werden", ErrorCode.INVALID_STATE)
        if data.duration_minutes <= 0:
            raise ValidationException("Dauer muss größer als 0 sein", field="duration_minutes")
        await self._ensure_open_month(user_id, entry.date)
        if data.date != entry.date:
            await self._ensure_open_month(user_id, data.date)

        entry.date = data.date
        entry.start_time = data.start_time
        entry.end_time = data.end_time
        entry.duration_minutes = data.duration_minutes
        entry.category_id = data.category_id
        entry.description = data.description
        await self.db.flush()
        await self.db.refresh(entry)
        return entry

    async def delete_entry(self, entry_id: UUID, user_id: UUID) -> None:
        entry = await self._get_own_entry(entry_id, user_id)
        if entry.is_approved:
            raise ValidationException("Genehmigte Einträge können nicht gelöscht werden", ErrorCode.INVALID_STATE)
        await self._ensure_open_month(user_id, entry.date)
        await self.db.delete(entry)
        await self.db.flush()

    # ==================== Kategorien ====================

    async def categories(self, include_inactive: bool = False) -> list[TimeCategory]:
        query = select(TimeCategory).order_by(TimeCategory.name.asc())
        if not include_inactive:
            query = query.where(TimeCategory.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get_category(self, category_id: UUID) -> TimeCategory:
        category = await self.db.get(TimeCategory, category_id)
        if category is None:
            raise NotFoundException("Kategorie nicht gefunden")
        return category

    async def create_category(self, data: TimeCategoryCreate) -> TimeCategory:
        category = TimeCategory(**data.model_dump())
        self.db.add(category)
        await self.db.flush()
        return category

    async def update_category(self, category_id: UUID, data: TimeCategoryUpdate) -> TimeCategory:
        category = await self._get_category(category_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(category, key, value)
        await self.db.flush()
        return category

    async def delete_category(self, category_id: UUID) -> None:
        category = await self._get_category(category_id)
        await self.db.delete(category)
        await self.db.flush()

    # ==================== Monatsabschluss (Admin) ====================

    async def _get_report(self, employee_id: UUID, year: int, month: int) -> TimeReport | None:
        result = await self.db.execute(
            select(TimeReport).where(
                TimeReport.employee_id == employee_id,
                TimeReport.year == year,
                TimeReport.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def close_month(self, data: CloseMonthRequest, admin: Profile) -> TimeReport:
        stats = await self.monthly_stats(data.year, data.month, data.employee_id)
        report = await self._get_report(data.employee_id, data.year, data.month)
        if report is None:
            report = TimeReport(employee_id=data.employee_id, year=data.year, month=data.month)
            self.db.add(report)

        report.total_minutes = stats.total_minutes
        report.is_closed = True
        report.closed_by = admin.id
        report.closed_at = utcnow()
        report.notes = data.notes or None
        if data.evaluation_count is not None:
            report.evaluation_count = data.evaluation_count
        if data.bonus_amount is not None:
            report.bonus_amount = data.bonus_amount
        await self.db.flush()
        logger.info(f"Monat {data.month:02d}/{data.year} für {data.employee_id} abgeschlossen von {admin.email}")
        return report

    async def reopen_month(self, employee_id: UUID, year: int, month: int) -> TimeReport:
        report = await self._get_report(employee_id, year, month)
        if report is None:
            raise NotFoundException("Kein Monatsabschluss vorhanden")
        report.is_closed = False
        report.closed_by = None
        report.closed_at = None
        await self.db.flush()
        return report

    async def reports_for_month(self, year: int, month: int) -> list[TimeReport]:
        result = await self.db.execute(
            select(TimeReport)
            .where(TimeReport.year == year, TimeReport.month == month)
            .order_by(TimeReport.created_at.desc())
        )
        return list(result.scalars().all())

    async def monthly_report_data(self, year: int, month: int) -> MonthlyReportData:
        """Abrechnung aller Mitarbeiter mit Einträgen oder Abschluss im Monat."""
        first, last = month_range(year, month)
        entries_result = await self.db.execute(
            select(TimeEntry).where(TimeEntry.date >= first, TimeEntry.date <= last)
        )
        entries_by_employee: dict[UUID, list[TimeEntry]] = {}
        for entry in entries_result.scalars().all():
            entries_by_employee.setdefault(entry.employee_id, []).append(entry)

        reports = {r.employee_id: r for r in await self.reports_for_month(year, month)}
        employee_ids = set(entries_by_employee) | set(reports)

        rows: list[EmployeeReportRow] = []
        if employee_ids:
            profiles = await self.db.execute(
                select(Profile).where(Profile.id.in_(employee_ids)).order_by(Profile.last_name.asc())
            )
            settings_result = await self.db.execute(
                select(EmployeeSettings).where(EmployeeSettings.employee_id.in_(employee_ids))
            )
            rates = {s.employee_id: s.hourly_rate for s in settings_result.scalars().all()}
            for employee in profiles.scalars().all():
                rows.append(
                    build_report_row(
                        employee,
                        entries_by_employee.get(employee.id, []),
                        rates.get(employee.id, Decimal("0")),
                        reports.get(employee.id),
                    )
                )

        return MonthlyReportData(
            year=year,
            month=month,
            month_name=GERMAN_MONTHS[month - 1],
            employees=rows,
            totals=sum_report_rows(rows),
        )

    # ==================== Vergütung ====================

    async def get_employee_settings(self, employee_id: UUID) -> EmployeeSettings | None:
        result = await self.db.execute(
            select(EmployeeSettings).where(EmployeeSettings.employee_id == employee_id)
        )
        return result.scalar_one_or_none()

    async def save_employee_settings(self, employee_id: UUID, data: EmployeeSettingsInput) -> EmployeeSettings:
        if await self.db.get(Profile, employee_id) is None:
            raise NotFoundException("Mitarbeiter nicht gefunden")
        settings_row = await self.get_employee_settings(employee_id)
        if settings_row is None:
            settings_row = EmployeeSettings(employee_id=employee_id)
            self.db.add(settings_row)
        for key, value in data.model_dump().items():
            setattr(settings_row, key, value)
        await self.db.flush()
        return settings_row

    @staticmethod
    def ensure_can_view(user: Profile, employee_id: UUID) -> None:
        """Nur Admins dürfen die Zeiten anderer Mitarbeiter sehen."""
        if employee_id != user.id and not user.is_admin:
            raise ForbiddenException("Keine Berechtigung")
