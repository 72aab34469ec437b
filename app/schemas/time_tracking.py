"""Zeiterfassung Schemas."""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.time_tracking import CompensationType
from app.schemas.validators import validate_hex_color


# ── Kategorien ──

class TimeCategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    color: str = "#3b82f6"
    is_active: bool = True

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str) -> str:
        return validate_hex_color(v)


class TimeCategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    color: str | None = None
    is_active: bool | None = None

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        return validate_hex_color(v)


class TimeCategoryResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    color: str
    is_active: bool

    model_config = {"from_attributes": True}


# ── Einträge ──

class TimeEntryInput(BaseModel):
    """Dauer wird im Service geprüft (deutsche Meldung)."""

    date: dt.date
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    duration_minutes: int
    category_id: UUID | None = None
    description: str | None = Field(default=None, max_length=2000)


class TimeEntryResponse(BaseModel):
    id: UUID
    employee_id: UUID
    category_id: UUID | None = None
    category: TimeCategoryResponse | None = None
    date: dt.date
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    duration_minutes: int
    description: str | None = None
    is_approved: bool
    approved_by: UUID | None = None
    approved_at: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class MonthlyStats(BaseModel):
    total_minutes: int = 0
    total_hours: float = 0
    days_worked: int = 0
    average_per_day: int = 0
    entries_count: int = 0


# ── Monatsabschluss ──

class CloseMonthRequest(BaseModel):
    employee_id: UUID
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    evaluation_count: int | None = Field(default=None, ge=0)
    bonus_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class TimeReportResponse(BaseModel):
    id: UUID
    employee_id: UUID
    year: int
    month: int
    total_minutes: int
    is_closed: bool
    closed_by: UUID | None = None
    closed_at: dt.datetime | None = None
    evaluation_count: int
    bonus_amount: Decimal
    notes: str | None = None

    model_config = {"from_attributes": True}


class EmployeeReportRow(BaseModel):
    employee_id: UUID
    employee_name: str
    employee_email: str
    work_days: int
    total_hours: float
    hourly_rate: float
    interim_salary: float
    bonus_amount: float
    evaluation_count: int
    provision: float
    total_salary: float


class ReportTotals(BaseModel):
    total_days: int = 0
    total_hours: float = 0
    total_interim: float = 0
    total_evaluations: int = 0
    total_provision: float = 0
    total_salary: float = 0


class MonthlyReportData(BaseModel):
    year: int
    month: int
    month_name: str
    employees: list[EmployeeReportRow]
    totals: ReportTotals


# ── Vergütung ──

class EmployeeSettingsInput(BaseModel):
    compensation_type: CompensationType = CompensationType.HOURLY
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0)
    monthly_salary: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)


class EmployeeSettingsResponse(EmployeeSettingsInput):
    employee_id: UUID

    model_config = {"from_attributes": True}
