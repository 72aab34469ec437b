"""Profile Schemas (Mitarbeiter)."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.profile import UserRole


class ProfileBrief(BaseModel):
    """Kurzform für Ersteller, Zuständige, Absender."""

    id: UUID
    email: str
    first_name: str | None
    last_name: str | None
    full_name: str

    model_config = {"from_attributes": True}


class ProfileResponse(ProfileBrief):
    phone: str | None
    employee_number: str | None
    role: UserRole
    role_label: str
    is_active: bool
    exit_date: date | None
    email_signature: str | None
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseModel):
    """Eigenes Profil bearbeiten."""

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    email_signature: str | None = None


class RoleUpdate(BaseModel):
    role: UserRole


class StatusUpdate(BaseModel):
    is_active: bool
