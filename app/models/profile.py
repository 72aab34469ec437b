"""Profile Model - Mitarbeiter-Profile (ID = User-ID des Auth-Backends)."""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class UserRole(str, enum.Enum):
    """Rollen im Portal."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


USER_ROLE_LABELS = {
    UserRole.EMPLOYEE: "Mitarbeiter",
    UserRole.MANAGER: "Manager",
    UserRole.ADMIN: "Administrator",
}

# Arten von In-App-Benachrichtigungen, die ein Benutzer abschalten kann
NOTIFICATION_TYPES = ("new_ticket", "work_request", "ticket_assignment")


def default_notification_settings() -> dict[str, bool]:
    return {key: True for key in NOTIFICATION_TYPES}


class Profile(Base):
    """Mitarbeiter-Profil."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(50))
    employee_number: Mapped[str | None] = mapped_column(String(20))

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        default=UserRole.EMPLOYEE,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    exit_date: Mapped[date | None] = mapped_column(Date)
    email_signature: Mapped[str | None] = mapped_column(Text)
    notification_settings: Mapped[dict] = mapped_column(
        JSONB,
        default=default_notification_settings,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_profiles_role", "role"),
        Index("ix_profiles_is_active", "is_active"),
    )

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else "Unbekannt"

    @property
    def is_manager_or_admin(self) -> bool:
        return self.role in (UserRole.MANAGER, UserRole.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def wants_notification(self, notification_type: str) -> bool:
        """Fehlende Einträge gelten als eingeschaltet."""
        return bool((self.notification_settings or {}).get(notification_type, True))

    @property
    def role_label(self) -> str:
        return USER_ROLE_LABELS.get(self.role, self.role.value)

    def __repr__(self) -> str:
        return f"<Profile {self.email} ({self.role.value})>"
