"""Notification Schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: UUID
    type: str
    title: str
    message: str
    link: str | None = None
    read: bool
    ticket_id: UUID | None = None
    work_request_id: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPreferences(BaseModel):
    """Welche Benachrichtigungstypen der Benutzer erhalten möchte."""

    new_ticket: bool = True
    work_request: bool = True
    ticket_assignment: bool = True


class UnreadCount(BaseModel):
    count: int


class CleanupResult(BaseModel):
    success: bool = True
    deleted: int = 0
    message: str
