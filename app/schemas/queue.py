"""Pydantic Schemas für E-Mail- und SMS-Queue sowie Systemstatus."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.models.queue import EmailType, QueueStatus, SMSNotificationType


class EmailQueueItemResponse(BaseModel):
    id: UUID
    type: EmailType
    ticket_id: UUID | None = None
    event_id: UUID | None = None
    recipient_email: str
    subject: str
    status: QueueStatus
    attempts: int
    last_attempt_at: datetime | None = None
    sent_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SMSQueueItemResponse(BaseModel):
    id: UUID
    phone_number: str
    message: str
    event_id: UUID | None = None
    notification_type: SMSNotificationType
    status: QueueStatus
    attempts: int
    twilio_message_id: str | None = None
    sent_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RetryResult(BaseModel):
    success: bool
    reset: int


class IntegrationStatus(BaseModel):
    """Welche externen Dienste konfiguriert sind."""

    smtp: bool
    imap: bool
    google_calendar: bool
    twilio: bool
    storage: bool


class SystemStatus(BaseModel):
    status: str
    environment: str
    database: bool
    integrations: IntegrationStatus
    email_queue: dict[str, int]
    timestamp: datetime
