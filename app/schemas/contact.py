"""Contact Schemas - Kunden aus den Kalender-Buchungen."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.models.calendar import EventStatus, EventType
from app.models.ticket import TicketStatus


class Contact(BaseModel):
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    event_count: int = 0
    last_event: datetime | None = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class ContactEvent(BaseModel):
    id: UUID
    title: str | None
    event_type: EventType
    status: EventStatus
    start_time: datetime
    end_time: datetime

    model_config = {"from_attributes": True}


class ContactTicket(BaseModel):
    id: UUID
    display_number: str
    subject: str
    status: TicketStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class ContactDetail(Contact):
    events: list[ContactEvent] = []
    tickets: list[ContactTicket] = []
