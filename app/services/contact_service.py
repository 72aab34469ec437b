"""Contact Service - Kundenkontakte aus den Kalender-Buchungen.

Es gibt keine eigene Kontakt-Tabelle: Kontakte werden aus allen Terminen
mit customer_email gebildet (gruppiert nach E-Mail, ohne Groß-/Kleinschreibung).
"""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import NotFoundException
from app.models.calendar import CalendarEvent
from app.models.ticket import Ticket
from app.schemas.contact import Contact, ContactDetail, ContactEvent, ContactTicket
from app.services.email_helpers import normalize_email

logger = logging.getLogger(__name__)


def aggregate_contacts(events: list[CalendarEvent]) -> list[Contact]:
    """Fasst Termine zu Kontakten zusammen.

    Name und Telefon: der erste nicht-leere Wert gewinnt (Termine neueste zuerst).
    Sortiert nach dem letzten Termin, neueste zuerst.
    """
    contacts: dict[str, Contact] = {}
    for event in sorted(events, key=lambda e: e.start_time, reverse=True):
        key = normalize_email(event.customer_email)
        if not key:
            continue
        contact = contacts.get(key)
        if contact is None:
            contact = contacts[key] = Contact(email=key)
        contact.event_count += 1
        if contact.last_event is None or event.start_time > contact.last_event:
            contact.last_event = event.start_time
        if not contact.first_name and event.customer_first_name:
            contact.first_name = event.customer_first_name
        if not contact.last_name and event.customer_last_name:
            contact.last_name = event.customer_last_name
        if not contact.phone and event.customer_phone:
            contact.phone = event.customer_phone

    return sorted(contacts.values(), key=lambda c: c.last_event, reverse=True)


def matches_search(contact: Contact, search: str | None) -> bool:
    term = (search or "").strip().lower()
    if not term:
        return True
    haystack = [contact.email, contact.first_name, contact.last_name, contact.full_name, contact.phone]
    return any(term in value.lower() for value in haystack if value)


class ContactService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_contacts(self, search: str | None = None) -> list[Contact]:
        result = await self.db.execute(
            select(CalendarEvent).where(
                CalendarEvent.customer_email.is_not(None),
                CalendarEvent.customer_email != "",
            )
        )
        contacts = aggregate_contacts(list(result.scalars().all()))
        return [c for c in contacts if matches_search(c, search)]

    async def get_contact(self, email: str) -> ContactDetail:
        """Kontakt mit allen Terminen und zugehörigen Tickets."""
        address = normalize_email(email)
        if not address:
            raise NotFoundException("Kontakt nicht gefunden")

        events_result = await self.db.execute(
            select(CalendarEvent)
            .where(func.lower(CalendarEvent.customer_email) == address)
            .order_by(CalendarEvent.start_time.desc())
        )
        events = list(events_result.scalars().all())
        if not events:
            raise NotFoundException("Kontakt nicht gefunden")

        tickets_result = await self.db.execute(
            select(Ticket)
            .where(
                or_(
                    func.lower(Ticket.created_from_email) == address,
                    func.lower(Ticket.reply_to_email) == address,
                )
            )
            .order_by(Ticket.created_at.desc())
        )
        tickets = list(tickets_result.scalars().all())

        contact = aggregate_contacts(events)[0]
        logger.debug(f"Kontakt {address}: {len(events)} Termine, {len(tickets)} Tickets")
        return ContactDetail(
            **contact.model_dump(),
            events=[ContactEvent.model_validate(e) for e in events],
            tickets=[ContactTicket.model_validate(t) for t in tickets],
        )
