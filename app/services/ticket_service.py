"""Ticket Service - Support-Tickets, Nachrichten und Statistik."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.exception_handlers import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.berlin_time import german_day_bounds, utc_to_german, utcnow
from app.config import limits
from app.models.profile import Profile
from app.models.queue import EmailType
from app.models.ticket import (
    Tag,
    Ticket,
    TicketAttachment,
    TicketMessage,
    TicketPriority,
    TicketStatus,
    ticket_tags,
)
from app.schemas.errors import ErrorCode
from app.schemas.pagination import PaginatedResponse, PaginationParams
from app.schemas.ticket import (
    DatePreset,
    StatsRange,
    TicketListFilter,
    TicketListParams,
    TicketStatsResponse,
    TicketUpdate,
)
from app.services.attachment_service import AttachmentService, AttachmentUpload
from app.services.email_helpers import single_line
from app.services.email_queue_service import EmailQueueService
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

# Sonntag zuerst (Reihenfolge der Wochentags-Verteilung)
WEEKDAY_NAMES_SUNDAY_FIRST = [
    "Sonntag",
    "Montag",
    "Dienstag",
    "Mittwoch",
    "Donnerstag",
    "Freitag",
    "Samstag",
]

STATS_RANGE_DAYS = {
    StatsRange.DAY: 1,
    StatsRange.WEEK: 7,
    StatsRange.MONTH: 30,
    StatsRange.YEAR: 365,
}


def preset_start(preset: DatePreset, now: datetime | None = None) -> datetime:
    """Beginn des Zeitraums für einen Datums-Preset (UTC).

    today = Beginn des Berliner Kalendertags, week/month = letzte 7/30 Tage.
    """
    now = now or utcnow()
    if preset == DatePreset.TODAY:
        return german_day_bounds(utc_to_german(now).date())[0]
    if preset == DatePreset.WEEK:
        return now - timedelta(days=7)
    return now - timedelta(days=30)


# ═══════════════════════════════════════════════════════════════
#  Statistik (reine Berechnung, ohne DB)
# ═══════════════════════════════════════════════════════════════

@dataclass
class TicketStatsRow:
    """Die für die Statistik relevanten Felder eines Tickets."""

    created_at: datetime
    updated_at: datetime
    status: TicketStatus
    priority: TicketPriority
    is_spam: bool = False
    created_by: UUID | None = None
    assignee_name: str | None = None
    # (sender_id, created_at) aller Nachrichten
    messages: list[tuple[UUID | None, datetime]] = field(default_factory=list)


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


def compute_ticket_stats(rows: list[TicketStatsRow]) -> TicketStatsResponse:
    """Berechnet KPIs und Verteilungen. Spam zählt nur in die Spam-Quote."""
    if not rows:
        return TicketStatsResponse()

    regular = [r for r in rows if not r.is_spam]
    total = len(regular)
    spam_rate = (len(rows) - total) / len(rows) * 100

    response_times = []
    for row in regular:
        replies = sorted(at for sender, at in row.messages if sender != row.created_by)
        if replies:
            response_times.append(_hours(replies[0] - row.created_at))

    resolution_times = [
        _hours(r.updated_at - r.created_at)
        for r in regular
        if r.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED)
    ]

    workload = Counter(r.assignee_name for r in regular if r.assignee_name)
    by_date = Counter(utc_to_german(r.created_at).date().isoformat() for r in regular)
    by_status = Counter(r.status.value for r in regular)
    by_priority = Counter(r.priority.value for r in regular)
    # Python: Montag=0 … Sonntag=6 → Sonntag zuerst
    by_weekday = Counter((utc_to_german(r.created_at).weekday() + 1) % 7 for r in regular)

    def distribution(counter: Counter) -> list[dict]:
        return [
            {"key": key, "count": count, "percentage": count / total * 100 if total else 0.0}
            for key, count in counter.items()
        ]

    return TicketStatsResponse(
        total_tickets=total,
        open_tickets=sum(1 for r in regular if r.status == TicketStatus.OPEN),
        avg_response_time=sum(response_times) / len(response_times) if response_times else None,
        avg_resolution_time=sum(resolution_times) / len(resolution_times) if resolution_times else None,
        spam_rate=spam_rate,
        team_workload=[
            {"employee_name": name, "ticket_count": count}
            for name, count in sorted(workload.items(), key=lambda item: item[1], reverse=True)
        ],
        tickets_over_time=[{"date": day, "count": count} for day, count in sorted(by_date.items())],
        status_distribution=distribution(by_status),
        priority_distribution=distribution(by_priority),
        weekday_distribution=[
            {"weekday": WEEKDAY_NAMES_SUNDAY_FIRST[day], "count": count}
            for day, count in sorted(by_weekday.items())
        ],
    )


# ═══════════════════════════════════════════════════════════════
#  Service
# ═══════════════════════════════════════════════════════════════

class TicketService:
    """Service für Tickets und Ticket-Nachrichten."""

    def __init__(
        self,
        db: AsyncSession,
        attachments: AttachmentService | None = None,
        queue: EmailQueueService | None = None,
        notifications: NotificationService | None = None,
    ):
        self.db = db
        self._attachments = attachments
        self.queue = queue or EmailQueueService(db)
        self.notifications = notifications or NotificationService(db)

    @property
    def attachments(self) -> AttachmentService:
        if self._attachments is None:
            self._attachments = AttachmentService(self.db)
        return self._attachments

    # ==================== Abfragen ====================

    async def list_tickets(self, params: TicketListParams, user: Profile) -> dict:
        """Paginierte Ticket-Liste (neueste zuerst).

        Returns:
            {"items", "total", "page", "per_page", "pages"}
        """
        query = select(Ticket)

        if params.filter == TicketListFilter.SPAM:
            if not user.is_manager_or_admin:
                raise ForbiddenException()
            query = query.where(Ticket.is_spam.is_(True))
        else:
            query = query.where(Ticket.is_spam.is_(False))

        if params.filter == TicketListFilter.ASSIGNED:
            query = query.where(Ticket.assigned_to == user.id)

        if params.status:
            query = query.where(Ticket.status == params.status)

        if params.search:
            pattern = f"%{params.search}%"
            query = query.where(
                or_(
                    Ticket.subject.ilike(pattern),
                    Ticket.description.ilike(pattern),
                    Ticket.created_from_email.ilike(pattern),
                )
            )

        if params.tags:
            query = query.where(Ticket.tags.any(Tag.id.in_(params.tags)))

        if params.date_preset:
            query = query.where(Ticket.created_at >= preset_start(params.date_preset))
        if params.created_from:
            query = query.where(Ticket.created_at >= german_day_bounds(params.created_from)[0])
        if params.created_to:
            query = query.where(Ticket.created_at < german_day_bounds(params.created_to)[1])

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()

        page = PaginationParams(page=params.page)
        result = await self.db.execute(
            query.order_by(Ticket.created_at.desc())
            .offset(page.offset)
            .limit(page.per_page)
        )
        items = list(result.scalars().all())

        return {
            "items": items,
            "total": total,
            "page": page.page,
            "per_page": page.per_page,
            "pages": PaginatedResponse.page_count(total, page.per_page),
        }

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        """Ticket mit Nachrichten (aufsteigend), Tags und Anhängen."""
        result = await self.db.execute(
            select(Ticket)
            .where(Ticket.id == ticket_id)
            .options(
                selectinload(Ticket.messages),
                selectinload(Ticket.attachments),
            )
        )
        ticket = result.scalar_one_or_none()
        if ticket is None:
            raise NotFoundException("Ticket nicht gefunden", ErrorCode.TICKET_NOT_FOUND)
        return ticket

    async def _get_plain(self, ticket_id: UUID) -> Ticket:
        ticket = await self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundException("Ticket nicht gefunden", ErrorCode.TICKET_NOT_FOUND)
        return ticket

    # ==================== Anlegen / Ändern ====================

    async def create_ticket(
        self,
        user: Profile,
        subject: str | None,
        description: str | None,
        recipient_email: str | None,
        priority: TicketPriority = TicketPriority.MEDIUM,
        files: list[AttachmentUpload] | None = None,
    ) -> Ticket:
        """Legt ein Ticket an und reiht die E-Mail an den Empfänger ein."""
        subject = single_line(subject)
        description = (description or "").strip()
        recipient_email = (recipient_email or "").strip()
        if not subject or not description or not recipient_email:
            raise ValidationException("Pflichtfelder fehlen", ErrorCode.MISSING_REQUIRED_FIELD)

        ticket = Ticket(
            subject=subject[: limits.TICKET_SUBJECT_MAX],
            description=description,
            priority=priority,
            status=TicketStatus.OPEN,
            created_by=user.id,
            created_from_email=recipient_email,
        )
        self.db.add(ticket)
        await self.db.flush()

        if files:
            saved = await self.attachments.save_many(ticket.id, files, uploaded_by=user.id)
            logger.info(f"Ticket {ticket.display_number}: {saved} Anhänge gespeichert")

        await self.queue.enqueue(
            recipient_email=recipient_email,
            subject=subject,
            content=description,
            email_type=EmailType.TICKET,
            ticket_id=ticket.id,
        )

        logger.info(f"Ticket erstellt: {ticket.display_number} von {user.email}")
        return ticket

    async def update_ticket(self, ticket_id: UUID, data: TicketUpdate, actor: Profile | None = None) -> Ticket:
        ticket = await self._get_plain(ticket_id)
        previous_assignee = ticket.assigned_to
        changes = data.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if key in ("status", "priority", "is_spam") and value is None:
                continue
            setattr(ticket, key, value)
        ticket.updated_at = utcnow()
        await self.db.flush()
        logger.info(f"Ticket {ticket.display_number} aktualisiert: {sorted(changes)}")

        assignee = ticket.assigned_to
        if assignee and assignee != previous_assignee and (actor is None or assignee != actor.id):
            await self.notifications.create_notification(
                user_id=assignee,
                type="ticket_assignment",
                title="Ticket zugewiesen",
                message=f"{ticket.display_number}: {ticket.subject}",
                link=f"/tickets/{ticket.id}",
                ticket_id=ticket.id,
            )
        return ticket

    async def update_ticket_tags(self, ticket_id: UUID, tag_ids: list[UUID]) -> Ticket:
        """Ersetzt die Tags eines Tickets vollständig."""
        ticket = await self._get_plain(ticket_id)
        await self.db.execute(delete(ticket_tags).where(ticket_tags.c.ticket_id == ticket_id))
        unique_ids = list(dict.fromkeys(tag_ids))
        if unique_ids:
            await self.db.execute(
                insert(ticket_tags),
                [{"ticket_id": ticket_id, "tag_id": tag_id} for tag_id in unique_ids],
            )
        await self.db.flush()
        await self.db.refresh(ticket, attribute_names=["tags"])
        return ticket

    async def add_message(
        self,
        ticket_id: UUID,
        user: Profile,
        content: str,
        is_internal: bool = False,
    ) -> TicketMessage:
        """Fügt eine Nachricht hinzu. Externe Antworten gehen per E-Mail raus."""
        ticket = await self._get_plain(ticket_id)

        message = TicketMessage(
            ticket_id=ticket.id,
            sender_id=user.id,
            content=content,
            is_internal=is_internal,
        )
        self.db.add(message)

        recipient = ticket.contact_email
        if not is_internal and ticket.created_from_email and recipient:
            await self.queue.enqueue(
                recipient_email=recipient,
                subject=ticket.subject,
                content=content,
                email_type=EmailType.TICKET_REPLY,
                ticket_id=ticket.id,
            )
            message.email_status = "queued"

        ticket.updated_at = utcnow()
        await self.db.flush()
        return message

    async def delete_ticket(self, ticket_id: UUID, user: Profile) -> None:
        """Nur der Ersteller oder ein Admin darf löschen."""
        ticket = await self._get_plain(ticket_id)
        if ticket.created_by != user.id and not user.is_admin:
            raise ForbiddenException()

        result = await self.db.execute(
            select(TicketAttachment.storage_path).where(TicketAttachment.ticket_id == ticket_id)
        )
        paths = list(result.scalars().all())

        await self.db.delete(ticket)
        await self.db.flush()

        for path in paths:
            self.attachments.storage.delete(path)
        logger.info(f"Ticket {ticket.display_number} gelöscht ({len(paths)} Anhänge)")

    # ==================== Statistik ====================

    async def ticket_stats(self, user: Profile, stats_range: StatsRange = StatsRange.MONTH) -> TicketStatsResponse:
        """Statistik über den Zeitraum. Admins sehen alle Tickets, sonst nur eigene/zugewiesene."""
        start = utcnow() - timedelta(days=STATS_RANGE_DAYS[stats_range])
        query = (
            select(Ticket)
            .where(Ticket.created_at >= start)
            .options(selectinload(Ticket.messages))
            .order_by(Ticket.created_at.asc())
        )
        if not user.is_admin:
            query = query.where(or_(Ticket.created_by == user.id, Ticket.assigned_to == user.id))

        result = await self.db.execute(query)
        rows = [
            TicketStatsRow(
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
                status=ticket.status,
                priority=ticket.priority,
                is_spam=ticket.is_spam,
                created_by=ticket.created_by,
                assignee_name=ticket.assignee.full_name if ticket.assignee else None,
                messages=[(m.sender_id, m.created_at) for m in ticket.messages],
            )
            for ticket in result.scalars().all()
        ]
        return compute_ticket_stats(rows)

