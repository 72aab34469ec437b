"""Email Queue Service - Ausgehende E-Mails einreihen und per Cron versenden.

Ticket-E-Mails werden erst beim Versand aufbereitet (Ticket-Nummer im
Betreff, Signatur des Erstellers, direkte Ticket-Anhänge). Alle anderen
Typen werden mit dem gespeicherten Betreff und Inhalt versendet.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import StorageException
from app.berlin_time import utcnow
from app.config import limits
from app.models.profile import Profile
from app.models.queue import EmailQueueItem, EmailType, QueueStatus
from app.models.ticket import Ticket, TicketAttachment, format_ticket_number
from app.services.email_helpers import single_line
from app.services.email_templates import RenderedEmail, render_ticket_message
from app.services.mailer import MailAttachment, Mailer, MailerError, OutgoingMail
from app.services.storage_service import StorageService, ticket_storage

logger = logging.getLogger(__name__)

# Typen, die mit Ticket-Nummer, Signatur und Anhängen verschickt werden
TICKET_EMAIL_TYPES = (EmailType.TICKET, EmailType.TICKET_REPLY)

DEFAULT_SENDER_NAME = "FLIGHTHOUR Team"


class EmailQueueService:
    """Service für die E-Mail-Warteschlange."""

    def __init__(
        self,
        db: AsyncSession,
        mailer: Mailer | None = None,
        storage: StorageService | None = None,
    ):
        self.db = db
        self.mailer = mailer or Mailer()
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = ticket_storage()
        return self._storage

    # ==================== Einreihen ====================

    async def enqueue(
        self,
        recipient_email: str,
        subject: str,
        content: str,
        email_type: EmailType = EmailType.TICKET,
        body: str | None = None,
        ticket_id: UUID | None = None,
        event_id: UUID | None = None,
    ) -> EmailQueueItem:
        """Legt eine E-Mail mit Status pending in die Queue.

        Args:
            recipient_email: Empfänger
            subject: Betreff (bei Ticket-E-Mails ohne Ticket-Nummer)
            content: HTML-Inhalt bzw. Ticket-Nachricht
            email_type: Art der E-Mail
            body: Klartext-Variante
            ticket_id: Optional - zugehöriges Ticket
            event_id: Optional - zugehöriger Kalender-Eintrag
        """
        item = EmailQueueItem(
            type=email_type,
            recipient_email=recipient_email,
            subject=single_line(subject),
            content=content,
            body=body,
            ticket_id=ticket_id,
            event_id=event_id,
            status=QueueStatus.PENDING,
            attempts=0,
        )
        self.db.add(item)
        await self.db.flush()
        logger.info(f"E-Mail eingereiht ({email_type.value}) an {recipient_email}: {subject}")
        return item

    async def enqueue_rendered(
        self,
        recipient_email: str,
        rendered: RenderedEmail,
        email_type: EmailType,
        event_id: UUID | None = None,
        ticket_id: UUID | None = None,
    ) -> EmailQueueItem:
        """Reiht eine fertig gerenderte E-Mail ein (HTML als content, Text als body)."""
        return await self.enqueue(
            recipient_email=recipient_email,
            subject=rendered.subject,
            content=rendered.html,
            body=rendered.text,
            email_type=email_type,
            event_id=event_id,
            ticket_id=ticket_id,
        )

    # ==================== Versand (Cron) ====================

    async def process_queue(self) -> dict:
        """Versendet bis zu QUEUE_BATCH_SIZE ausstehende E-Mails (älteste zuerst).

        Ein Fehler bei einer E-Mail zählt als Fehlversuch dieser E-Mail und
        hält den Rest des Batches nicht auf.

        Returns:
            {"success", "processed", "succeeded", "failed", "errors"}.
            processed = versuchte E-Mails, succeeded = versendet,
            failed = fehlgeschlagene Versuche (inkl. erneut eingereihter).
        """
        result = await self.db.execute(
            select(EmailQueueItem)
            .where(
                EmailQueueItem.status == QueueStatus.PENDING,
                EmailQueueItem.attempts < limits.QUEUE_MAX_ATTEMPTS,
            )
            .order_by(EmailQueueItem.created_at.asc())
            .limit(limits.QUEUE_BATCH_SIZE)
            .with_for_update(skip_locked=True)
        )
        items = list(result.scalars().all())

        if not items:
            return {
                "success": True,
                "message": "No pending emails",
                "processed": 0,
                "succeeded": 0,
                "failed": 0,
                "errors": [],
            }

        stats = {"processed": 0, "succeeded": 0, "failed": 0, "errors": []}

        for item in items:
            item.status = QueueStatus.PROCESSING
            item.attempts += 1
            item.last_attempt_at = utcnow()
            await self.db.flush()

            stats["processed"] += 1
            try:
                mail = await self._build_mail(item)
                outcome = await self.mailer.send(mail)
                if not outcome["success"]:
                    raise MailerError(outcome["error"] or "Email sending returned false")
            except SQLAlchemyError:
                raise
            except Exception as e:
                if not isinstance(e, MailerError):
                    logger.exception(f"E-Mail {item.id} konnte nicht aufbereitet werden")
                self._mark_failed_attempt(item, str(e))
                stats["failed"] += 1
                stats["errors"].append(f"Email {item.id}: {e}")
                continue

            item.status = QueueStatus.SENT
            item.sent_at = utcnow()
            item.error_message = None
            stats["succeeded"] += 1
            logger.info(f"E-Mail {item.id} erfolgreich versendet")

        await self.db.flush()
        return {"success": True, **stats}

    def _mark_failed_attempt(self, item: EmailQueueItem, error: str) -> None:
        item.error_message = error
        if item.attempts >= limits.QUEUE_MAX_ATTEMPTS:
            item.status = QueueStatus.FAILED
            logger.warning(f"E-Mail {item.id} nach {item.attempts} Versuchen als failed markiert")
        else:
            item.status = QueueStatus.PENDING
            logger.info(
                f"E-Mail {item.id} wird erneut versucht "
                f"(Versuch {item.attempts}/{limits.QUEUE_MAX_ATTEMPTS}): {error}"
            )

    async def _build_mail(self, item: EmailQueueItem) -> OutgoingMail:
        if item.type not in TICKET_EMAIL_TYPES or item.ticket_id is None:
            return OutgoingMail(
                to=item.recipient_email,
                subject=item.subject,
                text=item.body or item.content,
                html=item.content if item.body else None,
            )

        ticket = await self.db.get(Ticket, item.ticket_id)
        if ticket is None:
            raise MailerError(f"Ticket {item.ticket_id} existiert nicht mehr")

        sender_name = DEFAULT_SENDER_NAME
        if ticket.created_by:
            creator = await self.db.get(Profile, ticket.created_by)
            if creator is not None:
                sender_name = creator.full_name if creator.full_name != "Unbekannt" else creator.email

        ticket_ref = format_ticket_number(ticket.ticket_number)
        subject = f"[{ticket_ref}] {item.subject}"
        rendered = render_ticket_message(subject, item.content, sender_name, ticket_ref)

        return OutgoingMail(
            to=item.recipient_email,
            subject=subject,
            text=rendered.text,
            html=rendered.html,
            headers={"X-Ticket-Number": ticket_ref},
            attachments=await self._ticket_attachments(ticket.id),
        )

    async def _ticket_attachments(self, ticket_id: UUID) -> list[MailAttachment]:
        """Direkte Ticket-Anhänge (ohne Nachricht). Fehlende Dateien werden übersprungen."""
        result = await self.db.execute(
            select(TicketAttachment).where(
                TicketAttachment.ticket_id == ticket_id,
                TicketAttachment.message_id.is_(None),
            )
        )
        rows = result.scalars().all()
        if not rows or not self.storage.is_available:
            return []

        attachments = []
        for row in rows:
            try:
                content = self.storage.download(row.storage_path)
            except StorageException as e:
                logger.error(f"Anhang-Download fehlgeschlagen: {row.filename}: {e.message}")
                continue
            if content is None:
                logger.warning(f"Anhang fehlt im Storage, übersprungen: {row.storage_path}")
                continue
            attachments.append(MailAttachment(row.original_filename, content, row.mime_type))
        return attachments

    # ==================== Verwaltung ====================

    async def retry(self, item_id: UUID) -> bool:
        """Setzt eine E-Mail zurück auf pending (Versuche 0, Fehler gelöscht)."""
        result = await self.db.execute(
            update(EmailQueueItem)
            .where(EmailQueueItem.id == item_id)
            .values(status=QueueStatus.PENDING, attempts=0, error_message=None)
        )
        return result.rowcount > 0

    async def retry_all_failed(self) -> int:
        result = await self.db.execute(
            update(EmailQueueItem)
            .where(EmailQueueItem.status == QueueStatus.FAILED)
            .values(status=QueueStatus.PENDING, attempts=0, error_message=None)
        )
        count = result.rowcount
        logger.info(f"{count} fehlgeschlagene E-Mails zurückgesetzt")
        return count

    async def list_queue(
        self,
        status: QueueStatus | None = None,
        limit: int = 100,
    ) -> list[EmailQueueItem]:
        query = select(EmailQueueItem).order_by(EmailQueueItem.created_at.desc()).limit(limit)
        if status:
            query = query.where(EmailQueueItem.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def counts_by_status(self) -> dict[str, int]:
        result = await self.db.execute(
            select(EmailQueueItem.status, func.count(EmailQueueItem.id)).group_by(EmailQueueItem.status)
        )
        counts = {status.value: 0 for status in QueueStatus}
        for status, count in result.all():
            counts[status.value] = count
        return counts
