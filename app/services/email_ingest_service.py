"""Email Ingest Service - Posteingang (IMAP) in Tickets überführen.

Ablauf pro Cron-Lauf (/api/cron/fetch-emails):
1. Zugangsdaten laden (aktive email_settings-Zeile, sonst Config)
2. Alle UNSEEN-Nachrichten aus INBOX holen und als gelesen markieren
3. Jede Nachricht parsen und verarbeiten:
   - Blacklist → überspringen
   - [TICKET-000123] im Betreff → Antwort an bestehendes Ticket
   - sonst → neues Ticket (+ Auto-Tags, Eingangsbestätigung)

Ein Fehler bei einer Nachricht bricht den Lauf nicht ab.
"""

import asyncio
import imaplib
import logging
import ssl
from dataclasses import dataclass, field
from email import message_from_bytes, policy
from email.message import EmailMessage
from email.utils import getaddresses
from typing import Callable

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import AppException, StorageException
from app.config import limits, settings
from app.models.queue import EmailSettings, EmailType
from app.models.ticket import Ticket, TicketMessage, TicketPriority, TicketStatus, ticket_tags
from app.services.attachment_service import AttachmentService, AttachmentUpload
from app.services.email_helpers import (
    TicketReference,
    clean_for_json,
    clean_html_for_storage,
    detect_priority,
    extract_ticket_info,
    normalize_email,
    plain_text_to_html,
    single_line,
)
from app.services.email_queue_service import EmailQueueService
from app.services.email_templates import render_ticket_confirmation
from app.services.notification_service import NotificationService
from app.services.tag_service import TagService

logger = logging.getLogger(__name__)

EMPTY_BODY_HTML = "<p><em>[Kein Textinhalt verfügbar]</em></p>"


class IMAPError(Exception):
    """IMAP-Verbindung oder -Abruf fehlgeschlagen."""


# ═══════════════════════════════════════════════════════════════
#  Geparste Nachricht
# ═══════════════════════════════════════════════════════════════

@dataclass
class IncomingAttachment:
    filename: str
    content_type: str
    content: bytes
    disposition: str = "attachment"
    content_id: str | None = None


@dataclass
class IncomingEmail:
    message_id: str | None
    from_address: str
    from_name: str | None
    reply_to: str | None
    subject: str
    text: str | None = None
    html: str | None = None
    attachments: list[IncomingAttachment] = field(default_factory=list)

    @property
    def sender_address(self) -> str:
        """Antwortadresse: Reply-To, sonst From (klein geschrieben)."""
        return normalize_email(self.reply_to or self.from_address)

    @property
    def sender_name(self) -> str:
        return self.from_name or self.sender_address


def _first_address(header_value) -> tuple[str | None, str | None]:
    if not header_value:
        return None, None
    pairs = getaddresses([str(header_value)])
    for name, address in pairs:
        if address:
            return (name or None), address
    return None, None


def parse_message(raw: bytes) -> IncomingEmail:
    """Zerlegt eine RFC822-Nachricht in Header, Text, HTML und Anhänge."""
    msg: EmailMessage = message_from_bytes(raw, policy=policy.default)

    from_name, from_address = _first_address(msg.get("From"))
    _, reply_to = _first_address(msg.get("Reply-To"))

    text_part = msg.get_body(preferencelist=("plain",))
    html_part = msg.get_body(preferencelist=("html",))

    attachments = []
    for part in msg.iter_attachments():
        filename = part.get_filename()
        if not filename:
            continue
        content = part.get_payload(decode=True) or b""
        content_id = part.get("Content-ID")
        attachments.append(
            IncomingAttachment(
                filename=filename,
                content_type=part.get_content_type() or "application/octet-stream",
                content=content,
                disposition=part.get_content_disposition() or "attachment",
                content_id=content_id.strip().strip("<>") if content_id else None,
            )
        )

    return IncomingEmail(
        message_id=msg.get("Message-ID"),
        from_address=from_address or "",
        from_name=from_name,
        reply_to=reply_to,
        subject=single_line(str(msg.get("Subject") or "")),
        text=text_part.get_content() if text_part is not None else None,
        html=html_part.get_content() if html_part is not None else None,
        attachments=attachments,
    )


def build_body(email: IncomingEmail) -> str:
    """HTML bevorzugt (bereinigt), sonst Text → HTML, sonst Platzhalter."""
    if email.html and email.html.strip():
        body = clean_html_for_storage(email.html)
    elif email.text and email.text.strip():
        body = plain_text_to_html(email.text)
    else:
        body = EMPTY_BODY_HTML
    return clean_for_json(body)


def to_uploads(attachments: list[IncomingAttachment]) -> list[AttachmentUpload]:
    return [
        AttachmentUpload(
            filename=attachment.filename,
            content=attachment.content,
            mime_type=attachment.content_type,
            is_inline=attachment.disposition == "inline",
            content_id=attachment.content_id,
        )
        for attachment in attachments
    ]


# ═══════════════════════════════════════════════════════════════
#  IMAP
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class IMAPCredentials:
    host: str
    port: int
    user: str
    password: str


class IMAPMailbox:
    """Blockierender IMAP-Zugriff (wird per asyncio.to_thread aufgerufen)."""

    def __init__(self, credentials: IMAPCredentials):
        self.credentials = credentials
        self.connection: imaplib.IMAP4_SSL | None = None

    def connect(self) -> None:
        try:
            self.connection = imaplib.IMAP4_SSL(
                self.credentials.host,
                self.credentials.port,
                ssl_context=ssl.create_default_context(),
                timeout=limits.TIMEOUT_IMAP,
            )
            self.connection.login(self.credentials.user, self.credentials.password)
        except (imaplib.IMAP4.error, OSError) as e:
            raise IMAPError(f"IMAP-Verbindung fehlgeschlagen: {e}") from e
        logger.info(f"IMAP verbunden: {self.credentials.host}:{self.credentials.port}")

    def disconnect(self) -> None:
        if self.connection is None:
            return
        try:
            self.connection.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"IMAP logout: {e}")
        self.connection = None

    def fetch_unseen(self) -> list[bytes]:
        """Holt alle ungelesenen Nachrichten aus INBOX und markiert sie als gelesen."""
        self.connect()
        try:
            status, _ = self.connection.select("INBOX")
            if status != "OK":
                raise IMAPError("INBOX konnte nicht geöffnet werden")

            status, data = self.connection.search(None, "UNSEEN")
            if status != "OK":
                raise IMAPError("IMAP-Suche fehlgeschlagen")

            messages = []
            for number in data[0].split():
                status, parts = self.connection.fetch(number, "(RFC822)")
                if status != "OK" or not parts or not isinstance(parts[0], tuple):
                    logger.warning(f"IMAP-Nachricht {number!r} konnte nicht geladen werden")
                    continue
                messages.append(parts[0][1])
                self.connection.store(number, "+FLAGS", "\\Seen")
            return messages
        except (imaplib.IMAP4.error, OSError) as e:
            raise IMAPError(f"IMAP-Abruf fehlgeschlagen: {e}") from e
        finally:
            self.disconnect()


def fetch_unseen_messages(credentials: IMAPCredentials) -> list[bytes]:
    return IMAPMailbox(credentials).fetch_unseen()


# ═══════════════════════════════════════════════════════════════
#  Service
# ═══════════════════════════════════════════════════════════════

class EmailIngestService:
    """Verarbeitet eingehende E-Mails zu Tickets und Ticket-Antworten."""

    def __init__(
        self,
        db: AsyncSession,
        fetcher: Callable[[IMAPCredentials], list[bytes]] = fetch_unseen_messages,
        attachments: AttachmentService | None = None,
        queue: EmailQueueService | None = None,
        notifications: NotificationService | None = None,
    ):
        self.db = db
        self.fetcher = fetcher
        self.tags = TagService(db)
        self._attachments = attachments
        self.queue = queue or EmailQueueService(db)
        self.notifications = notifications or NotificationService(db)

    @property
    def attachments(self) -> AttachmentService:
        if self._attachments is None:
            self._attachments = AttachmentService(self.db)
        return self._attachments

    async def load_credentials(self) -> IMAPCredentials | None:
        """Aktive email_settings-Zeile, sonst IMAP-Werte aus der Config."""
        result = await self.db.execute(
            select(EmailSettings)
            .where(EmailSettings.is_active.is_(True))
            .order_by(EmailSettings.created_at.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            return IMAPCredentials(row.imap_host, row.imap_port, row.imap_user, row.imap_password)
        if settings.imap_host and settings.imap_user:
            return IMAPCredentials(
                settings.imap_host,
                settings.imap_port,
                settings.imap_user,
                settings.imap_password,
            )
        return None

    async def fetch_and_process(self) -> dict:
        """Cron-Einstieg: Posteingang abrufen und alle Nachrichten verarbeiten.

        Returns:
            {"processed", "created", "replied", "skipped", "errors"}
        """
        stats = {"processed": 0, "created": 0, "replied": 0, "skipped": 0, "errors": []}

        credentials = await self.load_credentials()
        if credentials is None:
            stats["errors"].append("Keine IMAP-Zugangsdaten konfiguriert")
            logger.warning("E-Mail-Abruf: keine IMAP-Zugangsdaten")
            return stats

        raw_messages = await asyncio.to_thread(self.fetcher, credentials)
        logger.info(f"E-Mail-Abruf: {len(raw_messages)} neue Nachrichten")

        for raw in raw_messages:
            try:
                email = parse_message(raw)
                async with self.db.begin_nested():
                    outcome = await self.process_email(email)
            except (AppException, SQLAlchemyError, ValueError, LookupError) as e:
                message = getattr(e, "message", None) or str(e)
                logger.error(f"E-Mail konnte nicht verarbeitet werden: {message}")
                stats["errors"].append(message)
                continue

            stats["processed"] += 1
            stats[outcome] += 1

        return stats

    async def process_email(self, email: IncomingEmail) -> str:
        """Verarbeitet eine Nachricht. Rückgabe: 'created', 'replied' oder 'skipped'."""
        sender = email.sender_address

        if await self.tags.is_blacklisted(sender):
            logger.info(f"E-Mail von {sender} übersprungen (Blacklist)")
            return "skipped"

        rules = await self.tags.rules_for_sender(sender)
        auto_tag_ids = list(dict.fromkeys(rule.tag_id for rule in rules))
        send_confirmation = all(rule.create_ticket for rule in rules)

        body = build_body(email)
        reference = extract_ticket_info(email.subject)
        ticket = await self._find_ticket(reference) if reference.found else None

        if ticket is not None:
            await self._add_reply(ticket, email, body)
            return "replied"

        await self._create_ticket(email, body, auto_tag_ids, send_confirmation)
        return "created"

    async def _find_ticket(self, reference: TicketReference) -> Ticket | None:
        if reference.ticket_number is not None:
            query = select(Ticket).where(Ticket.ticket_number == reference.ticket_number)
        else:
            query = select(Ticket).where(Ticket.id == reference.ticket_id)
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _store_attachments(self, ticket_id, email: IncomingEmail, message_id=None) -> int:
        """Speichert die Anhänge einzeln. Fehlgeschlagene werden protokolliert und übersprungen."""
        saved = 0
        for upload in to_uploads(email.attachments):
            if not upload.content:
                continue
            try:
                await self.attachments.save_attachment(ticket_id, upload, message_id=message_id)
            except StorageException as e:
                logger.error(f"Anhang {upload.filename} von {email.sender_address} nicht gespeichert: {e.message}")
                continue
            saved += 1
        return saved

    async def _add_reply(self, ticket: Ticket, email: IncomingEmail, body: str) -> None:
        message = TicketMessage(
            ticket_id=ticket.id,
            sender_id=None,
            content=body,
            is_internal=False,
        )
        self.db.add(message)
        await self.db.flush()

        await self._store_attachments(ticket.id, email, message_id=message.id)

        ticket.status = TicketStatus.OPEN
        await self.db.flush()
        logger.info(f"Antwort zu {ticket.display_number} von {email.sender_address}")

    async def _create_ticket(
        self,
        email: IncomingEmail,
        body: str,
        auto_tag_ids: list,
        send_confirmation: bool,
    ) -> Ticket:
        subject = clean_for_json(email.subject[: limits.TICKET_SUBJECT_MAX]) or "Kein Betreff"

        ticket = Ticket(
            subject=subject,
            description=body,
            status=TicketStatus.OPEN,
            priority=TicketPriority(detect_priority(email.subject, email.text or "")),
            created_by=None,
            created_from_email=normalize_email(email.from_address) or email.sender_address,
            reply_to_email=email.sender_address,
        )
        self.db.add(ticket)
        await self.db.flush()

        await self._store_attachments(ticket.id, email)

        if auto_tag_ids:
            await self.db.execute(
                insert(ticket_tags),
                [{"ticket_id": ticket.id, "tag_id": tag_id} for tag_id in auto_tag_ids],
            )
            logger.info(f"{ticket.display_number}: {len(auto_tag_ids)} Auto-Tags gesetzt")

        if send_confirmation:
            confirmation = render_ticket_confirmation(
                name=email.sender_name,
                subject=subject,
                ticket_ref=ticket.display_number,
            )
            await self.queue.enqueue_rendered(
                recipient_email=email.sender_address,
                rendered=confirmation,
                email_type=EmailType.TICKET_CONFIRMATION,
                ticket_id=ticket.id,
            )

        await self.notifications.notify_managers(
            type="new_ticket",
            title="Neues Ticket",
            message=f"{ticket.display_number}: {subject} (von {email.sender_address})",
            link=f"/tickets/{ticket.id}",
            ticket_id=ticket.id,
        )
        logger.info(f"Neues Ticket {ticket.display_number} aus E-Mail von {email.sender_address}")
        return ticket
