"""Attachment Service - Ticket-Anhänge im Object Storage.

Jeder Anhang besteht aus einem Objekt im Bucket ``ticket-attachments``
(Pfad ``tickets/{ticket_id}/{epoch_ms}_{zufall}.{ext}``) und einer Zeile
in ``ticket_attachments``.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import ForbiddenException, NotFoundException
from app.models.profile import Profile
from app.models.ticket import Ticket, TicketAttachment
from app.schemas.errors import ErrorCode
from app.services.email_helpers import sanitize_filename
from app.services.storage_service import (
    StorageService,
    ticket_object_path,
    ticket_storage,
    unique_object_name,
)

logger = logging.getLogger(__name__)


@dataclass
class AttachmentUpload:
    """Eine hochzuladende Datei (aus Formular oder E-Mail)."""

    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"
    is_inline: bool = False
    content_id: str | None = None


class AttachmentService:
    """Service für Ticket-Anhänge."""

    def __init__(self, db: AsyncSession, storage: StorageService | None = None):
        self.db = db
        self.storage = storage or ticket_storage()

    # ==================== Abfragen ====================

    async def list_by_ticket(self, ticket_id: UUID) -> list[TicketAttachment]:
        result = await self.db.execute(
            select(TicketAttachment)
            .where(TicketAttachment.ticket_id == ticket_id)
            .order_by(TicketAttachment.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_by_message(self, message_id: UUID) -> list[TicketAttachment]:
        result = await self.db.execute(
            select(TicketAttachment)
            .where(TicketAttachment.message_id == message_id)
            .order_by(TicketAttachment.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_direct(self, ticket_id: UUID) -> list[TicketAttachment]:
        """Anhänge direkt am Ticket (keiner Nachricht zugeordnet)."""
        result = await self.db.execute(
            select(TicketAttachment)
            .where(
                TicketAttachment.ticket_id == ticket_id,
                TicketAttachment.message_id.is_(None),
            )
            .order_by(TicketAttachment.created_at.asc())
        )
        return list(result.scalars().all())

    async def get(self, attachment_id: UUID) -> TicketAttachment:
        attachment = await self.db.get(TicketAttachment, attachment_id)
        if attachment is None:
            raise NotFoundException("Anhang nicht gefunden")
        return attachment

    # ==================== Speichern ====================

    async def save_attachment(
        self,
        ticket_id: UUID,
        upload: AttachmentUpload,
        message_id: UUID | None = None,
        uploaded_by: UUID | None = None,
    ) -> TicketAttachment:
        """Lädt die Datei hoch und legt die DB-Zeile an.

        Schlägt das Einfügen fehl, wird das hochgeladene Objekt wieder entfernt.
        """
        storage_path = ticket_object_path(ticket_id, unique_object_name(upload.filename))
        self.storage.upload(storage_path, upload.content, upload.mime_type)

        attachment = TicketAttachment(
            ticket_id=ticket_id,
            message_id=message_id,
            filename=sanitize_filename(upload.filename),
            original_filename=upload.filename,
            mime_type=upload.mime_type or "application/octet-stream",
            size_bytes=len(upload.content),
            storage_path=storage_path,
            uploaded_by=uploaded_by,
            is_inline=upload.is_inline,
            content_id=upload.content_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(attachment)
        except SQLAlchemyError:
            logger.error(f"DB-Eintrag für Anhang fehlgeschlagen, entferne {storage_path}")
            self.storage.delete(storage_path)
            raise

        logger.info(f"Anhang gespeichert: {upload.filename} → {storage_path}")
        return attachment

    async def save_many(
        self,
        ticket_id: UUID,
        uploads: list[AttachmentUpload],
        message_id: UUID | None = None,
        uploaded_by: UUID | None = None,
    ) -> int:
        """Speichert mehrere Anhänge. Leere Dateien werden übersprungen."""
        saved = 0
        for upload in uploads:
            if not upload.content:
                continue
            await self.save_attachment(ticket_id, upload, message_id, uploaded_by)
            saved += 1
        return saved

    # ==================== Download / Löschen ====================

    async def download(self, attachment_id: UUID) -> tuple[TicketAttachment, bytes]:
        attachment = await self.get(attachment_id)
        content = self.storage.download(attachment.storage_path)
        if content is None:
            raise NotFoundException(
                "Datei nicht gefunden",
                error_code=ErrorCode.NOT_FOUND,
            )
        return attachment, content

    async def delete_attachment(self, attachment_id: UUID, user: Profile) -> None:
        """Löscht Objekt und DB-Zeile.

        Erlaubt für Uploader, Ticket-Ersteller, Zuständige und Manager/Admins.
        """
        attachment = await self.get(attachment_id)
        ticket = await self.db.get(Ticket, attachment.ticket_id)

        allowed = (
            attachment.uploaded_by == user.id
            or (ticket is not None and ticket.created_by == user.id)
            or (ticket is not None and ticket.assigned_to == user.id)
            or user.is_manager_or_admin
        )
        if not allowed:
            raise ForbiddenException()

        await self.db.delete(attachment)
        await self.db.flush()
        self.storage.delete(attachment.storage_path)
        logger.info(f"Anhang gelöscht: {attachment.storage_path}")
