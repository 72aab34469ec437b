"""Template Service - Antwort-Vorlagen für Tickets.

Vorlagen sind von Managern editierbarer Text mit Platzhaltern wie
``{{kunde_email}}``. Gerendert wird in einer Jinja2-Sandbox.
"""

import logging
from uuid import UUID

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.config import limits
from app.models.profile import Profile
from app.models.template import (
    TEMPLATE_CATEGORY_LABELS,
    ResponseTemplate,
    TemplateAttachment,
    TemplateCategory,
)
from app.models.ticket import Ticket
from app.schemas.errors import ErrorCode
from app.schemas.ticket import TemplateCreate, TemplateUpdate
from app.services.storage_service import StorageService, template_storage, unique_object_name

logger = logging.getLogger(__name__)

MANAGE_FORBIDDEN = "Keine Berechtigung. Nur Manager und Administratoren können Vorlagen verwalten."

ALLOWED_ATTACHMENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
    "application/zip",
}

_jinja = SandboxedEnvironment(autoescape=False, keep_trailing_newline=True)


def placeholder_values(ticket: Ticket, employee: Profile | None) -> dict[str, str]:
    """Werte für die Platzhalter einer Vorlage."""
    return {
        "kunde_email": ticket.contact_email or "",
        "ticket_nummer": ticket.display_number,
        "betreff": ticket.subject or "",
        "mitarbeiter_name": employee.full_name if employee else "FLIGHTHOUR Team",
    }


def render_template_content(content: str, values: dict[str, str]) -> str:
    try:
        return _jinja.from_string(content).render(**values)
    except TemplateError as e:
        raise ValidationException(f"Vorlage ist fehlerhaft: {e}") from e


class TemplateService:
    """Service für Antwort-Vorlagen und deren Anhänge."""

    def __init__(self, db: AsyncSession, storage: StorageService | None = None):
        self.db = db
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = template_storage()
        return self._storage

    @staticmethod
    def _require_manager(user: Profile) -> None:
        if not user.is_manager_or_admin:
            raise ForbiddenException(MANAGE_FORBIDDEN)

    # ==================== Abfragen ====================

    async def list_templates(self) -> list[ResponseTemplate]:
        result = await self.db.execute(
            select(ResponseTemplate).order_by(ResponseTemplate.category, ResponseTemplate.name)
        )
        return list(result.scalars().all())

    async def grouped(self) -> list[dict]:
        """Vorlagen nach Kategorie gruppiert (Reihenfolge der Kategorien)."""
        groups: dict[TemplateCategory, list[ResponseTemplate]] = {}
        for template in await self.list_templates():
            groups.setdefault(template.category, []).append(template)
        return [
            {
                "category": category,
                "label": TEMPLATE_CATEGORY_LABELS[category],
                "templates": groups[category],
            }
            for category in TemplateCategory
            if category in groups
        ]

    async def get(self, template_id: UUID) -> ResponseTemplate:
        template = await self.db.get(ResponseTemplate, template_id)
        if template is None:
            raise NotFoundException("Vorlage nicht gefunden", ErrorCode.TEMPLATE_NOT_FOUND)
        return template

    # ==================== Verwaltung ====================

    async def create(self, user: Profile, data: TemplateCreate) -> ResponseTemplate:
        self._require_manager(user)
        template = ResponseTemplate(
            name=data.name,
            content=data.content,
            category=data.category,
            created_by=user.id,
        )
        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template)
        logger.info(f"Vorlage erstellt: {template.name}")
        return template

    async def update(self, user: Profile, template_id: UUID, data: TemplateUpdate) -> ResponseTemplate:
        self._require_manager(user)
        template = await self.get(template_id)
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(template, key, value)
        await self.db.flush()
        await self.db.refresh(template)
        return template

    async def delete(self, user: Profile, template_id: UUID) -> None:
        self._require_manager(user)
        template = await self.get(template_id)
        paths = [attachment.storage_path for attachment in template.attachments]
        await self.db.delete(template)
        await self.db.flush()
        for path in paths:
            self.storage.delete(path)
        logger.info(f"Vorlage gelöscht: {template.name}")

    # ==================== Anhänge ====================

    async def add_attachment(
        self,
        user: Profile,
        template_id: UUID,
        filename: str,
        content: bytes,
        mime_type: str,
    ) -> TemplateAttachment:
        self._require_manager(user)
        await self.get(template_id)

        if not content:
            raise ValidationException("Keine Datei ausgewählt", ErrorCode.MISSING_REQUIRED_FIELD)
        if len(content) > limits.ATTACHMENT_MAX_SIZE_MB * 1024 * 1024:
            raise ValidationException(
                f"Datei zu groß. Maximum: {limits.ATTACHMENT_MAX_SIZE_MB} MB",
                ErrorCode.FILE_TOO_LARGE,
            )
        if mime_type not in ALLOWED_ATTACHMENT_TYPES:
            raise ValidationException("Dateityp nicht erlaubt")

        storage_path = f"{template_id}/{unique_object_name(filename)}"
        self.storage.upload(storage_path, content, mime_type)

        attachment = TemplateAttachment(
            template_id=template_id,
            filename=filename,
            storage_path=storage_path,
            mime_type=mime_type,
            size_bytes=len(content),
        )
        self.db.add(attachment)
        await self.db.flush()
        return attachment

    async def remove_attachment(self, user: Profile, attachment_id: UUID) -> None:
        self._require_manager(user)
        attachment = await self.db.get(TemplateAttachment, attachment_id)
        if attachment is None:
            raise NotFoundException("Anhang nicht gefunden")
        self.storage.delete(attachment.storage_path)
        await self.db.delete(attachment)
        await self.db.flush()

    # ==================== Rendern ====================

    async def render(self, template_id: UUID, ticket_id: UUID, employee: Profile | None) -> str:
        """Setzt die Platzhalter einer Vorlage für ein Ticket ein."""
        template = await self.get(template_id)
        ticket = await self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundException("Ticket nicht gefunden", ErrorCode.TICKET_NOT_FOUND)
        return render_template_content(template.content, placeholder_values(ticket, employee))
