"""Document Service - Dokumente für Mitarbeiter im Object Storage.

Allgemeine Dokumente (``general/...``) sieht jeder, persönliche
(``personal/{profile_id}/...``) nur der zugeordnete Mitarbeiter.
Admins sehen alles und dürfen als einzige hochladen und löschen.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.config import limits
from app.models.document import CATEGORY_GENERAL, CATEGORY_PERSONAL, Document
from app.models.profile import Profile
from app.schemas.errors import ErrorCode
from app.services.email_helpers import sanitize_filename
from app.services.storage_service import (
    StorageService,
    document_object_path,
    document_storage,
)

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/png",
    "image/jpeg",
    "image/jpg",
})


@dataclass
class DocumentUpload:
    filename: str
    content: bytes
    mime_type: str
    title: str
    description: str | None = None
    assigned_to: UUID | None = None


def validate_document_upload(upload: DocumentUpload) -> None:
    """Prüft Datei, Größe und Typ.

    Raises:
        ValidationException: mit deutscher Meldung für die erste verletzte Regel
    """
    if not upload.filename or not upload.content:
        raise ValidationException("Keine Datei ausgewählt", ErrorCode.MISSING_REQUIRED_FIELD)
    if len(upload.content) > limits.DOCUMENT_MAX_SIZE_MB * 1024 * 1024:
        raise ValidationException(
            f"Datei ist zu groß. Maximum: {limits.DOCUMENT_MAX_SIZE_MB}MB",
            ErrorCode.FILE_TOO_LARGE,
        )
    if upload.mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationException("Dateityp nicht erlaubt. Erlaubt: PDF, Word, Excel, PNG, JPG")
    if not (upload.title or "").strip():
        raise ValidationException("Titel ist erforderlich", ErrorCode.MISSING_REQUIRED_FIELD, field="title")


class DocumentService:
    def __init__(self, db: AsyncSession, storage: StorageService | None = None):
        self.db = db
        self.storage = storage or document_storage()

    async def list_for_user(self, user: Profile) -> list[Document]:
        query = select(Document).order_by(Document.created_at.desc())
        if not user.is_admin:
            query = query.where(
                or_(Document.assigned_to.is_(None), Document.assigned_to == user.id)
            )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_for_user(self, document_id: UUID, user: Profile) -> Document:
        document = await self.db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Dokument nicht gefunden")
        if not user.is_admin and document.assigned_to not in (None, user.id):
            raise ForbiddenException("Keine Berechtigung für dieses Dokument")
        return document

    async def upload(self, upload: DocumentUpload, user: Profile) -> Document:
        """Lädt ein Dokument hoch (nur Admins).

        Schlägt das Einfügen fehl, wird das hochgeladene Objekt wieder entfernt.
        """
        if not user.is_admin:
            raise ForbiddenException("Keine Berechtigung. Nur Administratoren können Dokumente hochladen.")
        validate_document_upload(upload)

        if upload.assigned_to and await self.db.get(Profile, upload.assigned_to) is None:
            raise NotFoundException("Mitarbeiter nicht gefunden")

        storage_path = document_object_path(upload.filename, upload.assigned_to)
        self.storage.upload(storage_path, upload.content, upload.mime_type)

        document = Document(
            title=upload.title.strip(),
            filename=sanitize_filename(upload.filename),
            original_filename=upload.filename,
            mime_type=upload.mime_type,
            file_size=len(upload.content),
            description=(upload.description or "").strip() or None,
            category=CATEGORY_PERSONAL if upload.assigned_to else CATEGORY_GENERAL,
            storage_path=storage_path,
            assigned_to=upload.assigned_to,
            uploaded_by=user.id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(document)
        except SQLAlchemyError:
            logger.error(f"DB-Eintrag für Dokument fehlgeschlagen, entferne {storage_path}")
            self.storage.delete(storage_path)
            raise

        await self.db.refresh(document)
        logger.info(f"Dokument hochgeladen: {upload.filename} → {storage_path} von {user.email}")
        return document

    async def download(self, document_id: UUID, user: Profile) -> tuple[Document, bytes]:
        document = await self.get_for_user(document_id, user)
        content = self.storage.download(document.storage_path)
        if content is None:
            raise NotFoundException("Datei nicht gefunden")
        return document, content

    async def delete(self, document_id: UUID, user: Profile) -> None:
        if not user.is_admin:
            raise ForbiddenException("Keine Berechtigung. Nur Administratoren können Dokumente löschen.")
        document = await self.db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Dokument nicht gefunden")

        await self.db.delete(document)
        await self.db.flush()
        self.storage.delete(document.storage_path)
        logger.info(f"Dokument gelöscht: {document.storage_path}")
