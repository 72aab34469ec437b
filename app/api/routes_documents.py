"""Documents API Routes - Dokumente für Mitarbeiter."""

import logging
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.profile import Profile
from app.schemas.document import DocumentResponse
from app.services.document_service import DocumentService, DocumentUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Dokumente"])


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins sehen alle Dokumente, Mitarbeiter allgemeine und eigene."""
    return await DocumentService(db).list_for_user(user)


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile | None = File(default=None),
    title: str = Form(default=""),
    description: str | None = Form(default=None),
    assigned_to: UUID | None = Form(default=None),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    content = await file.read() if file is not None else b""
    upload = DocumentUpload(
        filename=(file.filename if file is not None else "") or "",
        content=content,
        mime_type=(file.content_type if file is not None else "") or "application/octet-stream",
        title=title,
        description=description,
        assigned_to=assigned_to,
    )
    return await DocumentService(db).upload(upload, user)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DocumentService(db).get_for_user(document_id, user)


@router.get("/{document_id}/download")
async def download_document(
    document_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    document, content = await DocumentService(db).download(document_id, user)
    return Response(
        content=content,
        media_type=document.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(document.original_filename)}",
        },
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await DocumentService(db).delete(document_id, user)
