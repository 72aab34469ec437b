"""Tickets API Routes - Support-Tickets, Nachrichten, Anhänge."""

import logging
from datetime import date
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.profile import Profile
from app.models.ticket import TicketPriority, TicketStatus
from app.schemas.ticket import (
    AttachmentResponse,
    DatePreset,
    MessageCreate,
    MessageResponse,
    StatsRange,
    TicketDetail,
    TicketListFilter,
    TicketListParams,
    TicketListResponse,
    TicketStatsResponse,
    TicketTagsUpdate,
    TicketUpdate,
)
from app.services.attachment_service import AttachmentService, AttachmentUpload
from app.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


async def _read_uploads(files: list[UploadFile] | None) -> list[AttachmentUpload]:
    uploads = []
    for upload in files or []:
        content = await upload.read()
        if not content:
            continue
        uploads.append(
            AttachmentUpload(
                filename=upload.filename or "datei",
                content=content,
                mime_type=upload.content_type or "application/octet-stream",
            )
        )
    return uploads


# ==================== Liste / Statistik ====================

@router.get("", response_model=TicketListResponse, summary="Tickets auflisten")
async def list_tickets(
    filter: TicketListFilter = Query(default=TicketListFilter.ALL),
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=200),
    tags: list[UUID] = Query(default=[]),
    date_preset: DatePreset | None = Query(default=None),
    created_from: date | None = Query(default=None),
    created_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Paginierte Ticket-Liste (10 pro Seite, neueste zuerst)."""
    params = TicketListParams(
        filter=filter,
        status=status_filter,
        search=search,
        tags=tags,
        date_preset=date_preset,
        created_from=created_from,
        created_to=created_to,
        page=page,
    )
    return await TicketService(db).list_tickets(params, user)


@router.get("/stats", response_model=TicketStatsResponse, summary="Ticket-Statistik")
async def ticket_stats(
    range: StatsRange = Query(default=StatsRange.MONTH),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TicketService(db).ticket_stats(user, range)


# ==================== CRUD ====================

@router.post("", response_model=TicketDetail, status_code=status.HTTP_201_CREATED, summary="Ticket erstellen")
async def create_ticket(
    subject: str | None = Form(default=None),
    description: str | None = Form(default=None),
    recipient_email: str | None = Form(default=None),
    priority: TicketPriority = Form(default=TicketPriority.MEDIUM),
    files: list[UploadFile] | None = File(default=None),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Legt ein Ticket an (multipart, optional mit Anhängen) und verschickt die E-Mail."""
    service = TicketService(db)
    ticket = await service.create_ticket(
        user,
        subject=subject,
        description=description,
        recipient_email=recipient_email,
        priority=priority,
        files=await _read_uploads(files),
    )
    return await service.get_ticket(ticket.id)


@router.get("/{ticket_id}", response_model=TicketDetail)
async def get_ticket(
    ticket_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TicketService(db).get_ticket(ticket_id)


@router.patch("/{ticket_id}", response_model=TicketDetail)
async def update_ticket(
    ticket_id: UUID,
    data: TicketUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = TicketService(db)
    await service.update_ticket(ticket_id, data, actor=user)
    return await service.get_ticket(ticket_id)


@router.put("/{ticket_id}/tags", response_model=TicketDetail)
async def update_ticket_tags(
    ticket_id: UUID,
    data: TicketTagsUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = TicketService(db)
    await service.update_ticket_tags(ticket_id, data.tag_ids)
    return await service.get_ticket(ticket_id)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(
    ticket_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TicketService(db).delete_ticket(ticket_id, user)


# ==================== Nachrichten ====================

@router.post(
    "/{ticket_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    ticket_id: UUID,
    data: MessageCreate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Neue Nachricht. Externe Antworten werden per E-Mail verschickt."""
    message = await TicketService(db).add_message(ticket_id, user, data.content, data.is_internal)
    await db.refresh(message)
    return message


# ==================== Anhänge ====================

@router.get("/{ticket_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    ticket_id: UUID,
    direct_only: bool = Query(default=False, description="Nur Anhänge ohne Nachricht"),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = AttachmentService(db)
    if direct_only:
        return await service.list_direct(ticket_id)
    return await service.list_by_ticket(ticket_id)


@router.post(
    "/{ticket_id}/attachments",
    response_model=list[AttachmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachments(
    ticket_id: UUID,
    files: list[UploadFile] = File(...),
    message_id: UUID | None = Form(default=None),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ticket_service = TicketService(db)
    await ticket_service.get_ticket(ticket_id)
    service = ticket_service.attachments
    saved = []
    for upload in await _read_uploads(files):
        saved.append(
            await service.save_attachment(
                ticket_id=ticket_id,
                message_id=message_id,
                upload=upload,
                uploaded_by=user.id,
            )
        )
    for attachment in saved:
        await db.refresh(attachment)
    return saved


@router.get("/attachments/{attachment_id}/download")
async def download_attachment(
    attachment_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    attachment, content = await AttachmentService(db).download(attachment_id)
    return Response(
        content=content,
        media_type=attachment.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(attachment.original_filename)}",
        },
    )


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AttachmentService(db).delete_attachment(attachment_id, user)
