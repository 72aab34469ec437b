"""Templates API Routes - Antwort-Vorlagen und ihre Anhänge."""

from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.profile import Profile
from app.schemas.ticket import (
    RenderedTemplate,
    TemplateAttachmentResponse,
    TemplateCreate,
    TemplateGroup,
    TemplateResponse,
    TemplateUpdate,
)
from app.services.template_service import TemplateService

router = APIRouter(prefix="/templates", tags=["Vorlagen"])


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TemplateService(db).list_templates()


@router.get("/grouped", response_model=list[TemplateGroup])
async def grouped_templates(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Vorlagen nach Kategorie gruppiert (für das Auswahlmenü im Ticket)."""
    return await TemplateService(db).grouped()


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TemplateService(db).get(template_id)


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: TemplateCreate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TemplateService(db).create(user, data)


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TemplateService(db).update(user, template_id, data)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TemplateService(db).delete(user, template_id)


@router.post(
    "/{template_id}/attachments",
    response_model=TemplateAttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_template_attachment(
    template_id: UUID,
    file: UploadFile = File(...),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    attachment = await TemplateService(db).add_attachment(
        user,
        template_id,
        filename=file.filename or "datei",
        content=await file.read(),
        mime_type=file.content_type or "application/octet-stream",
    )
    await db.refresh(attachment)
    return attachment


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_template_attachment(
    attachment_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TemplateService(db).remove_attachment(user, attachment_id)


@router.get("/{template_id}/render/{ticket_id}", response_model=RenderedTemplate)
async def render_template(
    template_id: UUID,
    ticket_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Platzhalter für ein Ticket einsetzen."""
    content = await TemplateService(db).render(template_id, ticket_id, user)
    return RenderedTemplate(template_id=template_id, ticket_id=ticket_id, content=content)
