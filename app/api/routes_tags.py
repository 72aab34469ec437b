"""Tags API Routes - Tags, E-Mail-Regeln und Absender-Blacklist."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_manager
from app.database import get_db
from app.models.profile import Profile
from app.schemas.ticket import (
    BlacklistCreate,
    BlacklistResponse,
    EmailRuleCreate,
    EmailRuleResponse,
    EmailRuleUpdate,
    TagCreate,
    TagResponse,
    TagUpdate,
    TagWithCount,
)
from app.services.tag_service import TagService

router = APIRouter(tags=["Tags"])


# ==================== Tags ====================

@router.get("/tags", response_model=list[TagResponse])
async def list_tags(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TagService(db).list_tags()


@router.get("/tags/with-counts", response_model=list[TagWithCount])
async def tags_with_counts(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Tags mit Anzahl zugeordneter Tickets."""
    return await TagService(db).tags_with_counts()


@router.post("/tags", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    data: TagCreate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await TagService(db).create_tag(data)


@router.patch("/tags/{tag_id}", response_model=TagResponse)
async def update_tag(
    tag_id: UUID,
    data: TagUpdate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await TagService(db).update_tag(tag_id, data)


@router.delete("/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: UUID,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    await TagService(db).delete_tag(tag_id)


# ==================== E-Mail-Regeln ====================

@router.get("/tags/{tag_id}/rules", response_model=list[EmailRuleResponse])
async def list_rules(
    tag_id: UUID,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await TagService(db).list_rules(tag_id)


@router.post("/tags/{tag_id}/rules", response_model=EmailRuleResponse, status_code=status.HTTP_201_CREATED)
async def add_rule(
    tag_id: UUID,
    data: EmailRuleCreate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Absender-Adresse mit Tag verknüpfen (E-Mails dieses Absenders bekommen den Tag)."""
    rule = await TagService(db).add_rule(tag_id, data)
    await db.refresh(rule)
    return rule


@router.patch("/tag-rules/{rule_id}", response_model=EmailRuleResponse)
async def update_rule(
    rule_id: UUID,
    data: EmailRuleUpdate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await TagService(db).update_rule(rule_id, data)


@router.delete("/tag-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: UUID,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    await TagService(db).delete_rule(rule_id)


# ==================== Blacklist ====================

@router.get("/blacklist", response_model=list[BlacklistResponse])
async def list_blacklist(
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await TagService(db).list_blacklist()


@router.post("/blacklist", response_model=BlacklistResponse, status_code=status.HTTP_201_CREATED)
async def add_to_blacklist(
    data: BlacklistCreate,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    entry = await TagService(db).add_to_blacklist(data, created_by=user.id)
    await db.refresh(entry)
    return entry


@router.delete("/blacklist/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_blacklist(
    entry_id: UUID,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    await TagService(db).remove_from_blacklist(entry_id)
