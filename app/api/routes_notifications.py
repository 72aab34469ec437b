"""Notifications API Routes - Benachrichtigungen des angemeldeten Benutzers."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.profile import Profile
from app.schemas.notification import NotificationPreferences, NotificationResponse, UnreadCount
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Benachrichtigungen"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).list_for_user(user.id)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCount(count=await NotificationService(db).unread_count(user.id))


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return NotificationService(db).get_preferences(user)


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    data: NotificationPreferences,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).update_preferences(user, data)


@router.post("/read-all")
async def mark_all_read(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"updated": await NotificationService(db).mark_all_read(user.id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).mark_read(notification_id, user.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService(db).delete(notification_id, user.id)
