"""Notification Service - In-App-Benachrichtigungen (Glocke im Portal)."""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import NotFoundException
from app.berlin_time import utcnow
from app.config import limits
from app.models.notification import Notification
from app.models.profile import NOTIFICATION_TYPES, Profile, UserRole
from app.schemas.notification import CleanupResult, NotificationPreferences

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(self, user_id: UUID) -> list[Notification]:
        """Die neuesten 50 Benachrichtigungen."""
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limits.NOTIFICATION_LIST_MAX)
        )
        return list(result.scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        return result.scalar() or 0

    async def _get_own(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundException("Benachrichtigung nicht gefunden")
        return notification

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_own(notification_id, user_id)
        notification.read = True
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self._get_own(notification_id, user_id)
        await self.db.delete(notification)
        await self.db.flush()

    async def create_notification(
        self,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        link: str | None = None,
        work_request_id: UUID | None = None,
        ticket_id: UUID | None = None,
    ) -> Notification | None:
        """Legt eine Benachrichtigung an.

        Returns:
            None, wenn der Benutzer den Typ abgeschaltet hat oder nicht existiert
        """
        profile = await self.db.get(Profile, user_id)
        if profile is None:
            logger.warning(f"Benachrichtigung für unbekannten Benutzer {user_id} verworfen")
            return None
        if not profile.wants_notification(type):
            logger.debug(f"Benachrichtigung '{type}' für {profile.email} abgeschaltet")
            return None

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            work_request_id=work_request_id,
            ticket_id=ticket_id,
            read=False,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def notify_managers(
        self,
        type: str,
        title: str,
        message: str,
        link: str | None = None,
        work_request_id: UUID | None = None,
        ticket_id: UUID | None = None,
    ) -> int:
        """Benachrichtigt alle aktiven Manager und Admins. Gibt die Anzahl zurück."""
        result = await self.db.execute(
            select(Profile.id).where(
                Profile.role.in_((UserRole.MANAGER, UserRole.ADMIN)),
                Profile.is_active.is_(True),
            )
        )
        created = 0
        for manager_id in result.scalars().all():
            notification = await self.create_notification(
                user_id=manager_id,
                type=type,
                title=title,
                message=message,
                link=link,
                work_request_id=work_request_id,
                ticket_id=ticket_id,
            )
            if notification is not None:
                created += 1
        return created

    # ==================== Einstellungen ====================

    def get_preferences(self, user: Profile) -> NotificationPreferences:
        return NotificationPreferences(
            **{key: user.wants_notification(key) for key in NOTIFICATION_TYPES}
        )

    async def update_preferences(self, user: Profile, data: NotificationPreferences) -> NotificationPreferences:
        # Neues dict zuweisen, damit SQLAlchemy die JSONB-Änderung erkennt
        user.notification_settings = data.model_dump()
        await self.db.flush()
        logger.info(f"Benachrichtigungs-Einstellungen aktualisiert: {user.email}")
        return self.get_preferences(user)

    async def cleanup(self) -> CleanupResult:
        """Cron: gelesene Benachrichtigungen älter als 30 Tage löschen."""
        cutoff = utcnow() - timedelta(days=limits.NOTIFICATION_RETENTION_DAYS)
        result = await self.db.execute(
            delete(Notification).where(
                Notification.read.is_(True),
                Notification.created_at < cutoff,
            )
        )
        deleted = result.rowcount or 0
        logger.info(f"Notification-Cleanup: {deleted} gelöscht")
        return CleanupResult(
            deleted=deleted,
            message=f"{deleted} gelesene Benachrichtigungen gelöscht",
        )
