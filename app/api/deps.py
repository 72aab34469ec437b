"""Gemeinsame FastAPI-Dependencies (Benutzer, Rollen, Cron- und Shop-Keys)."""

import hmac
import logging
import uuid

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import (
    ForbiddenException,
    ShopUnauthorizedException,
    UnauthorizedException,
)
from app.auth import extract_bearer
from app.config import settings
from app.database import get_db
from app.models.profile import Profile, UserRole

logger = logging.getLogger(__name__)


def _secrets_match(given: str | None, expected: str) -> bool:
    if not given or not expected:
        return False
    return hmac.compare_digest(given.encode(), expected.encode())


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Lädt das Profil des angemeldeten Benutzers (User-ID aus der AuthMiddleware)."""
    user_id: uuid.UUID | None = getattr(request.state, "user_id", None)
    if user_id is None:
        raise UnauthorizedException()

    profile = await db.get(Profile, user_id)
    if profile is None:
        logger.warning(f"Kein Profil für User {user_id}")
        raise UnauthorizedException("Profil nicht gefunden")
    if not profile.is_active:
        raise ForbiddenException("Benutzerkonto ist deaktiviert")
    return profile


def require_roles(*roles: UserRole):
    """Dependency-Factory: erlaubt nur die angegebenen Rollen."""

    async def _checker(user: Profile = Depends(get_current_user)) -> Profile:
        if user.role not in roles:
            raise ForbiddenException()
        return user

    return _checker


require_manager = require_roles(UserRole.MANAGER, UserRole.ADMIN)
require_admin = require_roles(UserRole.ADMIN)


async def verify_cron_secret(
    request: Request,
    key: str | None = Query(default=None),
) -> None:
    """Cron-Jobs authentifizieren sich mit ?key=<CRON_SECRET> oder Bearer."""
    given = key or extract_bearer(request)
    if not _secrets_match(given, settings.cron_secret):
        raise UnauthorizedException("Ungültiger Cron-Key")


def shop_api_key_valid(request: Request) -> bool:
    return _secrets_match(request.headers.get("x-api-key"), settings.shop_api_key)


async def require_shop_api_key(request: Request) -> None:
    if not shop_api_key_valid(request):
        raise ShopUnauthorizedException()
