"""Authentifizierung für das FLIGHTHOUR Portal.

Login, Passwort-Reset und 2FA laufen beim gehosteten Auth-Backend.
Hier werden nur dessen Tokens geprüft.

Ohne Benutzer-Token erreichbar:
- /health
- /api/cron/*   (CRON_SECRET via ?key= oder Bearer)
- /api/v1/*     (x-api-key = SHOP_API_KEY)
- /api/public/* (Einmal-Tokens in der URL)
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import limits, settings

logger = logging.getLogger(__name__)

# ── Session-Cookie (Fallback zum Authorization-Header) ──
SESSION_COOKIE_NAME = "fh_session"

# ── Pfade die OHNE Benutzer-Token erreichbar sein müssen ──
PUBLIC_PATHS = frozenset({
    "/health",
    "/favicon.ico",
})

PUBLIC_PREFIXES = (
    "/api/cron/",
    "/api/v1/",
    "/api/public/",
)


def decode_token(token: str) -> dict | None:
    """Dekodiert ein Auth-Backend JWT. None bei ungültigem/abgelaufenem Token."""
    options = {"verify_aud": bool(settings.auth_jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience or None,
            options=options,
        )
    except JWTError as e:
        logger.debug(f"JWT ungültig: {e}")
        return None


def extract_bearer(request: Request) -> str | None:
    """Liest ein Bearer-Token aus dem Authorization-Header."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def get_token_from_request(request: Request) -> str | None:
    return extract_bearer(request) or request.cookies.get(SESSION_COOKIE_NAME)


def user_id_from_payload(payload: dict) -> uuid.UUID | None:
    """Das Auth-Backend schreibt die User-ID (UUID) in ``sub``."""
    sub = payload.get("sub")
    if not sub:
        return None
    try:
        return uuid.UUID(str(sub))
    except ValueError:
        return None


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or any(path.startswith(p) for p in PUBLIC_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    """Prüft bei jedem geschützten Request das Token des Auth-Backends.

    Reihenfolge:
    1. Authorization: Bearer <jwt>
    2. Cookie fh_session
    3. sonst 401 JSON
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if is_public_path(path):
            return await call_next(request)

        user_id = None
        token = get_token_from_request(request)
        if token:
            payload = decode_token(token)
            if payload:
                user_id = user_id_from_payload(payload)

        if user_id is None:
            return JSONResponse(
                status_code=401,
                content={"error": "unauthorized", "message": "Nicht authentifiziert"},
            )

        request.state.user_id = user_id
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Fügt Security-Headers zu jeder Response hinzu."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        if "server" in response.headers:
            del response.headers["server"]

        return response


# ── Einmal-Tokens für Links in E-Mails (MAYDAY, Rebook, Schichtübernahme, Anträge) ──

def generate_action_token() -> str:
    """URL-sicheres Zufallstoken (43 Zeichen)."""
    return secrets.token_urlsafe(32)


def token_expiry(days: int | None = None) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days or limits.TOKEN_VALID_DAYS)


def is_expired(expires_at: datetime | None) -> bool:
    return expires_at is not None and expires_at < datetime.now(timezone.utc)
