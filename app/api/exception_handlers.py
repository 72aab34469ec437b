"""Exception Handlers für das FLIGHTHOUR Portal."""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.schemas.errors import ErrorCode, ErrorResponse, ValidationErrorDetail

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Basis-Exception für die Anwendung."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: list[ValidationErrorDetail] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationException(AppException):
    """Fachliche Validierung fehlgeschlagen (400)."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        field: str | None = None,
    ):
        details = [ValidationErrorDetail(field=field, message=message)] if field else None
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class UnauthorizedException(AppException):
    def __init__(self, message: str = "Nicht authentifiziert"):
        super().__init__(
            error_code=ErrorCode.UNAUTHORIZED,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenException(AppException):
    """Rolle reicht für die Aktion nicht aus."""

    def __init__(self, message: str = "Keine Berechtigung"):
        super().__init__(
            error_code=ErrorCode.FORBIDDEN,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class NotFoundException(AppException):
    """Exception für nicht gefundene Ressourcen."""

    def __init__(
        self,
        message: str = "Ressource nicht gefunden",
        error_code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ConflictException(AppException):
    """Exception für Konflikte (Duplikate, belegte Slots)."""

    def __init__(
        self,
        message: str = "Konflikt mit bestehender Ressource",
        error_code: ErrorCode = ErrorCode.CONFLICT,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
        )


class RateLimitException(AppException):
    """Exception für Rate-Limiting."""

    def __init__(self, message: str = "Zu viele Anfragen. Bitte warten."):
        super().__init__(
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )


class DatabaseException(AppException):
    def __init__(self, message: str = "Datenbankfehler. Bitte später erneut versuchen."):
        super().__init__(
            error_code=ErrorCode.DATABASE_ERROR,
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class ExternalServiceException(AppException):
    """Exception für externe Service-Fehler."""

    def __init__(
        self,
        service: str,
        error_code: ErrorCode,
        message: str | None = None,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
    ):
        self.service = service
        super().__init__(
            error_code=error_code,
            message=message or f"{service}-Service nicht erreichbar",
            status_code=status_code,
        )


class GoogleCalendarException(ExternalServiceException):
    def __init__(self, message: str = "Google Kalender nicht erreichbar."):
        super().__init__(
            service="Google Calendar",
            error_code=ErrorCode.GOOGLE_CALENDAR_ERROR,
            message=message,
        )


class StorageException(ExternalServiceException):
    """Object Storage nicht konfiguriert oder nicht erreichbar."""

    def __init__(self, message: str = "Datei-Speicher nicht erreichbar."):
        super().__init__(
            service="Storage",
            error_code=ErrorCode.STORAGE_ERROR,
            message=message,
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        )


class ShopUnauthorizedException(Exception):
    """Shop-API ohne gültigen x-api-key (eigenes Antwortformat des Shops)."""

    def __init__(self, message: str = "Invalid or missing API key"):
        self.message = message
        super().__init__(message)


def _get_request_id(request: Request) -> str | None:
    """Holt die Request-ID (Middleware-State, sonst Header)."""
    request_id = getattr(request.state, "request_id", None)
    return request_id or request.headers.get("X-Request-ID")


def _create_error_response(
    error_code: ErrorCode,
    message: str,
    request: Request,
    details: list[ValidationErrorDetail] | None = None,
) -> dict[str, Any]:
    """Erstellt ein einheitliches Fehler-Response-Format."""
    return ErrorResponse(
        error=error_code,
        message=message,
        details=details,
        request_id=_get_request_id(request),
    ).model_dump(mode="json")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning(
        f"AppException: {exc.error_code.value} - {exc.message}",
        extra={"request_id": _get_request_id(request)},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            request=request,
            details=exc.details,
        ),
    )


async def shop_unauthorized_handler(request: Request, exc: ShopUnauthorizedException) -> JSONResponse:
    logger.warning(f"Shop-API: Zugriff ohne gültigen API-Key von {request.client.host if request.client else '?'}")
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "Unauthorized", "message": exc.message},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handler für Pydantic-Validierungsfehler."""
    details = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        value = error.get("input")
        details.append(
            ValidationErrorDetail(
                field=field or "body",
                message=error["msg"],
                value=value if isinstance(value, (str, int, float, bool)) else None,
            )
        )

    logger.info(
        f"Validierungsfehler: {len(details)} Felder",
        extra={"request_id": _get_request_id(request)},
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_create_error_response(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="Validierungsfehler in der Anfrage",
            request=request,
            details=details,
        ),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(
        f"IntegrityError: {exc.orig}",
        extra={"request_id": _get_request_id(request)},
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_create_error_response(
            error_code=ErrorCode.DUPLICATE_ENTRY,
            message="Ein Eintrag mit diesen Daten existiert bereits",
            request=request,
        ),
    )


async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.error(
        f"Datenbankfehler: {exc}",
        extra={"request_id": _get_request_id(request)},
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_create_error_response(
            error_code=ErrorCode.DATABASE_ERROR,
            message="Datenbankfehler. Bitte später erneut versuchen.",
            request=request,
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Letzte Instanz: alles, was sonst niemand abfängt."""
    logger.error(
        f"Unbehandelte Exception: {exc}",
        extra={"request_id": _get_request_id(request)},
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_create_error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            message="Interner Serverfehler",
            request=request,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Registriert alle Exception-Handler bei der FastAPI-App."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(ShopUnauthorizedException, shop_unauthorized_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
