"""Error Schemas für das FLIGHTHOUR Portal."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Fehlercodes für das Portal."""

    # Validierungsfehler (400)
    VALIDATION_ERROR = "validation_error"
    FILE_TOO_LARGE = "file_too_large"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_STATE = "invalid_state"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_USED = "token_used"
    ALREADY_CANCELLED = "already_cancelled"
    MONTH_CLOSED = "month_closed"

    # Authentifizierung (401)
    UNAUTHORIZED = "unauthorized"

    # Autorisierung (403)
    FORBIDDEN = "forbidden"

    # Nicht gefunden (404)
    NOT_FOUND = "not_found"
    TICKET_NOT_FOUND = "ticket_not_found"
    EVENT_NOT_FOUND = "event_not_found"
    TEMPLATE_NOT_FOUND = "template_not_found"
    WORK_REQUEST_NOT_FOUND = "work_request_not_found"

    # Konflikt (409)
    DUPLICATE_ENTRY = "duplicate_entry"
    CONFLICT = "conflict"
    SLOT_TAKEN = "slot_taken"

    # Rate Limiting (429)
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"

    # Server-Fehler (500)
    INTERNAL_ERROR = "internal_error"

    # Service Unavailable (503)
    DATABASE_ERROR = "database_error"

    # Externe Dienste (502/504)
    GOOGLE_CALENDAR_ERROR = "google_calendar_error"
    STORAGE_ERROR = "storage_error"


class ValidationErrorDetail(BaseModel):
    """Detail eines Validierungsfehlers."""

    field: str = Field(description="Betroffenes Feld")
    message: str = Field(description="Fehlermeldung")
    value: Any | None = Field(default=None, description="Ungültiger Wert")


class ErrorResponse(BaseModel):
    """Standard-Fehler-Response."""

    error: ErrorCode = Field(description="Fehlercode")
    message: str = Field(description="Fehlermeldung")
    details: list[ValidationErrorDetail] | None = Field(
        default=None,
        description="Details bei Validierungsfehlern",
    )
    request_id: str | None = Field(
        default=None,
        description="Request-ID für Debugging",
    )

    model_config = {"json_schema_extra": {"examples": [
        {
            "error": "validation_error",
            "message": "Start- und Endzeit sind für Teilzeit-Requests erforderlich",
            "details": [
                {
                    "field": "start_time",
                    "message": "Pflichtfeld fehlt",
                    "value": None,
                }
            ],
            "request_id": "abc123",
        }
    ]}}
