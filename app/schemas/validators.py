"""Wiederverwendbare Validatoren für das Portal."""

import re
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator

from app.config import Limits

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")
_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_email_address(value: str) -> str:
    """Trimmt und normalisiert E-Mail-Adressen auf Kleinbuchstaben."""
    value = value.strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("Ungültige E-Mail-Adresse")
    return value


def validate_hex_color(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not _HEX_COLOR.match(value):
        raise ValueError("Farbe muss im Format #RRGGBB angegeben werden")
    return value


def validate_search_term(value: str | None) -> str | None:
    """Validiert Suchbegriffe."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) > Limits.SEARCH_MAX_LENGTH:
        raise ValueError(
            f"Suchbegriff darf maximal {Limits.SEARCH_MAX_LENGTH} Zeichen haben"
        )
    return value


def validate_hhmm(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()[:5]
    if not _HHMM.match(value):
        raise ValueError("Uhrzeit muss im Format HH:MM angegeben werden")
    return value


def validate_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name darf nicht leer sein")
    return value


def validate_uuid_batch(value: list[UUID]) -> list[UUID]:
    """Validiert eine Liste von IDs für Sammel-Aktionen (MAYDAY)."""
    if len(value) == 0:
        raise ValueError("Mindestens ein Termin muss ausgewählt werden")
    if len(value) > Limits.MAYDAY_BATCH_MAX:
        raise ValueError(f"Maximal {Limits.MAYDAY_BATCH_MAX} Termine pro Aktion erlaubt")
    return list(dict.fromkeys(value))


# Annotated Types für einfache Wiederverwendung
EmailAddress = Annotated[str, AfterValidator(validate_email_address)]
HexColor = Annotated[str | None, AfterValidator(validate_hex_color)]
SearchTerm = Annotated[str | None, AfterValidator(validate_search_term)]
HHMM = Annotated[str | None, AfterValidator(validate_hhmm)]
TrimmedName = Annotated[str, AfterValidator(validate_name)]
EventIdBatch = Annotated[list[UUID], AfterValidator(validate_uuid_batch)]
