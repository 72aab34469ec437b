"""Zeitzonen-Helfer.

In der DB liegt alles in UTC. Fachlich wird in Europe/Berlin gerechnet
(Öffnungszeiten, Tagesgrenzen, Texte für Kunden).
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

BERLIN = ZoneInfo("Europe/Berlin")

GERMAN_WEEKDAYS = [
    "Montag",
    "Dienstag",
    "Mittwoch",
    "Donnerstag",
    "Freitag",
    "Samstag",
    "Sonntag",
]

GERMAN_MONTHS_SHORT = [
    "Jan", "Feb", "Mär", "Apr", "Mai", "Jun",
    "Jul", "Aug", "Sep", "Okt", "Nov", "Dez",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def berlin_today() -> date:
    return datetime.now(BERLIN).date()


def parse_hhmm(value: str | time) -> time:
    """'HH:MM' (oder 'HH:MM:SS') → time. ValueError bei ungültigem Format."""
    if isinstance(value, time):
        return value
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Ungültige Uhrzeit: {value}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour, minute, second)


def german_time_to_utc(day: date, hhmm: str | time) -> datetime:
    """Berliner Wanduhrzeit an einem Tag → UTC (berücksichtigt Sommerzeit)."""
    local = datetime.combine(day, parse_hhmm(hhmm), tzinfo=BERLIN)
    return local.astimezone(timezone.utc)


def utc_to_german(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(BERLIN)


def format_german_time(value: datetime | time) -> str:
    """HH:MM in Berliner Zeit."""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return utc_to_german(value).strftime("%H:%M")


def format_german_date(value: datetime | date, with_weekday: bool = False) -> str:
    """dd.mm.yyyy (optional mit Wochentag: 'Montag, 05.01.2026')."""
    if isinstance(value, datetime):
        value = utc_to_german(value).date()
    text = value.strftime("%d.%m.%Y")
    if with_weekday:
        return f"{GERMAN_WEEKDAYS[value.weekday()]}, {text}"
    return text


def format_short_date(value: datetime) -> str:
    """dd.mm. in Berliner Zeit (für SMS)."""
    return utc_to_german(value).strftime("%d.%m.")


def german_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC-Grenzen [Beginn, Ende) eines Berliner Kalendertags."""
    start = datetime.combine(day, time.min, tzinfo=BERLIN)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=BERLIN)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def german_date_of(value: datetime) -> date:
    return utc_to_german(value).date()


def periods_overlap(
    start1: datetime,
    end1: datetime,
    start2: datetime,
    end2: datetime,
) -> bool:
    return start1 < end2 and end1 > start2
