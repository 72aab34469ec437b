"""E-Mail-Texte (Jinja2) für Kunden- und Mitarbeiter-Benachrichtigungen.

Jede ``render_*``-Funktion liefert ein :class:`RenderedEmail` mit Betreff,
Klartext und einer schlichten HTML-Variante.
"""

from dataclasses import dataclass
from datetime import date, datetime

from jinja2 import Template

from app.berlin_time import GERMAN_WEEKDAYS, format_german_time, utc_to_german

GERMAN_MONTHS = [
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
]


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


def long_german_date(value: datetime | date) -> str:
    """'Montag, 05. Januar 2026' (Berliner Zeit)."""
    if isinstance(value, datetime):
        value = utc_to_german(value).date()
    return f"{GERMAN_WEEKDAYS[value.weekday()]}, {value.day:02d}. {GERMAN_MONTHS[value.month - 1]} {value.year}"


def weekday_date(value: datetime | date) -> str:
    """'Montag, 05.01.2026' (Berliner Zeit)."""
    if isinstance(value, datetime):
        value = utc_to_german(value).date()
    return f"{GERMAN_WEEKDAYS[value.weekday()]}, {value.strftime('%d.%m.%Y')}"


def short_date(value: datetime | date) -> str:
    if isinstance(value, datetime):
        value = utc_to_german(value).date()
    return value.strftime("%d.%m.")


# ═══════════════════════════════════════════════════════════════
#  Templates
# ═══════════════════════════════════════════════════════════════

HTML_WRAPPER = Template("""<!DOCTYPE html>
<html lang="de">
<head><meta charset="UTF-8"><title>{{ subject }}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
{% for lines in paragraphs %}<p>{% for line in lines %}{{ line }}{% if not loop.last %}<br>{% endif %}{% endfor %}</p>
{% endfor %}{% for label, url in buttons %}<p><a href="{{ url }}" style="display: inline-block; background: #fbb928; color: #000; padding: 12px 28px; border-radius: 6px; text-decoration: none;">{{ label }}</a></p>
{% endfor %}</body>
</html>""", autoescape=True)

TEMPLATE_TICKET_CONFIRMATION = Template("""Sehr geehrte(r) {{ name }},

vielen Dank für Ihre Anfrage. Wir haben Ihr Ticket erfolgreich erfasst.

Ticket-Nummer: {{ ticket_ref }}
Betreff: {{ subject }}

Wir werden Ihre Anfrage schnellstmöglich bearbeiten.

Bei Rückfragen antworten Sie bitte auf diese E-Mail und behalten Sie die Ticket-Nummer [{{ ticket_ref }}] im Betreff.

Mit freundlichen Grüßen
Ihr FLIGHTHOUR Team

---
FLIGHTHOUR A320 Flugsimulator
Web: https://flighthour.de
E-Mail: info@flighthour.de""")

TEMPLATE_TICKET_MESSAGE = Template("""Sehr geehrte Damen und Herren,

{{ content }}

---
Mit freundlichen Grüßen
{{ sender_name }}

FLIGHTHOUR Flugsimulator
Ticket-Nummer: {{ ticket_number }}

Kontakt:
E-Mail: info@flighthour.de
Web: https://flighthour.de""")

TEMPLATE_BOOKING_CONFIRMATION = Template("""Sehr geehrte/r {{ customer_name }},

vielen Dank für Ihre Buchung!

Ihre Buchungsdetails:
• Datum: {{ date }}
• Zeit: {{ start }} - {{ end }} Uhr
• Dauer: {{ duration }} Minuten
• Ort: {{ location }}
• Anzahl Personen: {{ attendee_count }}
{% if has_video_recording %}• Video-Aufnahme: Ja
{% endif %}{% if remarks %}
Bemerkungen:
{{ remarks }}
{% endif %}
Wir freuen uns auf Ihren Besuch!

Mit freundlichen Grüßen
Ihr FLIGHTHOUR Team

---
FLIGHTHOUR Flugsimulator
info@flighthour.de""")

TEMPLATE_CANCELLATION = Template("""Sehr geehrte/r {{ customer_name }},

hiermit bestätigen wir Ihnen, dass Ihr Termin am {{ date }} um {{ start }} Uhr abgesagt wurde.

Ursprüngliche Termindetails:
- Datum: {{ date }}
- Uhrzeit: {{ start }} Uhr
- Dauer: {{ duration }} Minuten
- Ort: {{ location }}
- Anzahl Personen: {{ attendee_count }}

Sollten Sie Fragen haben oder einen neuen Termin vereinbaren wollen, stehen wir Ihnen gerne zur Verfügung.

Mit freundlichen Grüßen
Ihr FLIGHTHOUR Team

---
FLIGHTHOUR Flugsimulator
info@flighthour.de""")

TEMPLATE_MAYDAY_SHIFT = Template("""Liebe/r {{ customer_name }},

wir müssen Ihnen leider mitteilen, dass sich Ihr Simulator-Termin {{ reason | lower }} verschiebt.

Ursprünglicher Termin:
{{ old_date }} um {{ old_time }} Uhr

Ihr neuer Termin:
{{ new_date }} um {{ new_time }} - {{ new_end_time }} Uhr

Ort: {{ location }}

Wir entschuldigen uns für die Unannehmlichkeiten und freuen uns auf Ihren Besuch!
{% if confirm_url %}
Bestätigen Sie den Erhalt dieser Nachricht: {{ confirm_url }}
{% endif %}
Herzliche Grüße,
Ihr FLIGHTHOUR Team

--
FLIGHTHOUR GmbH
info@flighthour.de
www.flighthour.de""")

TEMPLATE_MAYDAY_CANCEL = Template("""Liebe/r {{ customer_name }},

es tut uns wirklich leid, aber wir müssen Ihren Termin {{ reason | lower }} absagen.

Ihr Termin:
{{ date }}
{{ start }} - {{ end }} Uhr

Ort: {{ location }}

Wir entschuldigen uns aufrichtig für die Unannehmlichkeiten.{% if rebook_url %}

Sie können ganz einfach einen neuen Termin buchen:
{{ rebook_url }}{% endif %}
{% if confirm_url %}
Bestätigen Sie den Erhalt dieser Nachricht: {{ confirm_url }}
{% endif %}
Herzliche Grüße,
Ihr FLIGHTHOUR Team

--
FLIGHTHOUR GmbH
info@flighthour.de
www.flighthour.de""")

TEMPLATE_SHIFT_COVERAGE = Template("""Hallo {{ name }},

wir brauchen noch Unterstützung!

Datum: {{ date }}
Zeit: {{ time_display }}
{% if reason %}Grund: {{ reason }}
{% endif %}
Kannst du an diesem Tag arbeiten?

Klicke hier um zu übernehmen: {{ accept_url }}

Hinweis: Wer zuerst klickt, bekommt den Tag.
Diese Anfrage läuft in {{ valid_days }} Tagen ab.

Herzliche Grüße,
Dein FLIGHTHOUR Team

--
FLIGHTHOUR
info@flighthour.de
www.flighthour.de""")

TEMPLATE_WORK_REQUEST = Template("""Hallo {{ recipient_name }},

{{ employee_name }} möchte am {{ date }} arbeiten.

Zeit: {{ time_display }}
{% if reason %}Begründung:
{{ reason }}
{% endif %}
Genehmigen: {{ approve_url }}
Ablehnen: {{ reject_url }}

Die Links sind {{ valid_days }} Tage gültig.

FLIGHTHOUR Portal""")


def _html(subject: str, text: str, buttons: list[tuple[str, str]] | None = None) -> str:
    paragraphs = [p.split("\n") for p in text.split("\n\n") if p.strip()]
    return HTML_WRAPPER.render(subject=subject, paragraphs=paragraphs, buttons=buttons or [])


# ═══════════════════════════════════════════════════════════════
#  Render-Funktionen
# ═══════════════════════════════════════════════════════════════

def render_ticket_confirmation(name: str, subject: str, ticket_ref: str) -> RenderedEmail:
    text = TEMPLATE_TICKET_CONFIRMATION.render(name=name, subject=subject, ticket_ref=ticket_ref)
    mail_subject = f"[{ticket_ref}] Ihre Anfrage: {subject}"
    return RenderedEmail(mail_subject, text, _html(mail_subject, text))


def render_ticket_message(subject: str, content: str, sender_name: str, ticket_number: str) -> RenderedEmail:
    text = TEMPLATE_TICKET_MESSAGE.render(
        content=content,
        sender_name=sender_name,
        ticket_number=ticket_number,
    )
    return RenderedEmail(subject, text, _html(subject, text))


def render_booking_confirmation(
    customer_name: str,
    start_time: datetime,
    end_time: datetime,
    duration: int,
    location: str,
    attendee_count: int,
    remarks: str | None = None,
    has_video_recording: bool = False,
) -> RenderedEmail:
    text = TEMPLATE_BOOKING_CONFIRMATION.render(
        customer_name=customer_name,
        date=weekday_date(start_time),
        start=format_german_time(start_time),
        end=format_german_time(end_time),
        duration=duration,
        location=location,
        attendee_count=attendee_count,
        remarks=remarks,
        has_video_recording=has_video_recording,
    )
    subject = f"Buchungsbestätigung - {weekday_date(start_time)}"
    return RenderedEmail(subject, text, _html(subject, text))


def render_cancellation(
    customer_name: str,
    start_time: datetime,
    duration: int,
    location: str,
    attendee_count: int,
) -> RenderedEmail:
    text = TEMPLATE_CANCELLATION.render(
        customer_name=customer_name,
        date=weekday_date(start_time),
        start=format_german_time(start_time),
        duration=duration,
        location=location,
        attendee_count=attendee_count,
    )
    subject = f"Terminabsage - {weekday_date(start_time)}"
    return RenderedEmail(subject, text, _html(subject, text))


def render_mayday_shift(
    customer_name: str,
    old_start: datetime,
    new_start: datetime,
    new_end: datetime,
    reason: str,
    location: str,
    confirm_url: str | None = None,
) -> RenderedEmail:
    text = TEMPLATE_MAYDAY_SHIFT.render(
        customer_name=customer_name or "Kunde",
        reason=reason,
        old_date=long_german_date(old_start),
        old_time=format_german_time(old_start),
        new_date=long_german_date(new_start),
        new_time=format_german_time(new_start),
        new_end_time=format_german_time(new_end),
        location=location,
        confirm_url=confirm_url,
    )
    subject = f"Wichtige Info zu Ihrem Termin am {short_date(old_start)}"
    buttons = [("Verstanden", confirm_url)] if confirm_url else []
    return RenderedEmail(subject, text, _html(subject, text, buttons))


def render_mayday_cancel(
    customer_name: str,
    start: datetime,
    end: datetime,
    reason: str,
    location: str,
    rebook_url: str | None = None,
    confirm_url: str | None = None,
) -> RenderedEmail:
    text = TEMPLATE_MAYDAY_CANCEL.render(
        customer_name=customer_name or "Kunde",
        reason=reason,
        date=long_german_date(start),
        start=format_german_time(start),
        end=format_german_time(end),
        location=location,
        rebook_url=rebook_url,
        confirm_url=confirm_url,
    )
    subject = f"Ihr Termin am {short_date(start)} - Wir müssen leider absagen"
    buttons = []
    if rebook_url:
        buttons.append(("Neuen Termin buchen", rebook_url))
    if confirm_url:
        buttons.append(("Verstanden", confirm_url))
    return RenderedEmail(subject, text, _html(subject, text, buttons))


def render_shift_coverage(
    first_name: str | None,
    request_date: date,
    time_display: str,
    reason: str | None,
    accept_url: str,
    valid_days: int,
) -> RenderedEmail:
    text = TEMPLATE_SHIFT_COVERAGE.render(
        name=first_name or "Mitarbeiter",
        date=long_german_date(request_date),
        time_display=time_display,
        reason=reason,
        accept_url=accept_url,
        valid_days=valid_days,
    )
    subject = f"Kannst du am {short_date(request_date)} arbeiten?"
    return RenderedEmail(subject, text, _html(subject, text, [("Schicht übernehmen", accept_url)]))


def render_work_request(
    recipient_name: str,
    employee_name: str,
    request_date: date,
    time_display: str,
    reason: str | None,
    approve_url: str,
    reject_url: str,
    valid_days: int,
) -> RenderedEmail:
    text = TEMPLATE_WORK_REQUEST.render(
        recipient_name=recipient_name,
        employee_name=employee_name,
        date=request_date.strftime("%d.%m.%Y"),
        time_display=time_display,
        reason=reason,
        approve_url=approve_url,
        reject_url=reject_url,
        valid_days=valid_days,
    )
    subject = f"Neuer Arbeitsantrag: {employee_name} ({request_date.strftime('%d.%m.%Y')})"
    buttons = [("Genehmigen", approve_url), ("Ablehnen", reject_url)]
    return RenderedEmail(subject, text, _html(subject, text, buttons))
