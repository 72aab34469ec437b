"""Text-Helfer für eingehende E-Mails (Priorität, Bereinigung, Ticket-Zuordnung)."""

import html
import re
import uuid
from dataclasses import dataclass

import bleach
from bleach.css_sanitizer import CSSSanitizer

# ── Priorität ──

URGENT_KEYWORDS = ("dringend", "urgent", "asap", "notfall", "simulator startet nicht")
HIGH_KEYWORDS = ("wichtig", "important", "problem")


def detect_priority(subject: str, body: str) -> str:
    """Ermittelt die Ticket-Priorität anhand von Schlüsselwörtern."""
    text = f"{subject or ''} {body or ''}".lower()
    if any(word in text for word in URGENT_KEYWORDS):
        return "urgent"
    if any(word in text for word in HIGH_KEYWORDS):
        return "high"
    return "low"


# ── Bereinigung ──

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_MANY_NEWLINES = re.compile(r"\n{3,}")
_WHITESPACE = re.compile(r"\s+")

# Elemente, deren Inhalt mit entfernt wird (bleach entfernt nur die Tags)
_DROP_WITH_CONTENT = re.compile(
    r"<(script|style|head|title|template)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)

ALLOWED_HTML_TAGS = frozenset({
    "a", "abbr", "b", "blockquote", "br", "caption", "center", "code", "div",
    "em", "font", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "li",
    "ol", "p", "pre", "s", "small", "span", "strong", "sub", "sup", "table",
    "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
})
ALLOWED_HTML_ATTRS = {
    "*": ["class", "style", "align", "dir"],
    "a": ["href", "title", "target", "rel"],
    "img": ["src", "alt", "title", "width", "height"],
    "font": ["color", "face", "size"],
    "table": ["border", "cellpadding", "cellspacing", "width", "bgcolor"],
    "td": ["colspan", "rowspan", "width", "valign", "bgcolor"],
    "th": ["colspan", "rowspan", "width", "valign", "bgcolor"],
}
# cid: eingebettete Bilder (Content-ID)
ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "cid"})
ALLOWED_CSS_PROPERTIES = frozenset({
    "color", "background-color", "font-family", "font-size", "font-style",
    "font-weight", "text-align", "text-decoration", "line-height",
    "margin", "margin-top", "margin-bottom", "margin-left", "margin-right",
    "padding", "padding-top", "padding-bottom", "padding-left", "padding-right",
    "border", "border-collapse", "width", "height", "vertical-align",
})

_html_cleaner = bleach.Cleaner(
    tags=ALLOWED_HTML_TAGS,
    attributes=ALLOWED_HTML_ATTRS,
    protocols=ALLOWED_PROTOCOLS,
    strip=True,
    strip_comments=True,
    css_sanitizer=CSSSanitizer(allowed_css_properties=ALLOWED_CSS_PROPERTIES),
)


def clean_for_json(text: str) -> str:
    """Entfernt NUL-/Steuerzeichen, normalisiert Zeilenumbrüche."""
    cleaned = text.replace("\0", "")
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _MANY_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


def clean_html_for_storage(content: str) -> str:
    """Bereinigt HTML aus E-Mails, bevor es gespeichert und angezeigt wird.

    Erlaubt sind nur die Tags, Attribute, URL-Protokolle und CSS-Eigenschaften
    der Allowlists oben. Alles andere entfernt bleach.
    """
    cleaned = _DROP_WITH_CONTENT.sub("", content or "")
    cleaned = _html_cleaner.clean(cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned)
    return clean_for_json(cleaned)


_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


def single_line(text: str | None) -> str:
    """Zeilenumbrüche durch Leerzeichen ersetzen (E-Mail-Header wie der Betreff)."""
    return _LINE_BREAKS.sub(" ", text or "").strip()


def plain_text_to_html(text: str) -> str:
    escaped = html.escape(text, quote=True).replace("&#x27;", "&#039;")
    return "<p>" + escaped.replace("\n", "<br>") + "</p>"


# ── Ticket-Zuordnung per Betreff ──

_TICKET_NUMBER = re.compile(r"\[TICKET-(\d+)\]")
_TICKET_UUID = re.compile(r"\[TICKET-([a-f0-9\-]{36})\]", re.IGNORECASE)


@dataclass(frozen=True)
class TicketReference:
    ticket_id: uuid.UUID | None = None
    ticket_number: int | None = None

    @property
    def found(self) -> bool:
        return self.ticket_id is not None or self.ticket_number is not None


def extract_ticket_info(subject: str) -> TicketReference:
    """Findet [TICKET-000123] (Nummer) oder [TICKET-<uuid>] (Alt-Format) im Betreff."""
    if not subject:
        return TicketReference()

    number_match = _TICKET_NUMBER.search(subject)
    if number_match:
        return TicketReference(ticket_number=int(number_match.group(1)))

    uuid_match = _TICKET_UUID.search(subject)
    if uuid_match:
        try:
            return TicketReference(ticket_id=uuid.UUID(uuid_match.group(1)))
        except ValueError:
            return TicketReference()

    return TicketReference()


# ── Dateinamen ──

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_MULTI_UNDERSCORE = re.compile(r"_+")


def sanitize_filename(filename: str) -> str:
    safe = re.sub(r"[/\\]", "_", filename)
    safe = _UNSAFE_FILENAME_CHARS.sub("_", safe)
    return _MULTI_UNDERSCORE.sub("_", safe)


def normalize_email(address: str | None) -> str:
    return (address or "").strip().lower()
