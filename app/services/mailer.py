"""SMTP-Mailer - Versendet E-Mails über den konfigurierten Server (STARTTLS).

Wird ausschließlich von der E-Mail-Queue verwendet.
"""

import logging
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid

import aiosmtplib

from app.config import limits, settings

logger = logging.getLogger(__name__)


class MailerError(Exception):
    """SMTP-Versand fehlgeschlagen."""


@dataclass
class MailAttachment:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass
class OutgoingMail:
    to: str
    subject: str
    text: str
    html: str | None = None
    reply_to: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    attachments: list[MailAttachment] = field(default_factory=list)


def build_message(mail: OutgoingMail) -> EmailMessage:
    """Baut eine multipart-Nachricht (Text + HTML, optional Anhänge)."""
    msg = EmailMessage()
    msg["From"] = formataddr((settings.smtp_from_name, settings.smtp_from_email))
    msg["To"] = mail.to
    msg["Subject"] = mail.subject
    msg["Reply-To"] = mail.reply_to or settings.smtp_from_email
    msg["Message-ID"] = make_msgid(domain=settings.smtp_from_email.split("@")[-1])
    for name, value in mail.headers.items():
        msg[name] = value

    msg.set_content(mail.text)
    if mail.html:
        msg.add_alternative(mail.html, subtype="html")

    for attachment in mail.attachments:
        maintype, _, subtype = (attachment.mime_type or "application/octet-stream").partition("/")
        msg.add_attachment(
            attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return msg


class Mailer:
    """Sendet E-Mails via aiosmtplib."""

    async def send(self, mail: OutgoingMail) -> dict:
        """Sendet eine E-Mail.

        Returns:
            {"success": bool, "message_id": str | None, "error": str | None}
        """
        if not settings.smtp_configured:
            return {
                "success": False,
                "message_id": None,
                "error": "SMTP nicht konfiguriert",
            }

        try:
            msg = build_message(mail)
        except (ValueError, TypeError) as e:
            logger.error(f"E-Mail an {mail.to} konnte nicht aufgebaut werden: {e}")
            return {
                "success": False,
                "message_id": None,
                "error": f"Ungültige Nachricht: {e}",
            }

        try:
            await aiosmtplib.send(
                msg,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                start_tls=settings.smtp_port != 465,
                use_tls=settings.smtp_port == 465,
                username=settings.smtp_user or None,
                password=settings.smtp_password or None,
                timeout=limits.TIMEOUT_SMTP,
            )
        except aiosmtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP Auth-Fehler für {settings.smtp_user}: {e}")
            return {
                "success": False,
                "message_id": None,
                "error": f"SMTP-Authentifizierung fehlgeschlagen: {e}",
            }
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP-Fehler beim Versand an {mail.to}: {e}")
            return {
                "success": False,
                "message_id": None,
                "error": f"SMTP-Fehler: {e}",
            }

        logger.info(f"E-Mail gesendet: {settings.smtp_from_email} → {mail.to} | {mail.subject}")
        return {
            "success": True,
            "message_id": msg["Message-ID"],
            "error": None,
        }
