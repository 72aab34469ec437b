"""SMS-Versand über Twilio (REST-API via httpx) und SMS-Queue.

Die Queue wird per Cron (/api/cron/process-sms-queue) abgearbeitet.
"""

import logging
import re
import uuid
from datetime import date, datetime

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.berlin_time import format_german_time, format_short_date, utcnow
from app.config import limits, settings
from app.models.queue import QueueStatus, SMSNotificationType, SMSQueueItem

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

_PHONE_STRIP = re.compile(r"[\s\-()]")
_VALID_PHONE = re.compile(r"^\+[1-9]\d{9,14}$")


# ═══════════════════════════════════════════════════════════════
#  Telefonnummern
# ═══════════════════════════════════════════════════════════════

def normalize_phone_number(phone: str) -> str:
    """Deutsche Nummern → E.164 (0171 1234567 → +491711234567)."""
    normalized = _PHONE_STRIP.sub("", phone or "")
    if normalized.startswith("0049"):
        normalized = "+49" + normalized[4:]
    elif normalized.startswith("0") and not normalized.startswith("00"):
        normalized = "+49" + normalized[1:]
    elif not normalized.startswith("+"):
        normalized = "+49" + normalized
    return normalized


def is_valid_phone_number(phone: str | None) -> bool:
    if not phone:
        return False
    return bool(_VALID_PHONE.match(normalize_phone_number(phone)))


# ═══════════════════════════════════════════════════════════════
#  Texte
# ═══════════════════════════════════════════════════════════════

def shift_sms(original_start: datetime, new_start: datetime, reason: str) -> str:
    return (
        f"FLIGHTHOUR: Ihr Termin am {format_short_date(original_start)} verschiebt sich "
        f"{reason} auf {format_german_time(new_start)} Uhr. Wir freuen uns auf Sie!"
    )


def cancel_sms(original_start: datetime, reason: str) -> str:
    return (
        f"FLIGHTHOUR: Ihr Termin am {format_short_date(original_start)} muss {reason} "
        f"leider ausfallen. Details zur Neubuchung per E-Mail."
    )


def shift_coverage_sms(request_date: date) -> str:
    return (
        f"FLIGHTHOUR: Am {request_date.strftime('%d.%m.')} wird noch jemand gebraucht. "
        f"Schau in deine E-Mails!"
    )


# ═══════════════════════════════════════════════════════════════
#  Twilio Client
# ═══════════════════════════════════════════════════════════════

class TwilioError(Exception):
    """Twilio-Versand fehlgeschlagen."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class TwilioClient:
    """Minimaler Client für die Twilio Messages-API."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid if account_sid is not None else settings.twilio_account_sid
        self.auth_token = auth_token if auth_token is not None else settings.twilio_auth_token
        self.from_number = from_number if from_number is not None else settings.twilio_phone_number
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=TWILIO_API_BASE,
                auth=(self.account_sid, self.auth_token),
                timeout=httpx.Timeout(limits.TIMEOUT_TWILIO),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send_sms(self, to: str, message: str) -> str:
        """Sendet eine SMS und gibt die Twilio Message-SID zurück.

        Raises:
            TwilioError: bei ungültiger Nummer, zu langem Text oder API-Fehler
        """
        if not is_valid_phone_number(to):
            raise TwilioError(f"Invalid phone number format: {to}")
        if len(message) > limits.SMS_MAX_LENGTH:
            raise TwilioError(
                f"Message too long: {len(message)} chars (max {limits.SMS_MAX_LENGTH})"
            )
        if not self.from_number:
            raise TwilioError("TWILIO_PHONE_NUMBER not configured")
        if not self.account_sid or not self.auth_token:
            raise TwilioError("Twilio credentials not configured")

        normalized = normalize_phone_number(to)
        client = await self._get_client()
        try:
            response = await client.post(
                f"/Accounts/{self.account_sid}/Messages.json",
                data={"To": normalized, "From": self.from_number, "Body": message},
            )
        except httpx.HTTPError as e:
            raise TwilioError(f"Twilio nicht erreichbar: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            raise TwilioError(detail, status_code=response.status_code)

        sid = response.json().get("sid")
        logger.info(f"SMS gesendet an {normalized} (SID {sid})")
        return sid


# ═══════════════════════════════════════════════════════════════
#  SMS-Queue
# ═══════════════════════════════════════════════════════════════

class SMSQueueService:
    """Einreihen und Abarbeiten von SMS."""

    def __init__(self, db: AsyncSession, client: TwilioClient | None = None):
        self.db = db
        self.client = client or TwilioClient()

    async def enqueue(
        self,
        phone: str,
        message: str,
        notification_type: SMSNotificationType,
        event_id: uuid.UUID | None = None,
    ) -> SMSQueueItem | None:
        """Reiht eine SMS ein. Ungültige Nummern werden übersprungen (None)."""
        if not is_valid_phone_number(phone):
            logger.info(f"SMS übersprungen, ungültige Nummer: {phone}")
            return None
        item = SMSQueueItem(
            phone_number=normalize_phone_number(phone),
            message=message,
            notification_type=notification_type,
            event_id=event_id,
            status=QueueStatus.PENDING,
            attempts=0,
        )
        self.db.add(item)
        await self.db.flush()
        return item

    async def process_queue(self) -> dict:
        """Versendet ausstehende SMS (Batch, max. Versuche).

        processed = versuchte SMS, sent = versendet, failed = endgültig
        fehlgeschlagen (erneut eingereihte zählen nicht).
        """
        if not self.client.is_configured:
            logger.info("SMS-Cron: Twilio nicht konfiguriert, übersprungen")
            return {
                "success": True,
                "message": "Twilio not configured",
                "processed": 0,
                "sent": 0,
                "failed": 0,
            }

        result = await self.db.execute(
            select(SMSQueueItem)
            .where(
                SMSQueueItem.status == QueueStatus.PENDING,
                SMSQueueItem.attempts < limits.QUEUE_MAX_ATTEMPTS,
            )
            .order_by(SMSQueueItem.created_at.asc())
            .limit(limits.QUEUE_BATCH_SIZE)
            .with_for_update(skip_locked=True)
        )
        items = list(result.scalars().all())

        sent = 0
        failed = 0
        for item in items:
            item.attempts += 1
            try:
                sid = await self.client.send_sms(item.phone_number, item.message)
            except TwilioError as e:
                item.error_message = e.message
                if item.attempts >= limits.QUEUE_MAX_ATTEMPTS:
                    item.status = QueueStatus.FAILED
                    failed += 1
                else:
                    item.status = QueueStatus.PENDING
                logger.error(f"SMS {item.id} fehlgeschlagen (Versuch {item.attempts}): {e.message}")
                continue

            item.status = QueueStatus.SENT
            item.twilio_message_id = sid
            item.sent_at = utcnow()
            item.error_message = None
            sent += 1

        await self.db.flush()
        logger.info(f"SMS-Cron: {sent} gesendet, {failed} fehlgeschlagen")
        return {
            "success": True,
            "processed": len(items),
            "sent": sent,
            "failed": failed,
        }

    async def list_queue(self, status: QueueStatus | None = None, limit: int = 100) -> list[SMSQueueItem]:
        query = select(SMSQueueItem).order_by(SMSQueueItem.created_at.desc()).limit(limit)
        if status:
            query = query.where(SMSQueueItem.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())
