"""S3-kompatibler Object Storage für Ticket- und Vorlagen-Anhänge.

Ordnerstruktur:
    ticket-attachments/
        tickets/{ticket_id}/{epoch_ms}_{zufall}.{ext}
    template-attachments/
        {template_id}/{epoch_ms}_{name}
    documents/
        general/{uuid}.{ext}
        personal/{profile_id}/{uuid}.{ext}
"""

import logging
import secrets
import string
import time
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.api.exception_handlers import StorageException
from app.config import settings

logger = logging.getLogger(__name__)

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def _build_client():
    """Erstellt den S3-Client. None, wenn kein Storage konfiguriert ist."""
    if not settings.storage_access_key_id or not settings.storage_endpoint_url:
        logger.warning("Object Storage nicht konfiguriert - Anhänge deaktiviert")
        return None

    return boto3.client(
        "s3",
        endpoint_url=settings.storage_endpoint_url,
        aws_access_key_id=settings.storage_access_key_id,
        aws_secret_access_key=settings.storage_secret_access_key,
        config=Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
        ),
        region_name="auto",
    )


def unique_object_name(original_filename: str) -> str:
    """{epoch_ms}_{6 Zeichen zufall}.{ext} (ohne Endung: .dat)."""
    extension = original_filename.rsplit(".", 1)[-1] if "." in original_filename else "dat"
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(6))
    return f"{int(time.time() * 1000)}_{suffix}.{extension or 'dat'}"


def ticket_object_path(ticket_id, unique_name: str) -> str:
    return f"tickets/{ticket_id}/{unique_name}"


def document_object_path(original_filename: str, assigned_to=None) -> str:
    """general/{uuid}.{ext} bzw. personal/{profile_id}/{uuid}.{ext}."""
    extension = original_filename.rsplit(".", 1)[-1].lower() if "." in original_filename else "dat"
    name = f"{uuid.uuid4()}.{extension or 'dat'}"
    if assigned_to:
        return f"personal/{assigned_to}/{name}"
    return f"general/{name}"


class StorageService:
    """Upload/Download/Löschen von Objekten in einem Bucket."""

    def __init__(self, bucket: str, client=None):
        self.client = client if client is not None else _build_client()
        self.bucket = bucket

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def _require_client(self):
        if not self.is_available:
            raise StorageException("Object Storage nicht konfiguriert")
        return self.client

    def upload(self, key: str, content: bytes, content_type: str) -> str:
        client = self._require_client()
        try:
            client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
                CacheControl="max-age=3600",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Upload fehlgeschlagen für {self.bucket}/{key}: {e}")
            raise StorageException(f"Upload fehlgeschlagen: {key}") from e
        logger.info(f"Hochgeladen: {self.bucket}/{key} ({len(content)} Bytes)")
        return key

    def download(self, key: str) -> bytes | None:
        """Lädt ein Objekt. None, wenn der Key nicht existiert."""
        client = self._require_client()
        try:
            response = client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404"):
                logger.warning(f"Objekt nicht gefunden: {self.bucket}/{key}")
                return None
            logger.error(f"Download fehlgeschlagen für {self.bucket}/{key}: {e}")
            raise StorageException(f"Download fehlgeschlagen: {key}") from e

    def delete(self, key: str) -> bool:
        if not self.is_available:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Löschen fehlgeschlagen für {self.bucket}/{key}: {e}")
            return False
        logger.info(f"Gelöscht: {self.bucket}/{key}")
        return True


def ticket_storage() -> StorageService:
    return StorageService(settings.storage_ticket_bucket)


def template_storage() -> StorageService:
    return StorageService(settings.storage_template_bucket)


def document_storage() -> StorageService:
    return StorageService(settings.storage_document_bucket)
