"""Dokumente - Dateiablage für Mitarbeiter (allgemein oder persönlich)."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

CATEGORY_PERSONAL = "Persönlich"
CATEGORY_GENERAL = "Allgemein"


class Document(Base):
    """Dokument im Bucket ``documents``.

    ``assigned_to`` NULL = allgemeines Dokument (für alle sichtbar),
    sonst nur für den zugeordneten Mitarbeiter und Admins.
    """

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(150), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), default=CATEGORY_GENERAL, nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)

    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
    )
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    assignee = relationship("Profile", foreign_keys=[assigned_to], lazy="selectin")
    uploader = relationship("Profile", foreign_keys=[uploaded_by], lazy="selectin")

    __table_args__ = (
        Index("ix_documents_assigned_to", "assigned_to"),
        Index("ix_documents_created_at", "created_at"),
    )

    @property
    def is_general(self) -> bool:
        return self.assigned_to is None

    def __repr__(self) -> str:
        return f"<Document {self.title} ({self.category})>"
