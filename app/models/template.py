"""Antwort-Vorlagen für Tickets."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class TemplateCategory(str, enum.Enum):
    """Kategorien für Antwort-Vorlagen."""

    GREETING = "greeting"
    CLOSING = "closing"
    TECHNICAL = "technical"
    BOOKING = "booking"
    FLIGHT = "flight"
    GENERAL = "general"


TEMPLATE_CATEGORY_LABELS = {
    TemplateCategory.GREETING: "Begrüßungen",
    TemplateCategory.CLOSING: "Abschlüsse",
    TemplateCategory.TECHNICAL: "Technische Antworten",
    TemplateCategory.BOOKING: "Buchungen",
    TemplateCategory.FLIGHT: "Flüge",
    TemplateCategory.GENERAL: "Allgemein",
}


class ResponseTemplate(Base):
    """Textbaustein für Ticket-Antworten."""

    __tablename__ = "ticket_response_templates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[TemplateCategory] = mapped_column(
        Enum(TemplateCategory, name="template_category", values_callable=lambda x: [e.value for e in x]),
        default=TemplateCategory.GENERAL,
        nullable=False,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
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

    attachments: Mapped[list["TemplateAttachment"]] = relationship(
        "TemplateAttachment",
        back_populates="template",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_ticket_response_templates_category", "category"),
    )

    @property
    def category_label(self) -> str:
        return TEMPLATE_CATEGORY_LABELS.get(self.category, self.category.value)


class TemplateAttachment(Base):
    """Datei, die beim Verwenden einer Vorlage mitgeschickt wird."""

    __tablename__ = "template_attachments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("ticket_response_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(150), default="application/octet-stream")
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    template: Mapped[ResponseTemplate] = relationship("ResponseTemplate", back_populates="attachments")
