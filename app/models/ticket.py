"""Ticket Models - Support-Tickets, Nachrichten, Anhänge, Tags."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Identity,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class TicketStatus(str, enum.Enum):
    """Status eines Tickets."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, enum.Enum):
    """Priorität eines Tickets."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


TICKET_STATUS_LABELS = {
    TicketStatus.OPEN: "Offen",
    TicketStatus.IN_PROGRESS: "In Bearbeitung",
    TicketStatus.RESOLVED: "Gelöst",
    TicketStatus.CLOSED: "Geschlossen",
}

TICKET_PRIORITY_LABELS = {
    TicketPriority.LOW: "Niedrig",
    TicketPriority.MEDIUM: "Mittel",
    TicketPriority.HIGH: "Hoch",
    TicketPriority.URGENT: "Dringend",
}


def format_ticket_number(number: int | None) -> str:
    """Formatiert eine Ticket-Nummer als TICKET-000123."""
    return f"TICKET-{(number or 0):06d}"


ticket_tags = Table(
    "ticket_tags",
    Base.metadata,
    Column(
        "ticket_id",
        UUID(as_uuid=True),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        UUID(as_uuid=True),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Tag(Base):
    """Schlagwort für Tickets."""

    __tablename__ = "tags"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    color: Mapped[str] = mapped_column(String(20), default="#6b7280", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    email_rules: Mapped[list["TagEmailRule"]] = relationship(
        "TagEmailRule",
        back_populates="tag",
        cascade="all, delete-orphan",
    )


class Ticket(Base):
    """Support-Ticket."""

    __tablename__ = "tickets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    ticket_number: Mapped[int] = mapped_column(
        BigInteger,
        Identity(start=1),
        unique=True,
        nullable=False,
    )
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    status: Mapped[TicketStatus] = mapped_column(
        Enum(TicketStatus, name="ticket_status", values_callable=lambda x: [e.value for e in x]),
        default=TicketStatus.OPEN,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        Enum(TicketPriority, name="ticket_priority", values_callable=lambda x: [e.value for e in x]),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )

    # E-Mail-Herkunft
    created_from_email: Mapped[str | None] = mapped_column(String(255))
    reply_to_email: Mapped[str | None] = mapped_column(String(255))
    is_spam: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    creator = relationship("Profile", foreign_keys=[created_by], lazy="selectin")
    assignee = relationship("Profile", foreign_keys=[assigned_to], lazy="selectin")
    tags: Mapped[list[Tag]] = relationship(secondary=ticket_tags, lazy="selectin")
    messages: Mapped[list["TicketMessage"]] = relationship(
        "TicketMessage",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketMessage.created_at",
    )
    attachments: Mapped[list["TicketAttachment"]] = relationship(
        "TicketAttachment",
        back_populates="ticket",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_tickets_status", "status"),
        Index("ix_tickets_assigned_to", "assigned_to"),
        Index("ix_tickets_created_at", "created_at"),
        Index("ix_tickets_is_spam", "is_spam"),
    )

    @property
    def display_number(self) -> str:
        return format_ticket_number(self.ticket_number)

    @property
    def status_label(self) -> str:
        return TICKET_STATUS_LABELS.get(self.status, self.status.value)

    @property
    def priority_label(self) -> str:
        return TICKET_PRIORITY_LABELS.get(self.priority, self.priority.value)

    @property
    def contact_email(self) -> str | None:
        """Adresse, an die Antworten gehen (Reply-To hat Vorrang)."""
        return self.reply_to_email or self.created_from_email

    def __repr__(self) -> str:
        return f"<Ticket {self.display_number} {self.status.value}>"


class TicketMessage(Base):
    """Nachricht innerhalb eines Tickets (intern oder extern)."""

    __tablename__ = "ticket_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL = externer Absender (E-Mail)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_status: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    ticket: Mapped[Ticket] = relationship("Ticket", back_populates="messages")
    sender = relationship("Profile", lazy="selectin")

    __table_args__ = (
        Index("ix_ticket_messages_ticket_id", "ticket_id"),
    )


class TicketAttachment(Base):
    """Datei-Anhang eines Tickets (optional an eine Nachricht gebunden)."""

    __tablename__ = "ticket_attachments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
    )
    message_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("ticket_messages.id", ondelete="CASCADE"),
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(150), default="application/octet-stream")
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    is_inline: Mapped[bool] = mapped_column(Boolean, default=False)
    content_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    ticket: Mapped[Ticket] = relationship("Ticket", back_populates="attachments")

    __table_args__ = (
        Index("ix_ticket_attachments_ticket_id", "ticket_id"),
        Index("ix_ticket_attachments_message_id", "message_id"),
    )


class TagEmailRule(Base):
    """Regel: eingehende E-Mails eines Absenders automatisch taggen."""

    __tablename__ = "tag_email_rules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tag_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
    )
    email_address: Mapped[str] = mapped_column(String(255), nullable=False)
    # False = keine Eingangsbestätigung an diesen Absender
    create_ticket: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    use_reply_to: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    tag: Mapped[Tag] = relationship("Tag", back_populates="email_rules")

    __table_args__ = (
        UniqueConstraint("tag_id", "email_address", name="uq_tag_email_rules_tag_email"),
        Index("ix_tag_email_rules_email_address", "email_address"),
    )


class EmailBlacklist(Base):
    """Gesperrte Absender-Adressen (kein Ticket wird angelegt)."""

    __tablename__ = "email_blacklist"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email_address: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
