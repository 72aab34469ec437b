"""Tag Service - Tags, E-Mail-Regeln und Absender-Blacklist.

Rollenprüfung (Manager/Admin) erfolgt in den Routen.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.exception_handlers import ConflictException, NotFoundException
from app.models.ticket import EmailBlacklist, Tag, TagEmailRule, ticket_tags
from app.schemas.errors import ErrorCode
from app.schemas.ticket import (
    BlacklistCreate,
    EmailRuleCreate,
    EmailRuleUpdate,
    TagCreate,
    TagUpdate,
)
from app.services.email_helpers import normalize_email

logger = logging.getLogger(__name__)


class TagService:
    """Service für Tags, Tag-Regeln und die Blacklist."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Tags ====================

    async def list_tags(self) -> list[Tag]:
        result = await self.db.execute(select(Tag).order_by(Tag.name))
        return list(result.scalars().all())

    async def tags_with_counts(self) -> list[dict]:
        """Alle Tags mit Anzahl zugeordneter Tickets."""
        result = await self.db.execute(
            select(Tag, func.count(ticket_tags.c.ticket_id))
            .outerjoin(ticket_tags, ticket_tags.c.tag_id == Tag.id)
            .group_by(Tag.id)
            .order_by(Tag.name)
        )
        return [
            {"id": tag.id, "name": tag.name, "color": tag.color, "ticket_count": count}
            for tag, count in result.all()
        ]

    async def get_tag(self, tag_id: UUID) -> Tag:
        tag = await self.db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundException("Tag nicht gefunden")
        return tag

    async def _ensure_unique_name(self, name: str, exclude_id: UUID | None = None) -> None:
        query = select(Tag.id).where(func.lower(Tag.name) == name.lower())
        if exclude_id:
            query = query.where(Tag.id != exclude_id)
        if (await self.db.execute(query)).first():
            raise ConflictException(
                f"Ein Tag mit dem Namen '{name}' existiert bereits",
                ErrorCode.DUPLICATE_ENTRY,
            )

    async def create_tag(self, data: TagCreate) -> Tag:
        await self._ensure_unique_name(data.name)
        tag = Tag(name=data.name, color=data.color or "#6b7280")
        self.db.add(tag)
        await self.db.flush()
        logger.info(f"Tag erstellt: {tag.name}")
        return tag

    async def update_tag(self, tag_id: UUID, data: TagUpdate) -> Tag:
        tag = await self.get_tag(tag_id)
        if data.name is not None and data.name != tag.name:
            await self._ensure_unique_name(data.name, exclude_id=tag_id)
            tag.name = data.name
        if data.color is not None:
            tag.color = data.color
        await self.db.flush()
        return tag

    async def delete_tag(self, tag_id: UUID) -> None:
        tag = await self.get_tag(tag_id)
        await self.db.delete(tag)
        await self.db.flush()
        logger.info(f"Tag gelöscht: {tag.name}")

    # ==================== E-Mail-Regeln ====================

    async def list_rules(self, tag_id: UUID) -> list[TagEmailRule]:
        result = await self.db.execute(
            select(TagEmailRule)
            .where(TagEmailRule.tag_id == tag_id)
            .order_by(TagEmailRule.email_address)
        )
        return list(result.scalars().all())

    async def add_rule(self, tag_id: UUID, data: EmailRuleCreate) -> TagEmailRule:
        await self.get_tag(tag_id)
        address = normalize_email(data.email_address)

        existing = await self.db.execute(
            select(TagEmailRule.id).where(
                TagEmailRule.tag_id == tag_id,
                TagEmailRule.email_address == address,
            )
        )
        if existing.first():
            raise ConflictException(
                "Für diese E-Mail-Adresse existiert bereits eine Regel",
                ErrorCode.DUPLICATE_ENTRY,
            )

        rule = TagEmailRule(
            tag_id=tag_id,
            email_address=address,
            create_ticket=data.create_ticket,
            use_reply_to=data.use_reply_to,
        )
        self.db.add(rule)
        await self.db.flush()
        logger.info(f"E-Mail-Regel angelegt: {address} → Tag {tag_id}")
        return rule

    async def update_rule(self, rule_id: UUID, data: EmailRuleUpdate) -> TagEmailRule:
        rule = await self.db.get(TagEmailRule, rule_id)
        if rule is None:
            raise NotFoundException("Regel nicht gefunden")
        if data.create_ticket is not None:
            rule.create_ticket = data.create_ticket
        if data.use_reply_to is not None:
            rule.use_reply_to = data.use_reply_to
        await self.db.flush()
        return rule

    async def delete_rule(self, rule_id: UUID) -> None:
        rule = await self.db.get(TagEmailRule, rule_id)
        if rule is None:
            raise NotFoundException("Regel nicht gefunden")
        await self.db.delete(rule)
        await self.db.flush()

    async def rules_for_sender(self, address: str) -> list[TagEmailRule]:
        """Alle Regeln, die auf eine Absender-Adresse passen."""
        result = await self.db.execute(
            select(TagEmailRule).where(TagEmailRule.email_address == normalize_email(address))
        )
        return list(result.scalars().all())

    # ==================== Blacklist ====================

    async def list_blacklist(self) -> list[EmailBlacklist]:
        result = await self.db.execute(select(EmailBlacklist).order_by(EmailBlacklist.created_at.desc()))
        return list(result.scalars().all())

    async def add_to_blacklist(self, data: BlacklistCreate, created_by: UUID | None = None) -> EmailBlacklist:
        address = normalize_email(data.email_address)
        if await self.is_blacklisted(address):
            raise ConflictException(
                "Diese E-Mail-Adresse ist bereits auf der Blacklist",
                ErrorCode.DUPLICATE_ENTRY,
            )
        entry = EmailBlacklist(email_address=address, reason=data.reason, created_by=created_by)
        self.db.add(entry)
        await self.db.flush()
        logger.info(f"Blacklist: {address} hinzugefügt")
        return entry

    async def remove_from_blacklist(self, entry_id: UUID) -> None:
        entry = await self.db.get(EmailBlacklist, entry_id)
        if entry is None:
            raise NotFoundException("Eintrag nicht gefunden")
        await self.db.delete(entry)
        await self.db.flush()
        logger.info(f"Blacklist: {entry.email_address} entfernt")

    async def is_blacklisted(self, address: str | None) -> bool:
        normalized = normalize_email(address)
        if not normalized:
            return False
        result = await self.db.execute(
            select(EmailBlacklist.id).where(EmailBlacklist.email_address == normalized)
        )
        return result.first() is not None
