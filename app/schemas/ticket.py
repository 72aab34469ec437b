"""Ticket Schemas - Tickets, Nachrichten, Anhänge, Tags, Regeln, Vorlagen."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.template import TemplateCategory
from app.models.ticket import TicketPriority, TicketStatus
from app.schemas.pagination import PaginatedResponse
from app.schemas.profile import ProfileBrief
from app.schemas.validators import EmailAddress, HexColor, SearchTerm, TrimmedName


class TicketListFilter(str, Enum):
    ALL = "all"
    ASSIGNED = "assigned"
    SPAM = "spam"


class DatePreset(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class StatsRange(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


# ── Tags ──

class TagResponse(BaseModel):
    id: UUID
    name: str
    color: str

    model_config = {"from_attributes": True}


class TagWithCount(TagResponse):
    ticket_count: int = 0


class TagCreate(BaseModel):
    name: TrimmedName = Field(max_length=100)
    color: HexColor = "#6b7280"


class TagUpdate(BaseModel):
    name: TrimmedName | None = Field(default=None, max_length=100)
    color: HexColor = None


class EmailRuleCreate(BaseModel):
    email_address: EmailAddress
    create_ticket: bool = True
    use_reply_to: bool = False


class EmailRuleUpdate(BaseModel):
    create_ticket: bool | None = None
    use_reply_to: bool | None = None


class EmailRuleResponse(BaseModel):
    id: UUID
    tag_id: UUID
    email_address: str
    create_ticket: bool
    use_reply_to: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BlacklistCreate(BaseModel):
    email_address: EmailAddress
    reason: str | None = None


class BlacklistResponse(BaseModel):
    id: UUID
    email_address: str
    reason: str | None
    created_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Tickets ──

class TicketListParams(BaseModel):
    """Filter für die Ticket-Liste."""

    filter: TicketListFilter = TicketListFilter.ALL
    status: TicketStatus | None = None
    search: SearchTerm = None
    tags: list[UUID] = Field(default_factory=list)
    date_preset: DatePreset | None = None
    created_from: date | None = None
    created_to: date | None = None
    page: int = Field(default=1, ge=1)


class AttachmentResponse(BaseModel):
    id: UUID
    ticket_id: UUID
    message_id: UUID | None
    filename: str
    original_filename: str
    mime_type: str
    size_bytes: int
    storage_path: str
    uploaded_by: UUID | None
    is_inline: bool
    content_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: UUID
    ticket_id: UUID
    sender_id: UUID | None
    sender: ProfileBrief | None = None
    content: str
    is_internal: bool
    email_status: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketListItem(BaseModel):
    id: UUID
    ticket_number: int
    display_number: str
    subject: str
    status: TicketStatus
    priority: TicketPriority
    created_from_email: str | None
    reply_to_email: str | None
    is_spam: bool
    creator: ProfileBrief | None = None
    assignee: ProfileBrief | None = None
    tags: list[TagResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TicketDetail(TicketListItem):
    description: str | None
    messages: list[MessageResponse] = Field(default_factory=list)
    attachments: list[AttachmentResponse] = Field(default_factory=list)


TicketListResponse = PaginatedResponse[TicketListItem]


class TicketUpdate(BaseModel):
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assigned_to: UUID | None = None
    is_spam: bool | None = None


class TicketTagsUpdate(BaseModel):
    tag_ids: list[UUID] = Field(default_factory=list)


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    is_internal: bool = False


# ── Statistik ──

class WorkloadEntry(BaseModel):
    employee_name: str
    ticket_count: int


class DateCount(BaseModel):
    date: str
    count: int


class DistributionEntry(BaseModel):
    key: str
    count: int
    percentage: float


class WeekdayCount(BaseModel):
    weekday: str
    count: int


class TicketStatsResponse(BaseModel):
    total_tickets: int = 0
    open_tickets: int = 0
    avg_response_time: float | None = None
    avg_resolution_time: float | None = None
    spam_rate: float = 0.0
    team_workload: list[WorkloadEntry] = Field(default_factory=list)
    tickets_over_time: list[DateCount] = Field(default_factory=list)
    status_distribution: list[DistributionEntry] = Field(default_factory=list)
    priority_distribution: list[DistributionEntry] = Field(default_factory=list)
    weekday_distribution: list[WeekdayCount] = Field(default_factory=list)


# ── Vorlagen ──

class TemplateAttachmentResponse(BaseModel):
    id: UUID
    template_id: UUID
    filename: str
    storage_path: str
    mime_type: str
    size_bytes: int
    created_at: datetime

    model_config = {"from_attributes": True}


class TemplateCreate(BaseModel):
    name: TrimmedName = Field(max_length=255)
    content: str = Field(min_length=1)
    category: TemplateCategory = TemplateCategory.GENERAL


class TemplateUpdate(BaseModel):
    name: TrimmedName | None = Field(default=None, max_length=255)
    content: str | None = None
    category: TemplateCategory | None = None


class TemplateResponse(BaseModel):
    id: UUID
    name: str
    content: str
    category: TemplateCategory
    category_label: str
    created_by: UUID | None
    attachments: list[TemplateAttachmentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TemplateGroup(BaseModel):
    category: TemplateCategory
    label: str
    templates: list[TemplateResponse]


class RenderedTemplate(BaseModel):
    template_id: UUID
    ticket_id: UUID
    content: str
