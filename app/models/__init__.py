"""SQLAlchemy Models für das FLIGHTHOUR Portal."""

from app.models.calendar import (
    CalendarEvent,
    CalendarSyncLog,
    CancellationReason,
    EventStatus,
    EventType,
    MaydayActionType,
    MaydayConfirmationToken,
    RebookToken,
    SyncStatus,
    SyncType,
)
from app.models.document import Document
from app.models.notification import Notification
from app.models.profile import Profile, UserRole
from app.models.queue import (
    EmailQueueItem,
    EmailSettings,
    EmailType,
    QueueStatus,
    SMSNotificationType,
    SMSQueueItem,
)
from app.models.template import ResponseTemplate, TemplateAttachment, TemplateCategory
from app.models.ticket import (
    EmailBlacklist,
    Tag,
    TagEmailRule,
    Ticket,
    TicketAttachment,
    TicketMessage,
    TicketPriority,
    TicketStatus,
    ticket_tags,
)
from app.models.time_tracking import (
    CompensationType,
    EmployeeSettings,
    TimeCategory,
    TimeEntry,
    TimeReport,
)
from app.models.work_request import (
    ShiftCoverageNotification,
    ShiftCoverageRequest,
    ShiftCoverageStatus,
    WorkRequest,
    WorkRequestAction,
    WorkRequestActionToken,
    WorkRequestStatus,
)

__all__ = [
    "Profile",
    "UserRole",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "TicketMessage",
    "TicketAttachment",
    "Tag",
    "TagEmailRule",
    "EmailBlacklist",
    "ticket_tags",
    "ResponseTemplate",
    "TemplateAttachment",
    "TemplateCategory",
    "EmailQueueItem",
    "EmailSettings",
    "EmailType",
    "QueueStatus",
    "SMSQueueItem",
    "SMSNotificationType",
    "CalendarEvent",
    "CalendarSyncLog",
    "CancellationReason",
    "EventStatus",
    "EventType",
    "SyncStatus",
    "SyncType",
    "MaydayActionType",
    "MaydayConfirmationToken",
    "RebookToken",
    "WorkRequest",
    "WorkRequestAction",
    "WorkRequestActionToken",
    "WorkRequestStatus",
    "ShiftCoverageRequest",
    "ShiftCoverageNotification",
    "ShiftCoverageStatus",
    "TimeCategory",
    "TimeEntry",
    "TimeReport",
    "EmployeeSettings",
    "CompensationType",
    "Notification",
    "Document",
]
