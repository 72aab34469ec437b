"""Pydantic Schemas für das FLIGHTHOUR Portal."""

from app.schemas.calendar import (
    BookingOut,
    CalendarEventCreate,
    CalendarEventResponse,
    CalendarEventUpdate,
    CamelModel,
    ShopBookingCancel,
    ShopBookingCreate,
    SyncResult,
)
from app.schemas.errors import ErrorCode, ErrorResponse, ValidationErrorDetail
from app.schemas.notification import NotificationPreferences, NotificationResponse
from app.schemas.pagination import PaginatedResponse, PaginationParams
from app.schemas.profile import ProfileBrief, ProfileResponse, ProfileUpdate
from app.schemas.queue import EmailQueueItemResponse, SMSQueueItemResponse, SystemStatus
from app.schemas.ticket import (
    MessageCreate,
    TicketDetail,
    TicketListItem,
    TicketListParams,
    TicketListResponse,
    TicketUpdate,
)
from app.schemas.time_tracking import TimeEntryInput, TimeEntryResponse
from app.schemas.validators import EmailAddress, HexColor, SearchTerm
from app.schemas.work_request import WorkRequestInput, WorkRequestResponse

__all__ = [
    # Fehler
    "ErrorCode",
    "ErrorResponse",
    "ValidationErrorDetail",
    # Pagination
    "PaginationParams",
    "PaginatedResponse",
    # Validatoren
    "EmailAddress",
    "HexColor",
    "SearchTerm",
    # Profile
    "ProfileBrief",
    "ProfileResponse",
    "ProfileUpdate",
    # Tickets
    "TicketListParams",
    "TicketListItem",
    "TicketListResponse",
    "TicketDetail",
    "TicketUpdate",
    "MessageCreate",
    # Kalender / Shop
    "CamelModel",
    "CalendarEventCreate",
    "CalendarEventUpdate",
    "CalendarEventResponse",
    "SyncResult",
    "BookingOut",
    "ShopBookingCreate",
    "ShopBookingCancel",
    # Personal
    "WorkRequestInput",
    "WorkRequestResponse",
    "TimeEntryInput",
    "TimeEntryResponse",
    "NotificationResponse",
    "NotificationPreferences",
    # System
    "EmailQueueItemResponse",
    "SMSQueueItemResponse",
    "SystemStatus",
]
