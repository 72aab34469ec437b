"""Business-Logik Services für das FLIGHTHOUR Portal."""

from app.services.attachment_service import AttachmentService, AttachmentUpload
from app.services.booking_service import BookingService
from app.services.calendar_service import CalendarService
from app.services.calendar_sync_service import CalendarSyncService
from app.services.contact_service import ContactService
from app.services.document_service import DocumentService, DocumentUpload
from app.services.email_ingest_service import EmailIngestService, IMAPError
from app.services.email_queue_service import EmailQueueService
from app.services.employee_service import EmployeeService
from app.services.google_calendar_client import GoogleCalendarClient, GoogleCalendarError
from app.services.mailer import Mailer, MailerError, OutgoingMail
from app.services.mayday_service import MaydayService
from app.services.notification_service import NotificationService
from app.services.shift_coverage_service import ShiftCoverageService
from app.services.sms_service import SMSQueueService, TwilioClient, TwilioError
from app.services.storage_service import StorageService
from app.services.tag_service import TagService
from app.services.template_service import TemplateService
from app.services.ticket_service import TicketService
from app.services.time_tracking_service import TimeTrackingService
from app.services.work_request_service import WorkRequestService

__all__ = [
    # Support
    "TicketService",
    "TagService",
    "TemplateService",
    "AttachmentService",
    "AttachmentUpload",
    "EmailIngestService",
    "IMAPError",
    "ContactService",
    # Versand
    "EmailQueueService",
    "Mailer",
    "MailerError",
    "OutgoingMail",
    "SMSQueueService",
    "TwilioClient",
    "TwilioError",
    "StorageService",
    # Kalender
    "GoogleCalendarClient",
    "GoogleCalendarError",
    "CalendarService",
    "CalendarSyncService",
    "BookingService",
    "MaydayService",
    # Personal
    "EmployeeService",
    "ShiftCoverageService",
    "WorkRequestService",
    "TimeTrackingService",
    "NotificationService",
    "DocumentService",
    "DocumentUpload",
]
