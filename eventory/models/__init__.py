"""ORM models package."""
from .api_key import ApiKey, ApiScope
from .audit import AdminAuditLog
from .base import Base
from .email_notification import EmailNotification, EmailNotificationStatus
from .error_log import ErrorLog
from .event import Event
from .qr_scan_log import QrScanLog
from .scheduler_lock import SchedulerLock
from .ticket import Ticket, TicketPaymentStatus, TicketStatus

__all__ = [
    "AdminAuditLog",
    "ApiKey",
    "ApiScope",
    "Base",
    "EmailNotification",
    "EmailNotificationStatus",
    "ErrorLog",
    "Event",
    "QrScanLog",
    "SchedulerLock",
    "Ticket",
    "TicketPaymentStatus",
    "TicketStatus",
]
