"""
Service layer for SkillSwap.

Services own transaction boundaries and business rules; repositories own
the queries.
"""

from .base import BaseService
from .booking_workflow import AcceptResult, BookingWorkflow, CancelResult
from .capacity_arbiter import CapacityArbiter
from .notification_service import InboxNotificationSink, NotificationService, NotificationSink
from .offer_service import OfferService
from .session_materializer import SessionMaterializer
from .session_request_service import SessionRequestService
from .session_service import SessionService
from .user_directory import DatabaseUserDirectory, DirectoryUser, UserDirectory

__all__ = [
    "AcceptResult",
    "BaseService",
    "BookingWorkflow",
    "CancelResult",
    "CapacityArbiter",
    "DatabaseUserDirectory",
    "DirectoryUser",
    "InboxNotificationSink",
    "NotificationService",
    "NotificationSink",
    "OfferService",
    "SessionMaterializer",
    "SessionRequestService",
    "SessionService",
    "UserDirectory",
]
