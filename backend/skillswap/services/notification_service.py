# backend/skillswap/services/notification_service.py
"""
Notification Service for SkillSwap

Builds the messages sent on booking transitions and hands them to a
notification sink. Sending is fire-and-forget: every send happens after the
booking transaction committed, and a failing sink is logged and ignored.
"""

from datetime import datetime
import logging
from typing import Iterable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.timezone_utils import as_utc
from ..models.offer import Offer
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, recipient_id: str, subject: str, body: str) -> None:
        ...


class InboxNotificationSink:
    """Persists notifications as inbox rows, each in its own short transaction."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = RepositoryFactory.create_notification_repository(db)

    def notify(self, recipient_id: str, subject: str, body: str) -> None:
        try:
            self.repository.create(user_id=recipient_id, subject=subject, body=body)
            self.db.commit()
        except (SQLAlchemyError, RepositoryException):
            self.db.rollback()
            raise


def _format_when(value: Optional[datetime]) -> str:
    value = as_utc(value)
    if value is None:
        return "an unscheduled time"
    return value.strftime("%Y-%m-%d %H:%M UTC")


class NotificationService(BaseService):
    """
    Sends booking notifications through a ``NotificationSink``.

    Every public ``send_*`` method returns True when the sink accepted all
    messages and False otherwise; none of them raise.
    """

    def __init__(self, db: Session, sink: Optional[NotificationSink] = None):
        super().__init__(db)
        self.sink: NotificationSink = sink if sink is not None else InboxNotificationSink(db)

    def notify_safely(self, recipient_id: str, subject: str, body: str) -> bool:
        try:
            self.sink.notify(recipient_id, subject, body)
            return True
        except Exception as e:
            self.logger.warning(
                f"Notification to {recipient_id} failed ({subject!r}): {type(e).__name__}: {e}"
            )
            return False

    def _notify_many(self, recipient_ids: Iterable[str], subject: str, body: str) -> bool:
        delivered = True
        for recipient_id in dict.fromkeys(recipient_ids):
            delivered = self.notify_safely(recipient_id, subject, body) and delivered
        return delivered

    def send_new_request(self, offer: Offer, student_name: str, scheduled_at: datetime) -> bool:
        return self.notify_safely(
            offer.tutor_id,
            "New session request",
            f"{student_name} requested \"{offer.title}\" at {_format_when(scheduled_at)}.",
        )

    def send_request_accepted(self, student_id: str, offer: Offer, scheduled_at: datetime) -> bool:
        return self.notify_safely(
            student_id,
            "Session request accepted",
            f"Your request for \"{offer.title}\" at {_format_when(scheduled_at)} was accepted.",
        )

    def send_requests_declined(self, student_ids: Iterable[str], offer: Offer) -> bool:
        return self._notify_many(
            student_ids,
            "Session request declined",
            f"Your request for \"{offer.title}\" was declined.",
        )

    def send_offer_cancelled(self, student_ids: Iterable[str], offer: Offer) -> bool:
        """One message per distinct student with a pending request."""
        return self._notify_many(
            student_ids,
            "Session offer cancelled",
            f"The tutor cancelled \"{offer.title}\"; your pending request was cancelled.",
        )

    def send_session_cancelled(
        self, recipient_ids: Iterable[str], cancelled_by: str, scheduled_at: datetime
    ) -> bool:
        return self._notify_many(
            recipient_ids,
            "Session cancelled",
            f"{cancelled_by} cancelled the session scheduled for {_format_when(scheduled_at)}.",
        )
