"""
Session Materializer for SkillSwap

Turns an accepted request into a scheduled tutoring session, snapshotting
the offer and slot as they are at acceptance time.
"""

import logging

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RequestStatus, SessionStatus
from ..core.exceptions import ConflictException
from ..core.timezone_utils import as_utc
from ..models.offer import Offer, OfferSlot
from ..models.session_request import SessionRequest
from ..models.tutoring_session import TutoringSession
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class SessionMaterializer(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.session_repository = RepositoryFactory.create_tutoring_session_repository(db)

    def materialize(self, request: SessionRequest, offer: Offer, slot: OfferSlot) -> TutoringSession:
        """
        Create the session for an accepted request.

        Runs inside the caller's transaction; a storage failure propagates
        and takes the acceptance down with it.
        """
        if request.status != RequestStatus.ACCEPTED.value:
            raise ConflictException(
                "Only accepted requests become sessions",
                code="REQUEST_NOT_ACCEPTED",
                details={"request_id": request.id, "status": request.status},
            )

        session = self.session_repository.create(
            tutor_id=request.tutor_id,
            student_id=request.student_id,
            skill_id=offer.skill_id,
            offer_id=offer.id,
            slot_id=slot.id,
            request_id=request.id,
            scheduled_at=as_utc(slot.scheduled_at),
            duration_minutes=slot.duration_minutes or settings.default_session_duration_minutes,
            location=offer.session_location,
            is_group=bool(offer.is_group),
            notes=offer.notes,
            status=SessionStatus.SCHEDULED.value,
        )
        self.logger.debug(f"Materialized session {session.id} from request {request.id}")
        return session
