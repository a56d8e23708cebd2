# backend/skillswap/services/session_request_service.py
"""
Session Request Service for SkillSwap

The Request Ledger: students bid for a slot of an open offer, either one of
the slots the tutor published or a time of their own. A proposed time is
matched against the offer's existing slots and only becomes a new slot when
nothing identical exists yet.
"""

from datetime import timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ParticipantRole, RequestStatus
from ..core.exceptions import (
    DuplicateRequestException,
    NotFoundException,
    StorageException,
    ValidationException,
)
from ..core.timezone_utils import as_utc, utcnow
from ..models.offer import Offer, OfferSlot
from ..models.session_request import SessionRequest
from ..repositories.factory import RepositoryFactory
from ..schemas.session_request import ExistingSlot, ProposedSlot, RequestListItem, SlotChoice
from .base import BaseService

logger = logging.getLogger(__name__)


class SessionRequestService(BaseService):
    """Service for creating and listing session requests."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.offer_repository = RepositoryFactory.create_offer_repository(db)
        self.slot_repository = RepositoryFactory.create_offer_slot_repository(db)
        self.request_repository = RepositoryFactory.create_session_request_repository(db)

    def _resolve_slot(self, offer: Offer, choice: SlotChoice) -> Tuple[OfferSlot, bool]:
        """
        Return the slot a choice points at and whether it was created here.
        """
        if isinstance(choice, ExistingSlot):
            slot = self.slot_repository.get_by_id(choice.slot_id)
            if slot is None:
                raise NotFoundException(
                    "Slot not found", code="SLOT_NOT_FOUND", details={"slot_id": choice.slot_id}
                )
            if slot.offer_id != offer.id:
                raise ValidationException(
                    "Slot does not belong to this offer",
                    code="INVALID_SLOT",
                    details={"field": "slot_id", "slot_id": choice.slot_id, "offer_id": offer.id},
                )
            return slot, False

        if not isinstance(choice, ProposedSlot):
            raise ValidationException("Unknown slot choice", details={"field": "slot"})

        scheduled_at = as_utc(choice.scheduled_at)
        oldest_allowed = utcnow() - timedelta(minutes=settings.proposal_grace_minutes)
        if scheduled_at < oldest_allowed:
            raise ValidationException(
                "Proposed time is in the past",
                code="PROPOSED_TIME_IN_PAST",
                details={"field": "scheduled_at", "value": scheduled_at.isoformat()},
            )

        existing = self.slot_repository.find_identical(
            offer.id, scheduled_at, choice.duration_minutes
        )
        if existing is not None:
            return existing, False

        slot = self.slot_repository.create(
            offer_id=offer.id,
            scheduled_at=scheduled_at,
            duration_minutes=choice.duration_minutes,
        )
        return slot, True

    @BaseService.measure_operation("create_request")
    def create_request(self, offer_id: str, student_id: str, choice: SlotChoice) -> SessionRequest:
        """
        Record a pending request of ``student_id`` for one slot of an offer.

        Raises:
            NotFoundException: offer or slot does not exist
            ValidationException: own offer, offer not open, foreign slot, stale proposal
            DuplicateRequestException: the student already holds an active request here
        """
        try:
            request, slot, created = self._insert_request(offer_id, student_id, choice)
        except StorageException as exc:
            cause = exc.__cause__
            if not (
                isinstance(cause, IntegrityError)
                and self.request_repository.is_active_request_conflict(cause)
            ):
                raise
            # A concurrent submission committed between the check and the insert
            active = self.request_repository.find_active_for_student(offer_id, student_id)
            self.logger.info(
                f"Duplicate request for offer {offer_id} rejected by the active-request index",
                extra={"offer_id": offer_id, "student_id": student_id},
            )
            raise DuplicateRequestException(
                offer_id, student_id, active.id if active is not None else None
            ) from cause

        self.log_operation(
            "create_request",
            request_id=request.id,
            offer_id=offer_id,
            slot_id=slot.id,
            student_id=student_id,
            proposed_slot_created=created,
        )
        return request

    def _insert_request(
        self, offer_id: str, student_id: str, choice: SlotChoice
    ) -> Tuple[SessionRequest, OfferSlot, bool]:
        with self.transaction():
            offer = self.offer_repository.get_by_id(offer_id)
            if offer is None:
                raise NotFoundException(
                    "Offer not found", code="OFFER_NOT_FOUND", details={"offer_id": offer_id}
                )
            if offer.tutor_id == student_id:
                raise ValidationException(
                    "You cannot request your own offer",
                    code="OWN_OFFER",
                    details={"field": "student_id", "offer_id": offer_id},
                )
            if not offer.is_open:
                raise ValidationException(
                    "Offer is not open",
                    code="OFFER_NOT_OPEN",
                    details={"offer_id": offer_id, "status": offer.status},
                )

            active = self.request_repository.find_active_for_student(offer_id, student_id)
            if active is not None:
                raise DuplicateRequestException(offer_id, student_id, active.id)

            slot, created = self._resolve_slot(offer, choice)
            request = self.request_repository.create(
                offer_id=offer.id,
                slot_id=slot.id,
                tutor_id=offer.tutor_id,
                student_id=student_id,
                status=RequestStatus.PENDING.value,
            )
        return request, slot, created

    @BaseService.measure_operation("list_requests")
    def list_requests(
        self, user_id: str, role: str = "all", status: Optional[str] = None
    ) -> List[RequestListItem]:
        """Requests the user is party to, joined with display data, newest first."""
        try:
            participant_role = ParticipantRole(role or "all")
        except ValueError:
            raise ValidationException(
                "Role must be tutor, student or all", details={"field": "role", "value": role}
            )

        status_filter: Optional[str] = None
        if status and status != "all":
            try:
                status_filter = RequestStatus(status).value
            except ValueError:
                raise ValidationException(
                    "Unknown request status", details={"field": "status", "value": status}
                )

        requests = self.request_repository.list_for_user(
            user_id, participant_role, status_filter, settings.list_limit
        )
        return [self._to_list_item(request) for request in requests]

    @staticmethod
    def _to_list_item(request: SessionRequest) -> RequestListItem:
        offer = request.offer
        slot = request.slot
        return RequestListItem(
            id=request.id,
            offer_id=request.offer_id,
            slot_id=request.slot_id,
            tutor_id=request.tutor_id,
            student_id=request.student_id,
            status=request.status,
            created_at=request.created_at,
            updated_at=request.updated_at,
            title=offer.title,
            notes=offer.notes,
            location_type=offer.location_type,
            location=offer.location,
            is_group=bool(offer.is_group),
            scheduled_at=slot.scheduled_at,
            duration_minutes=slot.duration_minutes,
            tutor_name=request.tutor.display_name,
            student_name=request.student.display_name,
        )
