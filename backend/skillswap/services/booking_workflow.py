# backend/skillswap/services/booking_workflow.py
"""
Booking Workflow for SkillSwap

Entry point for every booking intent: publishing an offer, requesting a
slot, accepting or declining a request and cancelling an offer.

Request state machine:

    pending -> accepted   (tutor accept, seat reserved by the arbiter)
    pending -> declined   (tutor decline, or cascade after an acceptance)
    pending -> cancelled  (tutor cancels the offer)

Accept runs the arbiter's conditional write, the session materialization
and the cascade in one transaction under the capacity key. Notifications go
out only after that transaction committed.
"""

from dataclasses import dataclass, field
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AcceptOutcome, RequestStatus
from ..core.exceptions import (
    CapacityExceededException,
    ForbiddenException,
    NotFoundException,
    OfferClosedException,
    RequestAlreadyResolvedException,
    ValidationException,
)
from ..models.offer import Offer
from ..models.session_request import SessionRequest
from ..models.tutoring_session import TutoringSession
from ..repositories.factory import RepositoryFactory
from ..schemas.offer import OfferCreate
from ..schemas.session_request import SlotChoice
from .base import BaseService
from .capacity_arbiter import CapacityArbiter
from .notification_service import NotificationService
from .offer_service import OfferService
from .session_materializer import SessionMaterializer
from .session_request_service import SessionRequestService
from .user_directory import DatabaseUserDirectory, UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class AcceptResult:
    request: SessionRequest
    session: TutoringSession
    declined: List[SessionRequest] = field(default_factory=list)
    offer_closed: bool = False


@dataclass
class CancelResult:
    offer: Offer
    cancelled: List[SessionRequest] = field(default_factory=list)
    notified_student_ids: List[str] = field(default_factory=list)


class BookingWorkflow(BaseService):
    """
    Orchestrates booking transitions.

    Collaborators are injectable; by default everything runs on the given
    session with the database user directory and the inbox notification sink.
    """

    def __init__(
        self,
        db: Session,
        user_directory: Optional[UserDirectory] = None,
        notification_service: Optional[NotificationService] = None,
        arbiter: Optional[CapacityArbiter] = None,
        materializer: Optional[SessionMaterializer] = None,
    ):
        super().__init__(db)
        self.user_directory = user_directory or DatabaseUserDirectory(db)
        self.notification_service = notification_service or NotificationService(db)
        self.arbiter = arbiter or CapacityArbiter(db)
        self.materializer = materializer or SessionMaterializer(db)
        self.offer_service = OfferService(db)
        self.request_service = SessionRequestService(db)

        self.offer_repository = RepositoryFactory.create_offer_repository(db)
        self.slot_repository = RepositoryFactory.create_offer_slot_repository(db)
        self.request_repository = RepositoryFactory.create_session_request_repository(db)

    # Guards

    def _require_active(self, user_id: str, field_name: str) -> None:
        user = self.user_directory.get_user(user_id)
        if user is None:
            raise NotFoundException(
                "User not found", code="USER_NOT_FOUND", details={field_name: user_id}
            )
        if not user.is_active:
            raise ValidationException(
                "User is not active",
                code="USER_INACTIVE",
                details={"field": field_name, field_name: user_id, "status": user.status},
            )

    def _load_request(self, request_id: str, tutor_id: str) -> SessionRequest:
        request = self.request_repository.get_by_id(request_id)
        if request is None:
            raise NotFoundException(
                "Request not found", code="REQUEST_NOT_FOUND", details={"request_id": request_id}
            )
        if request.tutor_id != tutor_id:
            raise ForbiddenException(
                "Only the offer's tutor can resolve this request",
                details={"request_id": request_id},
            )
        if not request.is_pending:
            raise RequestAlreadyResolvedException(request.id, request.status)
        return request

    def _load_offer(self, offer_id: str) -> Offer:
        offer = self.offer_repository.get_by_id(offer_id)
        if offer is None:
            raise NotFoundException(
                "Offer not found", code="OFFER_NOT_FOUND", details={"offer_id": offer_id}
            )
        return offer

    # Intents

    @BaseService.measure_operation("create_offer")
    def create_offer(self, tutor_id: str, data: OfferCreate) -> Offer:
        self._require_active(tutor_id, "tutor_id")
        return self.offer_service.create_offer(tutor_id, data)

    @BaseService.measure_operation("create_request")
    def create_request(self, offer_id: str, student_id: str, choice: SlotChoice) -> SessionRequest:
        self._require_active(student_id, "student_id")
        offer = self._load_offer(offer_id)
        self._require_active(offer.tutor_id, "tutor_id")

        request = self.request_service.create_request(offer_id, student_id, choice)

        student = self.user_directory.get_user(student_id)
        slot = self.slot_repository.get_by_id(request.slot_id)
        self.notification_service.send_new_request(
            offer,
            student.display_name if student and student.display_name else "A student",
            slot.scheduled_at if slot else None,
        )
        return request

    @BaseService.measure_operation("accept_request")
    def accept_request(self, request_id: str, tutor_id: str) -> AcceptResult:
        """
        Accept a pending request.

        Raises:
            NotFoundException: unknown request
            ForbiddenException: ``tutor_id`` is not the request's tutor
            RequestAlreadyResolvedException: the request is not pending
            CapacityExceededException: the capacity key is already full
        """
        request = self._load_request(request_id, tutor_id)
        self._require_active(request.tutor_id, "tutor_id")
        self._require_active(request.student_id, "student_id")
        offer = self._load_offer(request.offer_id)
        slot = self.slot_repository.get_by_id(request.slot_id)
        if slot is None:
            raise NotFoundException(
                "Slot not found", code="SLOT_NOT_FOUND", details={"slot_id": request.slot_id}
            )

        session: Optional[TutoringSession] = None
        declined: List[SessionRequest] = []
        offer_closed = False
        declined_on_capacity = False

        with self.arbiter.hold(offer, slot.id):
            with self.transaction():
                outcome = self.arbiter.decide(request.id, offer, slot.id)
                if outcome == AcceptOutcome.ACCEPTED:
                    session = self.materializer.materialize(request, offer, slot)
                    declined, offer_closed = self._cascade_after_accept(offer, request)
                elif (
                    outcome == AcceptOutcome.CAPACITY_EXCEEDED
                    and settings.decline_pending_on_full_slot
                ):
                    declined_on_capacity = self.request_repository.resolve_pending(
                        request.id, RequestStatus.DECLINED
                    )

        if outcome == AcceptOutcome.NOT_PENDING:
            self.request_repository.refresh(request)
            raise RequestAlreadyResolvedException(request.id, request.status)

        if outcome == AcceptOutcome.CAPACITY_EXCEEDED:
            if declined_on_capacity:
                self.notification_service.send_requests_declined([request.student_id], offer)
            raise CapacityExceededException(
                request.id, offer.id, slot.id, offer.effective_capacity
            )

        self.request_repository.refresh(request)
        self.log_operation(
            "accept_request",
            request_id=request.id,
            offer_id=offer.id,
            slot_id=slot.id,
            session_id=session.id,
            declined_count=len(declined),
            offer_closed=offer_closed,
        )

        self.notification_service.send_request_accepted(request.student_id, offer, slot.scheduled_at)
        if declined:
            self.notification_service.send_requests_declined(
                [r.student_id for r in declined], offer
            )
        return AcceptResult(
            request=request, session=session, declined=declined, offer_closed=offer_closed
        )

    def _cascade_after_accept(
        self, offer: Offer, accepted: SessionRequest
    ) -> Tuple[List[SessionRequest], bool]:
        """
        Status fallout of one acceptance, inside the accept transaction.

        Single-seat offers close and decline every other pending request.
        Group offers close once every slot is full; leftover pending requests
        on a full slot are declined only when that policy is switched on.
        """
        if not offer.is_group:
            declined = self.request_repository.resolve_all_pending(
                offer.id, RequestStatus.DECLINED, exclude_id=accepted.id
            )
            closed = self.offer_repository.close_offer(offer.id)
            return declined, closed

        capacity = offer.effective_capacity
        declined: List[SessionRequest] = []
        if (
            settings.decline_pending_on_full_slot
            and self.request_repository.count_accepted(offer.id, accepted.slot_id) >= capacity
        ):
            declined = self.request_repository.resolve_all_pending(
                offer.id, RequestStatus.DECLINED, slot_id=accepted.slot_id, exclude_id=accepted.id
            )

        slots = self.slot_repository.find_by(offer_id=offer.id)
        accepted_by_slot = self.request_repository.accepted_counts_by_slot([offer.id]).get(
            offer.id, {}
        )
        closed = False
        if slots and all(accepted_by_slot.get(s.id, 0) >= capacity for s in slots):
            closed = self.offer_repository.close_offer(offer.id)
        return declined, closed

    @BaseService.measure_operation("decline_request")
    def decline_request(self, request_id: str, tutor_id: str) -> SessionRequest:
        request = self._load_request(request_id, tutor_id)
        self._require_active(tutor_id, "tutor_id")

        with self.transaction():
            changed = self.request_repository.resolve_pending(request.id, RequestStatus.DECLINED)
        self.request_repository.refresh(request)
        if not changed:
            raise RequestAlreadyResolvedException(request.id, request.status)

        self.log_operation("decline_request", request_id=request.id, offer_id=request.offer_id)
        offer = self._load_offer(request.offer_id)
        self.notification_service.send_requests_declined([request.student_id], offer)
        return request

    @BaseService.measure_operation("cancel_offer")
    def cancel_offer(self, offer_id: str, tutor_id: str) -> CancelResult:
        """
        Withdraw an open offer and cancel its pending requests.

        Does not wait for in-flight acceptances: an acceptance that committed
        first keeps its session.
        """
        offer = self._load_offer(offer_id)
        if offer.tutor_id != tutor_id:
            raise ForbiddenException(
                "Only the offer's tutor can cancel it", details={"offer_id": offer_id}
            )
        self._require_active(tutor_id, "tutor_id")

        with self.transaction():
            self.offer_repository.get_by_id(offer_id, for_update=True)
            if not self.offer_repository.close_offer(offer_id):
                raise OfferClosedException(offer_id)
            cancelled = self.request_repository.resolve_all_pending(
                offer_id, RequestStatus.CANCELLED
            )

        student_ids = list(dict.fromkeys(r.student_id for r in cancelled))
        self.log_operation(
            "cancel_offer", offer_id=offer_id, cancelled_count=len(cancelled)
        )
        self.notification_service.send_offer_cancelled(student_ids, offer)
        return CancelResult(offer=offer, cancelled=cancelled, notified_student_ids=student_ids)
