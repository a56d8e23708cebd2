# backend/skillswap/services/capacity_arbiter.py
"""
Capacity Arbiter for SkillSwap

Decides at acceptance time whether a request still fits and reserves the
seat in the same step. The decision is one conditional UPDATE:

    UPDATE session_requests SET status = 'accepted'
     WHERE id = :id AND status = 'pending'
       AND (SELECT count(*) FROM session_requests
             WHERE <capacity key> AND status = 'accepted') < :capacity

run while the per-key booking lock is held. A group offer is keyed per
(offer, slot); a single-seat offer is keyed on the whole offer, because at
most one of its requests may ever be accepted whatever slot it targets.
Where the database supports row locks the slot (group) or offer row is
also locked FOR UPDATE for the rest of the transaction.
"""

from contextlib import contextmanager
import logging
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import booking_slot_lock
from ..core.enums import AcceptOutcome, RequestStatus
from ..core.exceptions import NotFoundException
from ..database.session_utils import supports_row_locks
from ..models.offer import Offer
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def capacity_slot_key(offer: Offer, slot_id: str) -> Optional[str]:
    """Slot part of the capacity key; None stands for the whole offer."""
    return slot_id if offer.is_group else None


class CapacityArbiter(BaseService):
    """Race-free seat reservation for accept operations."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.offer_repository = RepositoryFactory.create_offer_repository(db)
        self.slot_repository = RepositoryFactory.create_offer_slot_repository(db)
        self.request_repository = RepositoryFactory.create_session_request_repository(db)

    @contextmanager
    def hold(self, offer: Offer, slot_id: str) -> Iterator[str]:
        """
        Hold the capacity key of ``(offer, slot_id)``.

        Callers open and commit their transaction inside this block so the
        lock is released only after the decision is durable.
        """
        with booking_slot_lock(offer.id, capacity_slot_key(offer, slot_id)) as key:
            yield key

    def decide(self, request_id: str, offer: Offer, slot_id: str) -> AcceptOutcome:
        """
        Check-and-commit for one request. Caller holds the key and owns the
        transaction; nothing is committed here.
        """
        key_slot = capacity_slot_key(offer, slot_id)
        capacity = offer.effective_capacity

        if supports_row_locks(self.db):
            if key_slot is None:
                self.offer_repository.get_by_id(offer.id, for_update=True)
            else:
                self.slot_repository.get_by_id(key_slot, for_update=True)

        if self.request_repository.accept_if_capacity(request_id, offer.id, key_slot, capacity):
            outcome = AcceptOutcome.ACCEPTED
        else:
            outcome = self._explain_refusal(request_id, offer, key_slot, capacity)

        prometheus_metrics.record_capacity_decision(outcome.value)
        self.logger.info(
            f"Capacity decision for request {request_id}: {outcome.value}",
            extra={
                "request_id": request_id,
                "offer_id": offer.id,
                "slot_id": key_slot or "*",
                "capacity": capacity,
                "outcome": outcome.value,
            },
        )
        return outcome

    def _explain_refusal(
        self, request_id: str, offer: Offer, key_slot: Optional[str], capacity: int
    ) -> AcceptOutcome:
        request = self.request_repository.get_by_id(request_id)
        if request is None:
            raise NotFoundException(
                "Request not found", code="REQUEST_NOT_FOUND", details={"request_id": request_id}
            )
        if request.status == RequestStatus.ACCEPTED.value:
            return AcceptOutcome.NOT_PENDING
        if self.request_repository.count_accepted(offer.id, key_slot) >= capacity:
            return AcceptOutcome.CAPACITY_EXCEEDED
        return AcceptOutcome.NOT_PENDING

    @BaseService.measure_operation("try_accept")
    def try_accept(self, request_id: str) -> AcceptOutcome:
        """
        Accept one pending request if its capacity key has room.

        Only the status is written; sessions and notifications belong to the
        caller. A request that is no longer pending yields NOT_PENDING, one
        that lost the last seat stays pending and yields CAPACITY_EXCEEDED.
        """
        request = self.request_repository.get_by_id(request_id)
        if request is None:
            raise NotFoundException(
                "Request not found", code="REQUEST_NOT_FOUND", details={"request_id": request_id}
            )
        if not request.is_pending:
            prometheus_metrics.record_capacity_decision(AcceptOutcome.NOT_PENDING.value)
            return AcceptOutcome.NOT_PENDING

        offer = self.offer_repository.get_by_id(request.offer_id)
        if offer is None:
            raise NotFoundException(
                "Offer not found", code="OFFER_NOT_FOUND", details={"offer_id": request.offer_id}
            )

        with self.hold(offer, request.slot_id):
            with self.transaction():
                return self.decide(request.id, offer, request.slot_id)
