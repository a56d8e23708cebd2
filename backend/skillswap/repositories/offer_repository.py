# backend/skillswap/repositories/offer_repository.py
"""
Offer Store data access.

Holds the queries for offers and their slots. Status changes go through
``close_offer`` which only ever moves an offer from open to closed.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.enums import OfferStatus, UserStatus
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utcnow
from ..models.offer import Offer, OfferSlot
from ..models.user import User
from .base_repository import BaseRepository


class OfferRepository(BaseRepository[Offer]):
    """Repository for session offers."""

    def __init__(self, db: Session):
        super().__init__(db, Offer)

    def get_with_slots(self, offer_id: str) -> Optional[Offer]:
        try:
            return (
                self.db.query(Offer)
                .options(selectinload(Offer.slots), selectinload(Offer.skill))
                .filter(Offer.id == offer_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading offer {offer_id}: {str(e)}")
            raise RepositoryException(f"Failed to load offer: {str(e)}")

    def list_open(
        self,
        *,
        limit: int,
        viewer_id: Optional[str] = None,
        tutor_id: Optional[str] = None,
        skill_id: Optional[str] = None,
    ) -> List[Offer]:
        """
        Open offers from active tutors, most recent first.

        The viewer's own offers are left out so a tutor never sees their own
        advertisement in the marketplace.
        """
        query = (
            self.db.query(Offer)
            .join(User, User.id == Offer.tutor_id)
            .options(selectinload(Offer.slots), selectinload(Offer.skill), selectinload(Offer.tutor))
            .filter(
                Offer.status == OfferStatus.OPEN.value,
                User.status == UserStatus.ACTIVE.value,
            )
        )
        if viewer_id:
            query = query.filter(Offer.tutor_id != viewer_id)
        if tutor_id:
            query = query.filter(Offer.tutor_id == tutor_id)
        if skill_id:
            query = query.filter(Offer.skill_id == skill_id)

        query = query.order_by(Offer.created_at.desc(), Offer.id.desc()).limit(limit)
        return self._execute_query(query)

    def list_for_tutor(self, tutor_id: str, status: Optional[str], limit: int) -> List[Offer]:
        query = (
            self.db.query(Offer)
            .options(selectinload(Offer.slots), selectinload(Offer.skill))
            .filter(Offer.tutor_id == tutor_id)
        )
        if status:
            query = query.filter(Offer.status == status)
        query = query.order_by(Offer.created_at.desc(), Offer.id.desc()).limit(limit)
        return self._execute_query(query)

    def close_offer(self, offer_id: str) -> bool:
        """
        Move an open offer to closed.

        Returns True if this call closed it, False if it was already closed
        (or does not exist). Executed as one conditional UPDATE.
        """
        stmt = (
            update(Offer)
            .where(and_(Offer.id == offer_id, Offer.status == OfferStatus.OPEN.value))
            .values(status=OfferStatus.CLOSED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error closing offer {offer_id}: {str(e)}")
            raise RepositoryException(f"Failed to close offer: {str(e)}")
        closed = bool(result.rowcount)
        offer = self.db.get(Offer, offer_id)
        if offer is not None:
            self.db.refresh(offer)
        return closed


class OfferSlotRepository(BaseRepository[OfferSlot]):
    """Repository for offer slots (immutable once created)."""

    def __init__(self, db: Session):
        super().__init__(db, OfferSlot)

    def find_identical(
        self, offer_id: str, scheduled_at: datetime, duration_minutes: Optional[int]
    ) -> Optional[OfferSlot]:
        """Find a slot of ``offer_id`` with the same timestamp and duration."""
        query = self.db.query(OfferSlot).filter(
            OfferSlot.offer_id == offer_id,
            OfferSlot.scheduled_at == scheduled_at,
        )
        if duration_minutes is None:
            query = query.filter(OfferSlot.duration_minutes.is_(None))
        else:
            query = query.filter(OfferSlot.duration_minutes == duration_minutes)
        try:
            return query.order_by(OfferSlot.created_at.asc()).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding slot for offer {offer_id}: {str(e)}")
            raise RepositoryException(f"Failed to find slot: {str(e)}")
