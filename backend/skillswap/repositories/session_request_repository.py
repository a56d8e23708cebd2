# backend/skillswap/repositories/session_request_repository.py
"""
Request Ledger data access.

Every status transition here is a conditional UPDATE guarded by
``status = 'pending'`` so a request can never leave a terminal state, no
matter how many writers race on it.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased, joinedload

from ..core.enums import ParticipantRole, RequestStatus
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utcnow
from ..models.session_request import ACTIVE_REQUEST_INDEX, SessionRequest
from .base_repository import BaseRepository

_ACTIVE_REQUEST_COLUMNS = "session_requests.offer_id, session_requests.student_id"


class SessionRequestRepository(BaseRepository[SessionRequest]):
    """Repository for session requests."""

    def __init__(self, db: Session):
        super().__init__(db, SessionRequest)

    def create(self, **kwargs: Any) -> SessionRequest:
        """Create a request, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    @staticmethod
    def is_active_request_conflict(error: IntegrityError) -> bool:
        """True when ``error`` comes from the one-active-request-per-student index."""
        orig = getattr(error, "orig", None)
        diag = getattr(orig, "diag", None)
        constraint_name = getattr(diag, "constraint_name", "") if diag is not None else ""
        if constraint_name:
            return constraint_name == ACTIVE_REQUEST_INDEX

        # SQLite names the columns instead of the index
        text = str(orig if orig is not None else error)
        return ACTIVE_REQUEST_INDEX in text or _ACTIVE_REQUEST_COLUMNS in text

    def find_active_for_student(self, offer_id: str, student_id: str) -> Optional[SessionRequest]:
        """Pending or accepted request of ``student_id`` on ``offer_id``, if any."""
        query = self.db.query(SessionRequest).filter(
            SessionRequest.offer_id == offer_id,
            SessionRequest.student_id == student_id,
            SessionRequest.status.in_([s.value for s in RequestStatus.active()]),
        )
        try:
            return query.order_by(SessionRequest.created_at.asc()).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking active request: {str(e)}")
            raise RepositoryException(f"Failed to check active request: {str(e)}")

    def count_accepted(self, offer_id: str, slot_id: Optional[str] = None) -> int:
        """Accepted requests on an offer, optionally narrowed to one slot."""
        query = self.db.query(func.count(SessionRequest.id)).filter(
            SessionRequest.offer_id == offer_id,
            SessionRequest.status == RequestStatus.ACCEPTED.value,
        )
        if slot_id is not None:
            query = query.filter(SessionRequest.slot_id == slot_id)
        return int(self._execute_scalar(query) or 0)

    def accepted_counts_by_slot(self, offer_ids: List[str]) -> Dict[str, Dict[str, int]]:
        """``{offer_id: {slot_id: accepted}}`` for the given offers."""
        if not offer_ids:
            return {}
        query = (
            self.db.query(SessionRequest.offer_id, SessionRequest.slot_id, func.count(SessionRequest.id))
            .filter(
                SessionRequest.offer_id.in_(offer_ids),
                SessionRequest.status == RequestStatus.ACCEPTED.value,
            )
            .group_by(SessionRequest.offer_id, SessionRequest.slot_id)
        )
        counts: Dict[str, Dict[str, int]] = {}
        for offer_id, slot_id, total in self._execute_query(query):
            counts.setdefault(offer_id, {})[slot_id] = int(total)
        return counts

    def pending_counts(self, offer_ids: List[str]) -> Dict[str, int]:
        if not offer_ids:
            return {}
        query = (
            self.db.query(SessionRequest.offer_id, func.count(SessionRequest.id))
            .filter(
                SessionRequest.offer_id.in_(offer_ids),
                SessionRequest.status == RequestStatus.PENDING.value,
            )
            .group_by(SessionRequest.offer_id)
        )
        return {offer_id: int(total) for offer_id, total in self._execute_query(query)}

    def accept_if_capacity(
        self, request_id: str, offer_id: str, slot_id: Optional[str], capacity: int
    ) -> bool:
        """
        Flip one pending request to accepted if its capacity key has room.

        The pending guard and the seat count are evaluated by a single UPDATE
        statement. ``slot_id=None`` counts accepted requests across the whole
        offer. Returns True when the row changed.
        """
        peer = aliased(SessionRequest)
        seat_filter = [peer.offer_id == offer_id, peer.status == RequestStatus.ACCEPTED.value]
        if slot_id is not None:
            seat_filter.append(peer.slot_id == slot_id)
        seats_taken = (
            select(func.count(peer.id)).where(and_(*seat_filter)).correlate(None).scalar_subquery()
        )

        stmt = (
            update(SessionRequest)
            .where(
                SessionRequest.id == request_id,
                SessionRequest.status == RequestStatus.PENDING.value,
                seats_taken < capacity,
            )
            .values(status=RequestStatus.ACCEPTED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error accepting request {request_id}: {str(e)}")
            raise RepositoryException(f"Failed to accept request: {str(e)}")
        self._expire(request_id)
        return bool(result.rowcount)

    def resolve_pending(self, request_id: str, status: RequestStatus) -> bool:
        """Move one request out of pending. False if it was no longer pending."""
        stmt = (
            update(SessionRequest)
            .where(
                SessionRequest.id == request_id,
                SessionRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error resolving request {request_id}: {str(e)}")
            raise RepositoryException(f"Failed to update request: {str(e)}")
        self._expire(request_id)
        return bool(result.rowcount)

    def resolve_all_pending(
        self,
        offer_id: str,
        status: RequestStatus,
        *,
        slot_id: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> List[SessionRequest]:
        """
        Move every pending request of an offer (or one slot) to ``status``.

        Returns the requests that actually changed, refreshed.
        """
        filters = [
            SessionRequest.offer_id == offer_id,
            SessionRequest.status == RequestStatus.PENDING.value,
        ]
        if slot_id is not None:
            filters.append(SessionRequest.slot_id == slot_id)
        if exclude_id is not None:
            filters.append(SessionRequest.id != exclude_id)

        candidates = self._execute_query(self._lockable(self.db.query(SessionRequest).filter(*filters)))
        changed: List[SessionRequest] = []
        for request in candidates:
            if self.resolve_pending(request.id, status):
                changed.append(request)
        for request in changed:
            self.db.refresh(request)
        return changed

    def list_for_user(
        self,
        user_id: str,
        role: ParticipantRole,
        status: Optional[str],
        limit: int,
    ) -> List[SessionRequest]:
        """Requests where the user is tutor, student or either, newest first."""
        query = self.db.query(SessionRequest).options(
            joinedload(SessionRequest.offer),
            joinedload(SessionRequest.slot),
            joinedload(SessionRequest.tutor),
            joinedload(SessionRequest.student),
        )
        if role == ParticipantRole.TUTOR:
            query = query.filter(SessionRequest.tutor_id == user_id)
        elif role == ParticipantRole.STUDENT:
            query = query.filter(SessionRequest.student_id == user_id)
        else:
            query = query.filter(
                (SessionRequest.tutor_id == user_id) | (SessionRequest.student_id == user_id)
            )
        if status:
            query = query.filter(SessionRequest.status == status)
        query = query.order_by(SessionRequest.created_at.desc(), SessionRequest.id.desc()).limit(limit)
        return self._execute_query(query)

    def _expire(self, request_id: str) -> None:
        instance = self.db.identity_map.get(self.db.identity_key(SessionRequest, request_id))
        if instance is not None:
            self.db.expire(instance)
