"""Data access for confirmed tutoring sessions."""

from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..core.enums import ParticipantRole
from ..models.tutoring_session import TutoringSession
from .base_repository import BaseRepository


class TutoringSessionRepository(BaseRepository[TutoringSession]):
    """Repository for sessions materialized from accepted requests."""

    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)

    def list_for_user(
        self,
        user_id: str,
        role: ParticipantRole,
        status: Optional[str],
        limit: int,
    ) -> List[TutoringSession]:
        """Sessions of a user ordered by scheduled time, soonest first."""
        query = self.db.query(TutoringSession).options(
            joinedload(TutoringSession.tutor),
            joinedload(TutoringSession.student),
            joinedload(TutoringSession.skill),
        )
        if role == ParticipantRole.TUTOR:
            query = query.filter(TutoringSession.tutor_id == user_id)
        elif role == ParticipantRole.STUDENT:
            query = query.filter(TutoringSession.student_id == user_id)
        else:
            query = query.filter(
                (TutoringSession.tutor_id == user_id) | (TutoringSession.student_id == user_id)
            )
        if status:
            query = query.filter(TutoringSession.status == status)
        query = query.order_by(TutoringSession.scheduled_at.asc(), TutoringSession.id.asc()).limit(limit)
        return self._execute_query(query)

    def list_group_members(self, tutor_id: str, offer_id: str, slot_id: str) -> List[TutoringSession]:
        """All per-student sessions sharing one group offer slot."""
        query = (
            self.db.query(TutoringSession)
            .options(joinedload(TutoringSession.student))
            .filter(
                TutoringSession.tutor_id == tutor_id,
                TutoringSession.offer_id == offer_id,
                TutoringSession.slot_id == slot_id,
            )
            .order_by(TutoringSession.created_at.asc())
        )
        return self._execute_query(query)
