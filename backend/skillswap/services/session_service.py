# backend/skillswap/services/session_service.py
"""
Session Service for SkillSwap

Lifecycle of confirmed sessions after the booking engine created them:
listing, viewing, completing, cancelling and setting the meeting link.

A group offer produces one session per student. When the tutor acts on one
of them the change applies to every session of that (offer, slot), and the
tutor sees them as a single listing entry.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ParticipantRole, SessionStatus
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import as_utc, utcnow
from ..models.tutoring_session import TutoringSession
from ..repositories.factory import RepositoryFactory
from ..schemas.session import SessionListEntry, SessionResponse, SessionUpdate
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

_STATUS_PRECEDENCE = (
    SessionStatus.SCHEDULED.value,
    SessionStatus.COMPLETED.value,
    SessionStatus.CANCELLED.value,
)


def _entry(session: TutoringSession) -> SessionListEntry:
    return SessionListEntry(
        **SessionResponse.model_validate(session).model_dump(),
        skill_name=session.skill.name if session.skill else None,
        tutor_name=session.tutor.display_name if session.tutor else None,
        student_name=session.student.display_name if session.student else None,
        participant_count=1,
        participant_names=[session.student.display_name] if session.student else [],
    )


class SessionService(BaseService):
    """Service for confirmed tutoring sessions."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        super().__init__(db)
        self.session_repository = RepositoryFactory.create_tutoring_session_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.notification_service = notification_service or NotificationService(db)

    @BaseService.measure_operation("list_sessions")
    def list_sessions(
        self, user_id: str, role: str = "all", status: Optional[str] = None
    ) -> List[SessionListEntry]:
        try:
            participant_role = ParticipantRole(role or "all")
        except ValueError:
            raise ValidationException(
                "Role must be tutor, student or all", details={"field": "role", "value": role}
            )
        status_filter: Optional[str] = None
        if status and status != "all":
            if status not in _STATUS_PRECEDENCE:
                raise ValidationException(
                    "Unknown session status", details={"field": "status", "value": status}
                )
            status_filter = status

        sessions = self.session_repository.list_for_user(
            user_id, participant_role, status_filter, settings.list_limit
        )

        entries: List[SessionListEntry] = []
        groups: Dict[Tuple[str, str], List[TutoringSession]] = {}
        for session in sessions:
            if session.tutor_id == user_id and session.is_group_session:
                groups.setdefault((session.offer_id, session.slot_id), []).append(session)
            else:
                entries.append(_entry(session))

        for members in groups.values():
            entries.append(self._collapse(members))

        entries.sort(key=lambda e: (as_utc(e.scheduled_at), e.id))
        return entries

    @staticmethod
    def _collapse(members: List[TutoringSession]) -> SessionListEntry:
        """One tutor-side entry for every student session of a group slot."""
        base = _entry(members[0])
        statuses = {m.status for m in members}
        status = next((s for s in _STATUS_PRECEDENCE if s in statuses), base.status)
        meeting_link = next((m.meeting_link for m in members if m.meeting_link), None)
        names = [m.student.display_name for m in members if m.student]
        return base.model_copy(
            update={
                "status": status,
                "meeting_link": meeting_link,
                "student_name": None,
                "participant_count": len(members),
                "participant_names": names,
            }
        )

    def _load_for_party(self, session_id: str, user_id: str) -> TutoringSession:
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException(
                "Session not found", code="SESSION_NOT_FOUND", details={"session_id": session_id}
            )
        if user_id not in (session.tutor_id, session.student_id):
            raise ForbiddenException("Access denied", details={"session_id": session_id})
        return session

    def _affected(self, session: TutoringSession, user_id: str) -> List[TutoringSession]:
        if session.tutor_id == user_id and session.is_group_session:
            return self.session_repository.list_group_members(
                session.tutor_id, session.offer_id, session.slot_id
            )
        return [session]

    @BaseService.measure_operation("get_session")
    def get_session(self, session_id: str, user_id: str) -> SessionListEntry:
        return _entry(self._load_for_party(session_id, user_id))

    @BaseService.measure_operation("complete_session")
    def complete_session(self, session_id: str, user_id: str) -> TutoringSession:
        session = self._load_for_party(session_id, user_id)
        with self.transaction():
            changed = self._transition(session, user_id, SessionStatus.COMPLETED)
        self.log_operation("complete_session", session_id=session_id, affected=len(changed))
        return session

    @BaseService.measure_operation("cancel_session")
    def cancel_session(self, session_id: str, user_id: str) -> TutoringSession:
        session = self._load_for_party(session_id, user_id)
        with self.transaction():
            changed = self._transition(session, user_id, SessionStatus.CANCELLED)
        self.log_operation("cancel_session", session_id=session_id, affected=len(changed))

        by_tutor = session.tutor_id == user_id
        if by_tutor:
            recipients = [s.student_id for s in changed]
        else:
            recipients = [session.tutor_id]
        actor = self.user_repository.get_by_id(user_id)
        self.notification_service.send_session_cancelled(
            recipients,
            actor.display_name if actor else ("The tutor" if by_tutor else "The student"),
            session.scheduled_at,
        )
        return session

    def _transition(
        self, session: TutoringSession, user_id: str, target: SessionStatus
    ) -> List[TutoringSession]:
        if session.status != SessionStatus.SCHEDULED.value:
            raise ConflictException(
                f"Session is already {session.status}",
                code="SESSION_NOT_SCHEDULED",
                details={"session_id": session.id, "status": session.status},
            )
        now = utcnow()
        changed = []
        for member in self._affected(session, user_id):
            if member.status != SessionStatus.SCHEDULED.value:
                continue
            member.status = target.value
            if target == SessionStatus.COMPLETED:
                member.completed_at = now
            else:
                member.cancelled_at = now
            changed.append(member)
        self.session_repository.flush()
        return changed

    @BaseService.measure_operation("set_meeting_link")
    def set_meeting_link(self, session_id: str, user_id: str, link: Optional[str]) -> TutoringSession:
        session = self._load_for_party(session_id, user_id)
        if session.tutor_id != user_id:
            raise ForbiddenException(
                "Only the tutor can set the meeting link", details={"session_id": session_id}
            )
        value = (link or "").strip() or None
        with self.transaction():
            for member in self._affected(session, user_id):
                member.meeting_link = value
            self.session_repository.flush()
        return session

    def update_session(self, session_id: str, user_id: str, data: SessionUpdate) -> SessionListEntry:
        """Apply a meeting link and/or status change, link first."""
        if "meeting_link" in data.model_fields_set:
            self.set_meeting_link(session_id, user_id, data.meeting_link)
        if data.status == SessionStatus.COMPLETED.value:
            self.complete_session(session_id, user_id)
        elif data.status == SessionStatus.CANCELLED.value:
            self.cancel_session(session_id, user_id)
        return self.get_session(session_id, user_id)
