# backend/skillswap/models/tutoring_session.py
"""
Confirmed tutoring session model.

Sessions are materialized from accepted requests and carry a snapshot of the
offer/slot data at acceptance time, so later changes elsewhere never alter a
confirmed booking. A group offer yields one session per accepted student,
all sharing the same (offer_id, slot_id).
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import SessionStatus
from ..core.timezone_utils import utcnow
from ..database import Base


class TutoringSession(Base):
    """A scheduled session between one tutor and one student."""

    __tablename__ = "sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    skill_id = Column(String(26), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    offer_id = Column(
        String(26), ForeignKey("session_offers.id", ondelete="SET NULL"), nullable=True
    )
    slot_id = Column(
        String(26), ForeignKey("session_offer_slots.id", ondelete="SET NULL"), nullable=True
    )
    request_id = Column(
        String(26),
        ForeignKey("session_requests.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    location = Column(Text, nullable=True)
    is_group = Column(Boolean, nullable=False, default=False)
    meeting_link = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    tutor = relationship("User", foreign_keys=[tutor_id])
    student = relationship("User", foreign_keys=[student_id])
    skill = relationship("Skill")

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="ck_sessions_status",
        ),
        Index("ix_sessions_tutor_status", "tutor_id", "status"),
        Index("ix_sessions_student_status", "student_id", "status"),
        Index("ix_sessions_offer_slot", "offer_id", "slot_id"),
    )

    @property
    def is_group_session(self) -> bool:
        return bool(self.is_group) and self.offer_id is not None and self.slot_id is not None

    def __repr__(self) -> str:
        return f"<TutoringSession {self.id} tutor={self.tutor_id} student={self.student_id} {self.status}>"
