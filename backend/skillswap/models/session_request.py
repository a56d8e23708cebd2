# backend/skillswap/models/session_request.py
"""
Session request model.

A request is a student's bid for one slot of one offer. Only the booking
workflow changes its status, and only away from ``pending``.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import RequestStatus
from ..core.timezone_utils import utcnow
from ..database import Base

ACTIVE_REQUEST_INDEX = "uq_session_requests_active_student"


class SessionRequest(Base):
    """A student's request for a specific slot."""

    __tablename__ = "session_requests"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    offer_id = Column(
        String(26), ForeignKey("session_offers.id", ondelete="CASCADE"), nullable=False
    )
    slot_id = Column(
        String(26), ForeignKey("session_offer_slots.id", ondelete="CASCADE"), nullable=False
    )
    tutor_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default=RequestStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    offer = relationship("Offer")
    slot = relationship("OfferSlot")
    tutor = relationship("User", foreign_keys=[tutor_id])
    student = relationship("User", foreign_keys=[student_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'cancelled')",
            name="ck_session_requests_status",
        ),
        CheckConstraint("tutor_id != student_id", name="ck_session_requests_parties"),
        Index("ix_session_requests_offer_slot_status", "offer_id", "slot_id", "status"),
        Index("ix_session_requests_offer_student_status", "offer_id", "student_id", "status"),
        Index("ix_session_requests_tutor_status", "tutor_id", "status"),
        Index("ix_session_requests_student_status", "student_id", "status"),
        # At most one pending or accepted request per student per offer
        Index(
            ACTIVE_REQUEST_INDEX,
            "offer_id",
            "student_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'accepted')"),
            postgresql_where=text("status IN ('pending', 'accepted')"),
        ),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<SessionRequest {self.id} offer={self.offer_id} slot={self.slot_id} {self.status}>"
