# backend/skillswap/models/offer.py
"""
Offer and slot models.

An offer is a tutor's advertisement for a skill with one or more candidate
slots. Offers are never reopened once closed and are never deleted by the
booking engine. Slots are immutable once created; besides the ones published
with the offer, a slot is added whenever a student proposes a time that no
existing slot matches.
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

from ..core.enums import LocationType, OfferStatus
from ..core.timezone_utils import utcnow
from ..database import Base


class Offer(Base):
    """Tutor-authored offer to teach a skill."""

    __tablename__ = "session_offers"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    skill_id = Column(String(26), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    location_type = Column(String(20), nullable=False, default=LocationType.ONLINE.value)
    location = Column(Text, nullable=True)
    is_group = Column(Boolean, nullable=False, default=False)
    capacity = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=OfferStatus.OPEN.value, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    tutor = relationship("User", foreign_keys=[tutor_id])
    skill = relationship("Skill")
    slots = relationship(
        "OfferSlot",
        back_populates="offer",
        order_by="OfferSlot.scheduled_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("status IN ('open', 'closed')", name="ck_session_offers_status"),
        CheckConstraint(
            "location_type IN ('online', 'in-person')",
            name="ck_session_offers_location_type",
        ),
        CheckConstraint("capacity >= 1 AND capacity <= 50", name="ck_session_offers_capacity"),
        Index("ix_session_offers_tutor_status", "tutor_id", "status"),
    )

    @property
    def is_open(self) -> bool:
        return self.status == OfferStatus.OPEN.value

    @property
    def effective_capacity(self) -> int:
        """Seats per slot: 1 for a single-seat offer, at least 2 for a group."""
        if not self.is_group:
            return 1
        return max(2, int(self.capacity or 0))

    @property
    def session_location(self) -> str:
        """Location copied onto materialized sessions."""
        if self.location_type == LocationType.IN_PERSON.value:
            return self.location or ""
        return "Online"

    def __repr__(self) -> str:
        return f"<Offer {self.id} tutor={self.tutor_id} status={self.status} group={self.is_group}>"


class OfferSlot(Base):
    """One concrete date/time (and optional duration) under an offer."""

    __tablename__ = "session_offer_slots"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    offer_id = Column(
        String(26), ForeignKey("session_offers.id", ondelete="CASCADE"), nullable=False
    )
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    offer = relationship("Offer", back_populates="slots")

    __table_args__ = (
        CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_session_offer_slots_duration",
        ),
        Index("ix_session_offer_slots_offer_time", "offer_id", "scheduled_at"),
    )

    def __repr__(self) -> str:
        return f"<OfferSlot {self.id} offer={self.offer_id} at={self.scheduled_at}>"
