"""
Notification inbox model.

Rows are written by the inbox notification sink after a booking transition
has committed; message threads and delivery channels live elsewhere.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.timezone_utils import utcnow
from ..database import Base


class Notification(Base):
    """In-app notification inbox entries."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("ix_notifications_user_read_at", "user_id", "read_at"),
        Index("ix_notifications_user_created_at", "user_id", created_at.desc()),
    )
