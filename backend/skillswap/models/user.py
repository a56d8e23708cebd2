# backend/skillswap/models/user.py
"""
User and skill models.

Registration, profiles and authentication live outside the booking engine;
these tables only hold what the engine reads: whether a user exists and is
active, and which skills a tutor offers.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import SkillType, UserStatus
from ..core.timezone_utils import utcnow
from ..database import Base


class User(Base):
    """Directory entry for a tutor or student."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    skills = relationship("Skill", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'suspended', 'deactivated')",
            name="ck_users_status",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def display_name(self) -> str:
        return (self.full_name or "").strip() or self.email

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} ({self.status})>"


class Skill(Base):
    """A skill a user offers to teach or wants to learn."""

    __tablename__ = "skills"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    skill_type = Column(String(20), nullable=False, default=SkillType.OFFERED.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="skills")

    __table_args__ = (
        CheckConstraint("skill_type IN ('offered', 'wanted')", name="ck_skills_type"),
        Index("ix_skills_user_type", "user_id", "skill_type"),
    )

    def __repr__(self) -> str:
        return f"<Skill {self.id} {self.name} ({self.skill_type})>"
