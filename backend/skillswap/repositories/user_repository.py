"""Data access for users and their skills."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.user import Skill, User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Read access to the user directory tables."""

    def __init__(self, db: Session):
        super().__init__(db, User)


class SkillRepository(BaseRepository[Skill]):
    def __init__(self, db: Session):
        super().__init__(db, Skill)

    def get_offered_skill(self, skill_id: str, user_id: str) -> Optional[Skill]:
        """Return the skill only if ``user_id`` offers it."""
        return self.find_one_by(id=skill_id, user_id=user_id, skill_type="offered")
