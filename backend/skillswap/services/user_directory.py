"""
User directory collaborator.

The booking engine only needs to know whether a user exists and whether
they are active; everything else about users lives outside it.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..core.enums import UserStatus
from ..repositories.factory import RepositoryFactory


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    status: str
    display_name: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value


class UserDirectory(Protocol):
    def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        ...


class DatabaseUserDirectory:
    """Directory backed by the ``users`` table."""

    def __init__(self, db: Session):
        self.repository = RepositoryFactory.create_user_repository(db)

    def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        user = self.repository.get_by_id(user_id)
        if user is None:
            return None
        return DirectoryUser(id=user.id, status=user.status, display_name=user.display_name)
