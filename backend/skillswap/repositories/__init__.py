"""
Repository layer for SkillSwap.

Repositories own every query; services own transaction boundaries.
"""

from .base_repository import BaseRepository, IRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .offer_repository import OfferRepository, OfferSlotRepository
from .session_request_repository import SessionRequestRepository
from .tutoring_session_repository import TutoringSessionRepository
from .user_repository import SkillRepository, UserRepository

__all__ = [
    "BaseRepository",
    "IRepository",
    "NotificationRepository",
    "OfferRepository",
    "OfferSlotRepository",
    "RepositoryFactory",
    "SessionRequestRepository",
    "SkillRepository",
    "TutoringSessionRepository",
    "UserRepository",
]
