# backend/skillswap/repositories/factory.py
"""
Repository Factory for SkillSwap

Provides centralized creation of repository instances so services get the
same session-bound repositories regardless of who constructs them.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .notification_repository import NotificationRepository
    from .offer_repository import OfferRepository, OfferSlotRepository
    from .session_request_repository import SessionRequestRepository
    from .tutoring_session_repository import TutoringSessionRepository
    from .user_repository import SkillRepository, UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_skill_repository(db: Session) -> "SkillRepository":
        from .user_repository import SkillRepository

        return SkillRepository(db)

    @staticmethod
    def create_offer_repository(db: Session) -> "OfferRepository":
        """Create repository for offer queries and status changes."""
        from .offer_repository import OfferRepository

        return OfferRepository(db)

    @staticmethod
    def create_offer_slot_repository(db: Session) -> "OfferSlotRepository":
        from .offer_repository import OfferSlotRepository

        return OfferSlotRepository(db)

    @staticmethod
    def create_session_request_repository(db: Session) -> "SessionRequestRepository":
        """Create repository for the request ledger."""
        from .session_request_repository import SessionRequestRepository

        return SessionRequestRepository(db)

    @staticmethod
    def create_tutoring_session_repository(db: Session) -> "TutoringSessionRepository":
        from .tutoring_session_repository import TutoringSessionRepository

        return TutoringSessionRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)
