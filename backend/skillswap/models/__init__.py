"""
Database models for the SkillSwap booking engine.

- User directory: User, Skill
- Offer store: Offer, OfferSlot
- Request ledger: SessionRequest
- Confirmed bookings: TutoringSession
- Notification inbox: Notification
"""

from .notification import Notification
from .offer import Offer, OfferSlot
from .session_request import SessionRequest
from .tutoring_session import TutoringSession
from .user import Skill, User

__all__ = [
    "Notification",
    "Offer",
    "OfferSlot",
    "SessionRequest",
    "Skill",
    "TutoringSession",
    "User",
]
