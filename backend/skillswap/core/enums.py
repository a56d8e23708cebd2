# backend/skillswap/core/enums.py
"""
Core enums for the SkillSwap booking engine.

Stored values are the lowercase strings persisted in the database and
returned over the API.
"""

from enum import Enum


class OfferStatus(str, Enum):
    """Offers only ever move from OPEN to CLOSED."""

    OPEN = "open"
    CLOSED = "closed"


class RequestStatus(str, Enum):
    """
    Lifecycle of a student's request for a slot.

    PENDING is the only non-terminal state besides ACCEPTED counting as
    "active" for duplicate detection; ACCEPTED, DECLINED and CANCELLED are
    never left once reached.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"

    @classmethod
    def active(cls) -> tuple["RequestStatus", ...]:
        return (cls.PENDING, cls.ACCEPTED)


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LocationType(str, Enum):
    ONLINE = "online"
    IN_PERSON = "in-person"


class UserStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class SkillType(str, Enum):
    OFFERED = "offered"
    WANTED = "wanted"


class ParticipantRole(str, Enum):
    """Which side of a booking the caller is listing as."""

    TUTOR = "tutor"
    STUDENT = "student"
    ALL = "all"


class AcceptOutcome(str, Enum):
    """Result of a capacity arbiter decision."""

    ACCEPTED = "accepted"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NOT_PENDING = "not_pending"
