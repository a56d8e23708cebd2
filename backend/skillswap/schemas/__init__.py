"""Pydantic schemas for the SkillSwap API."""

from .offer import (
    OfferCancelResponse,
    OfferCreate,
    OfferFilter,
    OfferResponse,
    SlotInput,
    SlotResponse,
)
from .session import SessionListEntry, SessionResponse, SessionUpdate
from .session_request import (
    AcceptResponse,
    ExistingSlot,
    ProposedSlot,
    RequestCreate,
    RequestListItem,
    RequestResponse,
    SlotChoice,
)

__all__ = [
    "AcceptResponse",
    "ExistingSlot",
    "OfferCancelResponse",
    "OfferCreate",
    "OfferFilter",
    "OfferResponse",
    "ProposedSlot",
    "RequestCreate",
    "RequestListItem",
    "RequestResponse",
    "SessionListEntry",
    "SessionResponse",
    "SessionUpdate",
    "SlotChoice",
    "SlotInput",
    "SlotResponse",
]
