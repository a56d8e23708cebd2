# backend/skillswap/schemas/session_request.py
"""
Session request schemas.

The slot a student asks for is a tagged union: an existing slot of the offer,
or a proposed time that is resolved to (or creates) a slot.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel, UtcDatetime
from .session import SessionResponse


class ExistingSlot(StrictRequestModel):
    kind: Literal["existing"] = "existing"
    slot_id: str


class ProposedSlot(StrictRequestModel):
    kind: Literal["proposed"] = "proposed"
    scheduled_at: datetime
    duration_minutes: Optional[int] = Field(None, gt=0, le=720)


SlotChoice = Annotated[Union[ExistingSlot, ProposedSlot], Field(discriminator="kind")]


class RequestCreate(StrictRequestModel):
    slot: SlotChoice


class RequestResponse(StandardizedModel):
    id: str
    offer_id: str
    slot_id: str
    tutor_id: str
    student_id: str
    status: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class RequestListItem(RequestResponse):
    """A request joined with the offer, slot and party display data."""

    title: str
    notes: Optional[str] = None
    location_type: str
    location: Optional[str] = None
    is_group: bool
    scheduled_at: UtcDatetime
    duration_minutes: Optional[int] = None
    tutor_name: str
    student_name: str


class AcceptResponse(StandardizedModel):
    request: RequestResponse
    session: SessionResponse
    declined_request_ids: List[str] = Field(default_factory=list)
    offer_closed: bool = False


RequestRoleFilter = Literal["tutor", "student", "all"]
RequestStatusFilter = Literal["pending", "accepted", "declined", "cancelled", "all"]
