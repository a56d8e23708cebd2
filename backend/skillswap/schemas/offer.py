# backend/skillswap/schemas/offer.py
"""
Offer schemas.

Slot date/time strings are kept raw here: the offer service parses them and
silently drops the ones that do not parse, so a form with one bad row still
publishes the good ones.
"""

from typing import List, Literal, Optional, Union

from pydantic import Field, field_validator

from ..core.enums import LocationType
from .base import StandardizedModel, StrictRequestModel, UtcDatetime


class SlotInput(StrictRequestModel):
    """
    One candidate slot as submitted by the tutor.

    Either ``date`` (YYYY-MM-DD) plus ``time`` (HH:MM), or a full ISO
    ``scheduled_at``. ``duration`` falls back to the configured default.
    """

    date: Optional[str] = None
    time: Optional[str] = None
    scheduled_at: Optional[str] = None
    duration: Optional[Union[int, str]] = None


class OfferCreate(StrictRequestModel):
    skill_id: str = Field(..., description="Skill the tutor offers")
    title: str = Field("", max_length=255)
    notes: Optional[str] = Field(None, max_length=4000)
    location_type: str = Field(LocationType.ONLINE.value, description="online or in-person")
    location: Optional[str] = Field(None, description="Address, required for in-person offers")
    is_group: bool = False
    capacity: int = Field(1, description="Seats per slot for group offers")
    slots: List[SlotInput] = Field(default_factory=list)

    @field_validator("title", "location_type", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("notes", "location", mode="before")
    @classmethod
    def _strip_optional(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class OfferFilter(StrictRequestModel):
    tutor_id: Optional[str] = None
    skill_id: Optional[str] = None


class SlotResponse(StandardizedModel):
    id: str
    offer_id: str
    scheduled_at: UtcDatetime
    duration_minutes: Optional[int] = None
    accepted_count: int = 0


class OfferResponse(StandardizedModel):
    id: str
    tutor_id: str
    tutor_name: Optional[str] = None
    skill_id: str
    skill_name: Optional[str] = None
    title: str
    notes: Optional[str] = None
    location_type: str
    location: Optional[str] = None
    is_group: bool
    capacity: int
    effective_capacity: int
    status: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    slots: List[SlotResponse] = Field(default_factory=list)
    pending_count: Optional[int] = None


OfferStatusFilter = Literal["open", "closed", "all"]


class OfferCancelResponse(StandardizedModel):
    offer: OfferResponse
    cancelled_request_ids: List[str] = Field(default_factory=list)
