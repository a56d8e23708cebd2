"""Tutoring session schemas."""

from typing import List, Literal, Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel, UtcDatetime


class SessionResponse(StandardizedModel):
    id: str
    tutor_id: str
    student_id: str
    skill_id: str
    offer_id: Optional[str] = None
    slot_id: Optional[str] = None
    request_id: Optional[str] = None
    scheduled_at: UtcDatetime
    duration_minutes: int
    location: Optional[str] = None
    is_group: bool
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_at: UtcDatetime
    completed_at: Optional[UtcDatetime] = None
    cancelled_at: Optional[UtcDatetime] = None


class SessionListEntry(SessionResponse):
    """
    A session as listed to one user.

    Tutor-side group sessions of one (offer, slot) are collapsed into a
    single entry; ``participant_count`` and ``participant_names`` describe
    the students behind it.
    """

    skill_name: Optional[str] = None
    tutor_name: Optional[str] = None
    student_name: Optional[str] = None
    participant_count: int = 1
    participant_names: List[str] = Field(default_factory=list)


class SessionUpdate(StrictRequestModel):
    status: Optional[Literal["completed", "cancelled"]] = None
    meeting_link: Optional[str] = Field(None, max_length=2000)


SessionRoleFilter = Literal["tutor", "student", "all"]
SessionStatusFilter = Literal["scheduled", "completed", "cancelled", "all"]
