# backend/skillswap/services/offer_service.py
"""
Offer Service for SkillSwap

The Offer Store: publishing offers with their candidate slots, listing them
for students and for their tutor, and closing them. Closing is the only
status change an offer ever sees.
"""

from datetime import datetime
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import LocationType
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import as_utc
from ..models.offer import Offer, OfferSlot
from ..repositories.factory import RepositoryFactory
from ..schemas.offer import OfferCreate, OfferResponse, SlotInput, SlotResponse
from .base import BaseService

logger = logging.getLogger(__name__)

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def parse_slot_datetime(slot: SlotInput) -> Optional[datetime]:
    """
    Parse a submitted slot into an aware UTC datetime.

    Returns None when the slot carries no usable date/time. Naive values are
    read as UTC.
    """
    parsed: Optional[datetime] = None
    if slot.scheduled_at and slot.scheduled_at.strip():
        raw = slot.scheduled_at.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        day = (slot.date or "").strip()
        clock = (slot.time or "").strip()
        if not day or not clock:
            return None
        for fmt in _TIME_FORMATS:
            try:
                parsed = datetime.strptime(f"{day} {clock}", f"%Y-%m-%d {fmt}")
                break
            except ValueError:
                continue
    return as_utc(parsed)


def parse_slot_duration(raw: object, position: int) -> int:
    """Duration in minutes; blank or unparseable falls back to the default."""
    default = settings.default_session_duration_minutes
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        minutes = int(str(raw).strip())
    except ValueError:
        return default
    if minutes == 0:
        return default
    if minutes < 0:
        raise ValidationException(
            "Slot duration must be positive",
            code="INVALID_DURATION",
            details={"field": f"slots[{position}].duration", "value": minutes},
        )
    return minutes


class OfferService(BaseService):
    """Service for publishing, listing and closing offers."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.offer_repository = RepositoryFactory.create_offer_repository(db)
        self.slot_repository = RepositoryFactory.create_offer_slot_repository(db)
        self.skill_repository = RepositoryFactory.create_skill_repository(db)
        self.request_repository = RepositoryFactory.create_session_request_repository(db)

    def _validate_offer(self, data: OfferCreate) -> List[Tuple[datetime, int]]:
        if not data.skill_id:
            raise ValidationException("Skill is required", details={"field": "skill_id"})
        if not data.title:
            raise ValidationException("Title is required", details={"field": "title"})
        if data.location_type not in (LocationType.ONLINE.value, LocationType.IN_PERSON.value):
            raise ValidationException(
                "Location type must be online or in-person",
                details={"field": "location_type", "value": data.location_type},
            )
        if data.location_type == LocationType.IN_PERSON.value and not data.location:
            raise ValidationException(
                "Location is required for in-person sessions", details={"field": "location"}
            )
        if data.capacity < 1 or data.capacity > settings.max_group_capacity:
            raise ValidationException(
                f"Capacity must be between 1 and {settings.max_group_capacity}",
                details={"field": "capacity", "value": data.capacity},
            )

        slots: List[Tuple[datetime, int]] = []
        for position, slot in enumerate(data.slots[: settings.max_offer_slots]):
            scheduled_at = parse_slot_datetime(slot)
            if scheduled_at is None:
                continue
            slots.append((scheduled_at, parse_slot_duration(slot.duration, position)))

        if not slots:
            raise ValidationException(
                "At least one date/time slot is required", details={"field": "slots"}
            )
        return slots

    @BaseService.measure_operation("create_offer")
    def create_offer(self, tutor_id: str, data: OfferCreate) -> Offer:
        """
        Publish an offer with its slots.

        Slots may lie in the past; only student-proposed times are checked
        against the clock.
        """
        slots = self._validate_offer(data)

        with self.transaction():
            skill = self.skill_repository.get_offered_skill(data.skill_id, tutor_id)
            if skill is None:
                raise ValidationException(
                    "Invalid skill or you do not offer this skill",
                    code="INVALID_SKILL",
                    details={"field": "skill_id", "skill_id": data.skill_id},
                )

            offer = self.offer_repository.create(
                tutor_id=tutor_id,
                skill_id=skill.id,
                title=data.title,
                notes=data.notes,
                location_type=data.location_type,
                location=data.location if data.location_type == LocationType.IN_PERSON.value else None,
                is_group=data.is_group,
                capacity=data.capacity,
            )
            for scheduled_at, duration in slots:
                self.slot_repository.create(
                    offer_id=offer.id, scheduled_at=scheduled_at, duration_minutes=duration
                )
            self.offer_repository.refresh(offer)

        self.log_operation(
            "create_offer", offer_id=offer.id, tutor_id=tutor_id, slot_count=len(slots)
        )
        return offer

    def get_offer_model(self, offer_id: str) -> Offer:
        offer = self.offer_repository.get_with_slots(offer_id)
        if offer is None:
            raise NotFoundException(
                "Offer not found", code="OFFER_NOT_FOUND", details={"offer_id": offer_id}
            )
        return offer

    @BaseService.measure_operation("get_offer")
    def get_offer(self, offer_id: str) -> OfferResponse:
        offer = self.get_offer_model(offer_id)
        accepted = self.request_repository.accepted_counts_by_slot([offer.id])
        return self._to_response(offer, accepted.get(offer.id, {}))

    @BaseService.measure_operation("list_open_offers")
    def list_open_offers(
        self,
        viewer_id: Optional[str] = None,
        tutor_id: Optional[str] = None,
        skill_id: Optional[str] = None,
    ) -> List[OfferResponse]:
        """Open offers by active tutors, newest first, never the viewer's own."""
        offers = self.offer_repository.list_open(
            limit=settings.list_limit, viewer_id=viewer_id, tutor_id=tutor_id, skill_id=skill_id
        )
        accepted = self.request_repository.accepted_counts_by_slot([o.id for o in offers])
        return [
            self._to_response(
                offer,
                accepted.get(offer.id, {}),
                tutor_name=offer.tutor.display_name if offer.tutor else None,
            )
            for offer in offers
        ]

    @BaseService.measure_operation("list_my_offers")
    def list_my_offers(self, tutor_id: str, status: Optional[str] = "open") -> List[OfferResponse]:
        if status in (None, "", "all"):
            status_filter = None
        elif status in ("open", "closed"):
            status_filter = status
        else:
            raise ValidationException(
                "Status must be open, closed or all", details={"field": "status", "value": status}
            )

        offers = self.offer_repository.list_for_tutor(tutor_id, status_filter, settings.list_limit)
        offer_ids = [o.id for o in offers]
        accepted = self.request_repository.accepted_counts_by_slot(offer_ids)
        pending = self.request_repository.pending_counts(offer_ids)
        return [
            self._to_response(offer, accepted.get(offer.id, {}), pending_count=pending.get(offer.id, 0))
            for offer in offers
        ]

    @BaseService.measure_operation("close_offer")
    def close_offer(self, offer_id: str) -> bool:
        """
        Close an offer. Closing a closed offer is a no-op.

        Returns True if this call changed the status.
        """
        with self.transaction():
            if self.offer_repository.get_by_id(offer_id) is None:
                raise NotFoundException(
                    "Offer not found", code="OFFER_NOT_FOUND", details={"offer_id": offer_id}
                )
            closed = self.offer_repository.close_offer(offer_id)
        if closed:
            self.log_operation("close_offer", offer_id=offer_id)
        return closed

    @staticmethod
    def _to_response(
        offer: Offer,
        accepted_by_slot: Dict[str, int],
        pending_count: Optional[int] = None,
        tutor_name: Optional[str] = None,
    ) -> OfferResponse:
        slots: List[OfferSlot] = sorted(offer.slots, key=lambda s: as_utc(s.scheduled_at))
        return OfferResponse(
            id=offer.id,
            tutor_id=offer.tutor_id,
            tutor_name=tutor_name,
            skill_id=offer.skill_id,
            skill_name=offer.skill.name if offer.skill else None,
            title=offer.title,
            notes=offer.notes,
            location_type=offer.location_type,
            location=offer.location,
            is_group=bool(offer.is_group),
            capacity=offer.capacity,
            effective_capacity=offer.effective_capacity,
            status=offer.status,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
            slots=[
                SlotResponse(
                    id=slot.id,
                    offer_id=slot.offer_id,
                    scheduled_at=slot.scheduled_at,
                    duration_minutes=slot.duration_minutes,
                    accepted_count=accepted_by_slot.get(slot.id, 0),
                )
                for slot in slots
            ],
            pending_count=pending_count,
        )
