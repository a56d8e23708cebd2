# backend/tests/services/test_offer_service.py
"""
Offer Store tests against a real SQLite database.
"""

from datetime import timedelta

import pytest

from skillswap.core.exceptions import NotFoundException, ValidationException
from skillswap.core.timezone_utils import as_utc, utcnow
from skillswap.models.user import Skill
from skillswap.schemas.offer import OfferCreate
from skillswap.services.offer_service import OfferService

from tests.utils.builders import slot_at


@pytest.fixture
def offer_service(db):
    return OfferService(db)


def _payload(skill_id, /, **overrides):
    data = {
        "skill_id": skill_id,
        "title": "Beginner guitar",
        "location_type": "online",
        "slots": [slot_at()],
    }
    data.update(overrides)
    return OfferCreate(**data)


class TestCreateOffer:
    def test_creates_open_offer_with_slots(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id,
            _payload(offered_skill.id, slots=[slot_at(days=2), slot_at(days=4, duration=90)]),
        )

        assert offer.status == "open"
        assert offer.tutor_id == tutor.id
        assert offer.is_group is False
        assert offer.effective_capacity == 1
        assert [s.duration_minutes for s in offer.slots] == [60, 90]

    def test_at_most_five_slots_are_kept(self, offer_service, tutor, offered_skill):
        slots = [slot_at(days=d) for d in range(1, 8)]

        offer = offer_service.create_offer(tutor.id, _payload(offered_skill.id, slots=slots))

        assert len(offer.slots) == 5

    def test_unparseable_slots_are_dropped(self, offer_service, tutor, offered_skill):
        slots = [
            {"date": "not-a-date", "time": "10:00"},
            slot_at(days=2),
            {"date": "", "time": ""},
        ]

        offer = offer_service.create_offer(tutor.id, _payload(offered_skill.id, slots=slots))

        assert len(offer.slots) == 1

    def test_no_usable_slot_is_rejected(self, offer_service, tutor, offered_skill):
        with pytest.raises(ValidationException) as exc_info:
            offer_service.create_offer(
                tutor.id, _payload(offered_skill.id, slots=[{"date": "", "time": ""}])
            )
        assert exc_info.value.message == "At least one date/time slot is required"
        assert exc_info.value.details["field"] == "slots"

    def test_blank_duration_uses_default(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id, _payload(offered_skill.id, slots=[slot_at(duration="")])
        )
        assert offer.slots[0].duration_minutes == 60

    def test_slot_in_the_past_is_accepted(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id, _payload(offered_skill.id, slots=[slot_at(days=-2)])
        )
        assert as_utc(offer.slots[0].scheduled_at) < utcnow()

    def test_in_person_requires_location(self, offer_service, tutor, offered_skill):
        with pytest.raises(ValidationException) as exc_info:
            offer_service.create_offer(
                tutor.id, _payload(offered_skill.id, location_type="in-person", location="  ")
            )
        assert exc_info.value.details["field"] == "location"

    def test_in_person_keeps_location(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id,
            _payload(offered_skill.id, location_type="in-person", location="Library, room 2"),
        )
        assert offer.location == "Library, room 2"
        assert offer.session_location == "Library, room 2"

    def test_online_drops_location(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id, _payload(offered_skill.id, location="Somewhere")
        )
        assert offer.location is None
        assert offer.session_location == "Online"

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"title": "   "}, "title"),
            ({"location_type": "hybrid"}, "location_type"),
            ({"capacity": 0}, "capacity"),
            ({"capacity": 51}, "capacity"),
            ({"skill_id": ""}, "skill_id"),
        ],
    )
    def test_invalid_fields_are_named(self, offer_service, tutor, offered_skill, overrides, field):
        with pytest.raises(ValidationException) as exc_info:
            offer_service.create_offer(tutor.id, _payload(offered_skill.id, **overrides))
        assert exc_info.value.details["field"] == field

    def test_skill_must_be_offered_by_tutor(self, db, offer_service, tutor, student):
        foreign = Skill(user_id=student.id, name="Chess", skill_type="offered")
        wanted = Skill(user_id=tutor.id, name="Piano", skill_type="wanted")
        db.add_all([foreign, wanted])
        db.commit()

        for skill in (foreign, wanted):
            with pytest.raises(ValidationException) as exc_info:
                offer_service.create_offer(tutor.id, _payload(skill.id))
            assert exc_info.value.code == "INVALID_SKILL"

    def test_group_capacity_is_at_least_two(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id, _payload(offered_skill.id, is_group=True, capacity=1)
        )
        assert offer.effective_capacity == 2

    def test_capacity_ignored_for_single_seat(self, offer_service, tutor, offered_skill):
        offer = offer_service.create_offer(
            tutor.id, _payload(offered_skill.id, is_group=False, capacity=10)
        )
        assert offer.effective_capacity == 1


class TestListOffers:
    def test_open_offers_exclude_viewer_and_closed(
        self, offer_service, make_offer, tutor, student
    ):
        first = make_offer(title="First")
        second = make_offer(title="Second")
        closed = make_offer(title="Closed")
        offer_service.close_offer(closed.id)

        as_student = offer_service.list_open_offers(viewer_id=student.id)
        as_tutor = offer_service.list_open_offers(viewer_id=tutor.id)

        assert [o.id for o in as_student] == [second.id, first.id]
        assert as_student[0].tutor_name == "Tina Tutor"
        assert as_student[0].skill_name == "Guitar"
        assert as_tutor == []

    def test_inactive_tutor_offers_are_hidden(self, db, offer_service, make_offer, tutor, student):
        make_offer()
        tutor.status = "suspended"
        db.commit()

        assert offer_service.list_open_offers(viewer_id=student.id) == []

    def test_filters(self, db, offer_service, make_offer, tutor, student, offered_skill):
        other_skill = Skill(user_id=tutor.id, name="Bass", skill_type="offered")
        db.add(other_skill)
        db.commit()
        guitar = make_offer()

        by_skill = offer_service.list_open_offers(viewer_id=student.id, skill_id=offered_skill.id)
        by_other_skill = offer_service.list_open_offers(skill_id=other_skill.id)
        by_tutor = offer_service.list_open_offers(tutor_id=tutor.id)

        assert [o.id for o in by_skill] == [guitar.id]
        assert by_other_skill == []
        assert [o.id for o in by_tutor] == [guitar.id]

    def test_slots_are_listed_in_time_order(self, offer_service, make_offer, student):
        make_offer(slots=[slot_at(days=5), slot_at(days=1), slot_at(days=3)])

        listed = offer_service.list_open_offers(viewer_id=student.id)[0]

        times = [s.scheduled_at for s in listed.slots]
        assert times == sorted(times)
        assert all(t.tzinfo is not None for t in times)

    def test_my_offers_carry_pending_count(
        self, offer_service, make_offer, workflow, tutor, student, student_2
    ):
        from skillswap.schemas.session_request import ExistingSlot

        offer = make_offer()
        slot_id = offer.slots[0].id
        workflow.create_request(offer.id, student.id, ExistingSlot(slot_id=slot_id))
        workflow.create_request(offer.id, student_2.id, ExistingSlot(slot_id=slot_id))

        mine = offer_service.list_my_offers(tutor.id)

        assert len(mine) == 1
        assert mine[0].pending_count == 2
        assert mine[0].slots[0].accepted_count == 0

    def test_my_offers_status_filter(self, offer_service, make_offer, tutor):
        open_offer = make_offer()
        closed_offer = make_offer()
        offer_service.close_offer(closed_offer.id)

        assert [o.id for o in offer_service.list_my_offers(tutor.id, "open")] == [open_offer.id]
        assert [o.id for o in offer_service.list_my_offers(tutor.id, "closed")] == [closed_offer.id]
        assert len(offer_service.list_my_offers(tutor.id, "all")) == 2

        with pytest.raises(ValidationException):
            offer_service.list_my_offers(tutor.id, "archived")


class TestGetAndClose:
    def test_get_offer(self, offer_service, make_offer):
        offer = make_offer(is_group=True, capacity=4)

        response = offer_service.get_offer(offer.id)

        assert response.id == offer.id
        assert response.is_group is True
        assert response.effective_capacity == 4
        assert len(response.slots) == 1

    def test_get_unknown_offer(self, offer_service):
        with pytest.raises(NotFoundException):
            offer_service.get_offer("01HZZZZZZZZZZZZZZZZZZZZZZZ")

    def test_close_is_idempotent(self, offer_service, make_offer):
        offer = make_offer()

        assert offer_service.close_offer(offer.id) is True
        assert offer_service.close_offer(offer.id) is False
        assert offer_service.get_offer(offer.id).status == "closed"

    def test_close_unknown_offer(self, offer_service):
        with pytest.raises(NotFoundException):
            offer_service.close_offer("01HZZZZZZZZZZZZZZZZZZZZZZZ")


def test_offer_created_at_is_utc(offer_service, make_offer):
    offer = make_offer()

    response = offer_service.get_offer(offer.id)

    assert response.created_at.utcoffset() == timedelta(0)
