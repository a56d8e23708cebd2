# backend/tests/services/test_booking_workflow.py
"""
Booking workflow tests: the accept/decline/cancel state machine, its
cascades and the notifications sent after each transition.
"""

from unittest.mock import Mock

import pytest

from skillswap.core.exceptions import (
    CapacityExceededException,
    ForbiddenException,
    NotFoundException,
    OfferClosedException,
    RequestAlreadyResolvedException,
    StorageException,
    ValidationException,
)
from skillswap.models.offer import Offer
from skillswap.models.session_request import SessionRequest
from skillswap.models.tutoring_session import TutoringSession
from skillswap.schemas.session_request import ExistingSlot, ProposedSlot
from skillswap.services.booking_workflow import BookingWorkflow
from skillswap.services.notification_service import NotificationService
from skillswap.services.session_materializer import SessionMaterializer
from tests.utils.builders import FailingSink, future, slot_at


def _request(workflow, offer, student, slot=None):
    slot_id = (slot or offer.slots[0]).id
    return workflow.create_request(offer.id, student.id, ExistingSlot(slot_id=slot_id))


def _status(db, request):
    db.refresh(request)
    return request.status


def _session_count(db, offer_id):
    return db.query(TutoringSession).filter_by(offer_id=offer_id).count()


class TestCreateRequest:
    def test_tutor_is_notified(self, workflow, make_offer, tutor, student, sink):
        offer = make_offer()

        _request(workflow, offer, student)

        messages = sink.with_subject("New session request")
        assert len(messages) == 1
        assert messages[0][0] == tutor.id
        assert "Sam Student" in messages[0][2]

    def test_inactive_student_rejected(self, workflow, make_offer, make_user):
        offer = make_offer()
        suspended = make_user("Sid Suspended", status="suspended")

        with pytest.raises(ValidationException) as exc_info:
            _request(workflow, offer, suspended)
        assert exc_info.value.code == "USER_INACTIVE"
        assert exc_info.value.details["field"] == "student_id"

    def test_inactive_tutor_rejected(self, db, workflow, make_offer, tutor, student):
        offer = make_offer()
        tutor.status = "deactivated"
        db.commit()

        with pytest.raises(ValidationException) as exc_info:
            _request(workflow, offer, student)
        assert exc_info.value.details["field"] == "tutor_id"

    def test_unknown_student(self, workflow, make_offer):
        offer = make_offer()

        with pytest.raises(NotFoundException) as exc_info:
            workflow.create_request(
                offer.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ", ProposedSlot(scheduled_at=future())
            )
        assert exc_info.value.code == "USER_NOT_FOUND"

    def test_inactive_tutor_cannot_publish(self, workflow, make_user, offered_skill):
        from skillswap.schemas.offer import OfferCreate

        ghost = make_user("Gone Tutor", status="deactivated")

        with pytest.raises(ValidationException):
            workflow.create_offer(
                ghost.id, OfferCreate(skill_id=offered_skill.id, title="x", slots=[slot_at()])
            )


class TestSingleSeatOffer:
    def test_accept_closes_offer_and_declines_others(
        self, db, workflow, make_offer, tutor, student, student_2, sink
    ):
        offer = make_offer()
        first = _request(workflow, offer, student)
        second = _request(workflow, offer, student_2)

        result = workflow.accept_request(first.id, tutor.id)

        assert result.request.status == "accepted"
        assert result.offer_closed is True
        assert [r.id for r in result.declined] == [second.id]
        assert _status(db, second) == "declined"
        db.refresh(offer)
        assert offer.status == "closed"

        session = result.session
        assert session.student_id == student.id
        assert session.tutor_id == tutor.id
        assert session.request_id == first.id
        assert session.status == "scheduled"
        assert session.is_group is False
        assert _session_count(db, offer.id) == 1

        assert [m[0] for m in sink.with_subject("Session request accepted")] == [student.id]
        assert [m[0] for m in sink.with_subject("Session request declined")] == [student_2.id]

    def test_requests_on_other_slots_are_declined_too(
        self, db, workflow, make_offer, tutor, student, student_2
    ):
        offer = make_offer(slots=[slot_at(days=2), slot_at(days=4)])
        first = _request(workflow, offer, student, offer.slots[0])
        second = _request(workflow, offer, student_2, offer.slots[1])

        workflow.accept_request(first.id, tutor.id)

        assert _status(db, second) == "declined"
        with pytest.raises(RequestAlreadyResolvedException):
            workflow.accept_request(second.id, tutor.id)
        assert _session_count(db, offer.id) == 1

    def test_accepting_twice_is_a_conflict(self, workflow, make_offer, tutor, student):
        offer = make_offer()
        request = _request(workflow, offer, student)
        workflow.accept_request(request.id, tutor.id)

        with pytest.raises(RequestAlreadyResolvedException) as exc_info:
            workflow.accept_request(request.id, tutor.id)
        assert exc_info.value.details["status"] == "accepted"

    def test_session_snapshot_of_in_person_offer(self, workflow, make_offer, tutor, student):
        offer = make_offer(location_type="in-person", location="Cafe Central")
        request = workflow.create_request(
            offer.id, student.id, ProposedSlot(scheduled_at=future(days=5, hour=10))
        )

        session = workflow.accept_request(request.id, tutor.id).session

        assert session.location == "Cafe Central"
        assert session.notes == "Bring a guitar"
        assert session.duration_minutes == 60
        assert session.scheduled_at.replace(tzinfo=None) == future(days=5, hour=10).replace(
            tzinfo=None
        )


class TestGroupOffer:
    @pytest.fixture
    def four_students(self, make_user):
        return [make_user(f"Student {n}") for n in range(1, 5)]

    def test_capacity_is_enforced_and_loser_stays_pending(
        self, db, workflow, make_offer, tutor, four_students, sink
    ):
        offer = make_offer(is_group=True, capacity=3)
        requests = [_request(workflow, offer, s) for s in four_students]

        for request in requests[:3]:
            result = workflow.accept_request(request.id, tutor.id)
            assert result.declined == []

        assert workflow.offer_service.get_offer(offer.id).slots[0].accepted_count == 3

        with pytest.raises(CapacityExceededException) as exc_info:
            workflow.accept_request(requests[3].id, tutor.id)
        assert exc_info.value.message == "Slot already full"
        assert exc_info.value.details["capacity"] == 3
        assert _status(db, requests[3]) == "pending"
        assert _session_count(db, offer.id) == 3
        assert sink.with_subject("Session request declined") == []

        workflow.decline_request(requests[3].id, tutor.id)
        assert _status(db, requests[3]) == "declined"

    def test_offer_closes_when_every_slot_is_full(
        self, db, workflow, make_offer, tutor, four_students
    ):
        offer = make_offer(is_group=True, capacity=2, slots=[slot_at(days=2), slot_at(days=3)])
        first_slot, second_slot = offer.slots
        a = _request(workflow, offer, four_students[0], first_slot)
        b = _request(workflow, offer, four_students[1], first_slot)
        c = _request(workflow, offer, four_students[2], second_slot)
        d = _request(workflow, offer, four_students[3], second_slot)

        assert workflow.accept_request(a.id, tutor.id).offer_closed is False
        assert workflow.accept_request(b.id, tutor.id).offer_closed is False
        assert workflow.accept_request(c.id, tutor.id).offer_closed is False
        assert workflow.accept_request(d.id, tutor.id).offer_closed is True

        db.refresh(offer)
        assert offer.status == "closed"

    def test_sessions_are_group_sessions(self, workflow, make_offer, tutor, student):
        offer = make_offer(is_group=True, capacity=3)
        request = _request(workflow, offer, student)

        session = workflow.accept_request(request.id, tutor.id).session

        assert session.is_group is True
        assert session.slot_id == offer.slots[0].id

    def test_full_slot_policy_declines_leftovers(
        self, db, workflow, make_offer, tutor, four_students, sink, group_policy
    ):
        group_policy(True)
        offer = make_offer(is_group=True, capacity=2)
        requests = [_request(workflow, offer, s) for s in four_students]

        workflow.accept_request(requests[0].id, tutor.id)
        result = workflow.accept_request(requests[1].id, tutor.id)

        assert {r.id for r in result.declined} == {requests[2].id, requests[3].id}
        assert _status(db, requests[2]) == "declined"
        assert _status(db, requests[3]) == "declined"
        assert result.offer_closed is True
        declined_to = {m[0] for m in sink.with_subject("Session request declined")}
        assert declined_to == {four_students[2].id, four_students[3].id}

    def test_policy_does_not_touch_other_slots(
        self, db, workflow, make_offer, tutor, four_students, group_policy
    ):
        group_policy(True)
        offer = make_offer(is_group=True, capacity=2, slots=[slot_at(days=2), slot_at(days=3)])
        first_slot, second_slot = offer.slots
        a = _request(workflow, offer, four_students[0], first_slot)
        b = _request(workflow, offer, four_students[1], first_slot)
        other = _request(workflow, offer, four_students[2], second_slot)

        workflow.accept_request(a.id, tutor.id)
        workflow.accept_request(b.id, tutor.id)

        assert _status(db, other) == "pending"
        db.refresh(offer)
        assert offer.status == "open"


class TestDecline:
    def test_decline_notifies_student(self, db, workflow, make_offer, tutor, student, sink):
        offer = make_offer()
        request = _request(workflow, offer, student)

        declined = workflow.decline_request(request.id, tutor.id)

        assert declined.status == "declined"
        assert [m[0] for m in sink.with_subject("Session request declined")] == [student.id]
        assert _session_count(db, offer.id) == 0
        db.refresh(offer)
        assert offer.status == "open"

    def test_decline_twice(self, workflow, make_offer, tutor, student):
        offer = make_offer()
        request = _request(workflow, offer, student)
        workflow.decline_request(request.id, tutor.id)

        with pytest.raises(RequestAlreadyResolvedException):
            workflow.decline_request(request.id, tutor.id)

    def test_declined_request_cannot_be_accepted(self, workflow, make_offer, tutor, student):
        offer = make_offer()
        request = _request(workflow, offer, student)
        workflow.decline_request(request.id, tutor.id)

        with pytest.raises(RequestAlreadyResolvedException):
            workflow.accept_request(request.id, tutor.id)


class TestAuthorization:
    def test_only_the_offer_tutor_resolves(self, workflow, make_offer, student, student_2):
        offer = make_offer()
        request = _request(workflow, offer, student)

        with pytest.raises(ForbiddenException):
            workflow.accept_request(request.id, student_2.id)
        with pytest.raises(ForbiddenException):
            workflow.decline_request(request.id, student.id)

    def test_unknown_request(self, workflow, tutor):
        with pytest.raises(NotFoundException):
            workflow.accept_request("01HZZZZZZZZZZZZZZZZZZZZZZZ", tutor.id)

    def test_only_the_offer_tutor_cancels(self, workflow, make_offer, student):
        offer = make_offer()

        with pytest.raises(ForbiddenException):
            workflow.cancel_offer(offer.id, student.id)

    def test_student_deactivated_after_requesting(self, db, workflow, make_offer, tutor, student):
        offer = make_offer()
        request = _request(workflow, offer, student)
        student.status = "suspended"
        db.commit()

        with pytest.raises(ValidationException):
            workflow.accept_request(request.id, tutor.id)
        assert _status(db, request) == "pending"


class TestCancelOffer:
    def test_cancel_with_two_pending_requests(
        self, db, workflow, make_offer, tutor, student, student_2, sink
    ):
        offer = make_offer(is_group=True, capacity=3)
        first = _request(workflow, offer, student)
        second = _request(workflow, offer, student_2)

        result = workflow.cancel_offer(offer.id, tutor.id)

        assert {r.id for r in result.cancelled} == {first.id, second.id}
        assert _status(db, first) == "cancelled"
        assert _status(db, second) == "cancelled"
        db.refresh(offer)
        assert offer.status == "closed"
        assert _session_count(db, offer.id) == 0
        cancelled = sink.with_subject("Session offer cancelled")
        assert sorted(m[0] for m in cancelled) == sorted([student.id, student_2.id])

    def test_cancel_keeps_accepted_sessions(
        self, db, workflow, make_offer, tutor, student, student_2
    ):
        offer = make_offer(is_group=True, capacity=3)
        accepted = _request(workflow, offer, student)
        pending = _request(workflow, offer, student_2)
        workflow.accept_request(accepted.id, tutor.id)

        result = workflow.cancel_offer(offer.id, tutor.id)

        assert [r.id for r in result.cancelled] == [pending.id]
        assert _status(db, accepted) == "accepted"
        assert _session_count(db, offer.id) == 1

    def test_cancel_closed_offer_is_a_conflict(
        self, workflow, make_offer, tutor, student, student_2, sink
    ):
        offer = make_offer()
        first = _request(workflow, offer, student)
        _request(workflow, offer, student_2)
        workflow.accept_request(first.id, tutor.id)
        before = len(sink.messages)

        with pytest.raises(OfferClosedException):
            workflow.cancel_offer(offer.id, tutor.id)
        assert len(sink.messages) == before

    def test_requests_after_cancel_are_rejected(self, workflow, make_offer, tutor, student):
        offer = make_offer()
        workflow.cancel_offer(offer.id, tutor.id)

        with pytest.raises(ValidationException) as exc_info:
            _request(workflow, offer, student)
        assert exc_info.value.code == "OFFER_NOT_OPEN"


class TestCancelAcceptInterleaving:
    """Two independent sessions acting on the same offer, one after the other."""

    def test_accept_then_cancel(self, session_factory, make_offer, tutor, student, student_2):
        offer = make_offer(is_group=True, capacity=2)
        tutor_view = session_factory()
        other_view = session_factory()
        try:
            setup = BookingWorkflow(tutor_view, notification_service=NotificationService(tutor_view, Mock()))
            first = _request(setup, offer, student)
            second = _request(setup, offer, student_2)

            accepter = setup
            canceller = BookingWorkflow(other_view, notification_service=NotificationService(other_view, Mock()))

            accepter.accept_request(first.id, tutor.id)
            result = canceller.cancel_offer(offer.id, tutor.id)

            assert [r.id for r in result.cancelled] == [second.id]
            check = session_factory()
            assert check.get(SessionRequest, first.id).status == "accepted"
            assert check.query(TutoringSession).filter_by(offer_id=offer.id).count() == 1
            check.close()
        finally:
            tutor_view.close()
            other_view.close()

    def test_cancel_then_accept(self, session_factory, make_offer, tutor, student):
        offer = make_offer()
        first_view = session_factory()
        second_view = session_factory()
        try:
            setup = BookingWorkflow(first_view, notification_service=NotificationService(first_view, Mock()))
            request = _request(setup, offer, student)
            # load the request into the accepting session while it is still pending
            accepter = BookingWorkflow(second_view, notification_service=NotificationService(second_view, Mock()))
            assert accepter.request_repository.get_by_id(request.id).status == "pending"

            setup.cancel_offer(offer.id, tutor.id)

            with pytest.raises(RequestAlreadyResolvedException) as exc_info:
                accepter.accept_request(request.id, tutor.id)
            assert exc_info.value.details["status"] == "cancelled"
            assert second_view.query(TutoringSession).filter_by(offer_id=offer.id).count() == 0
        finally:
            first_view.close()
            second_view.close()


class TestFailureHandling:
    def test_materializer_failure_rolls_back_acceptance(
        self, db, notification_service, make_offer, tutor, student, student_2, sink
    ):
        materializer = Mock(spec=SessionMaterializer)
        materializer.materialize.side_effect = StorageException("Database operation failed: disk full")
        workflow = BookingWorkflow(db, notification_service=notification_service, materializer=materializer)
        offer = make_offer()
        first = _request(workflow, offer, student)
        second = _request(workflow, offer, student_2)
        sent_before = len(sink.messages)

        with pytest.raises(StorageException):
            workflow.accept_request(first.id, tutor.id)

        assert _status(db, first) == "pending"
        assert _status(db, second) == "pending"
        assert db.get(Offer, offer.id).status == "open"
        assert _session_count(db, offer.id) == 0
        assert len(sink.messages) == sent_before

    def test_accept_succeeds_after_rolled_back_attempt(
        self, db, notification_service, make_offer, tutor, student
    ):
        offer = make_offer()
        request = _request(BookingWorkflow(db, notification_service=notification_service), offer, student)
        broken = Mock(spec=SessionMaterializer)
        broken.materialize.side_effect = StorageException("boom")

        with pytest.raises(StorageException):
            BookingWorkflow(db, notification_service=notification_service, materializer=broken).accept_request(
                request.id, tutor.id
            )
        result = BookingWorkflow(db, notification_service=notification_service).accept_request(
            request.id, tutor.id
        )

        assert result.request.status == "accepted"

    def test_notification_failure_does_not_undo_acceptance(
        self, db, make_offer, tutor, student
    ):
        failing = FailingSink()
        workflow = BookingWorkflow(db, notification_service=NotificationService(db, failing))
        offer = make_offer()
        request = _request(workflow, offer, student)

        result = workflow.accept_request(request.id, tutor.id)

        assert result.request.status == "accepted"
        assert failing.attempts >= 2
        assert _session_count(db, offer.id) == 1

    def test_inbox_sink_persists_notifications(self, db, make_offer, tutor, student):
        from skillswap.models.notification import Notification

        workflow = BookingWorkflow(db)
        offer = make_offer()
        request = _request(workflow, offer, student)
        workflow.accept_request(request.id, tutor.id)

        subjects = {
            (n.user_id, n.subject) for n in db.query(Notification).all()
        }
        assert (tutor.id, "New session request") in subjects
        assert (student.id, "Session request accepted") in subjects
