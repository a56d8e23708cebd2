# backend/tests/routes/test_offer_routes.py
"""
HTTP tests for /api/v1/offers.
"""

from tests.utils.builders import future, slot_at

UNKNOWN_ID = "01HZZZZZZZZZZZZZZZZZZZZZZZ"


def _headers(user):
    return {"X-User-Id": user.id}


def _publish(client, tutor, skill, **overrides):
    payload = {
        "skill_id": skill.id,
        "title": "Beginner guitar",
        "notes": "Bring a guitar",
        "location_type": "online",
        "slots": [slot_at(days=2), slot_at(days=4, duration="")],
    }
    payload.update(overrides)
    return client.post("/api/v1/offers", json=payload, headers=_headers(tutor))


class TestCreateOffer:
    def test_publish(self, client, tutor, offered_skill):
        response = _publish(client, tutor, offered_skill)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["tutor_id"] == tutor.id
        assert data["effective_capacity"] == 1
        assert [s["duration_minutes"] for s in data["slots"]] == [60, 60]
        assert all(s["accepted_count"] == 0 for s in data["slots"])

    def test_missing_acting_user(self, client, offered_skill):
        response = client.post("/api/v1/offers", json={"skill_id": offered_skill.id})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHENTICATED"

    def test_validation_error_names_field(self, client, tutor, offered_skill):
        response = _publish(client, tutor, offered_skill, capacity=99, is_group=True)

        assert response.status_code == 400
        assert response.json()["detail"]["details"]["field"] == "capacity"

    def test_unknown_fields_are_rejected(self, client, tutor, offered_skill):
        response = _publish(client, tutor, offered_skill, price=20)

        assert response.status_code == 422


class TestReadOffers:
    def test_list_hides_own_offers(self, client, tutor, student, offered_skill):
        created = _publish(client, tutor, offered_skill).json()

        as_student = client.get("/api/v1/offers", headers=_headers(student))
        as_tutor = client.get("/api/v1/offers", headers=_headers(tutor))

        assert [o["id"] for o in as_student.json()] == [created["id"]]
        assert as_student.json()[0]["tutor_name"] == "Tina Tutor"
        assert as_tutor.json() == []

    def test_list_filters_by_skill(self, client, tutor, student, offered_skill):
        _publish(client, tutor, offered_skill)

        response = client.get(
            "/api/v1/offers", params={"skill_id": UNKNOWN_ID}, headers=_headers(student)
        )

        assert response.status_code == 200
        assert response.json() == []

    def test_mine_includes_pending_count(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()
        client.post(
            f"/api/v1/offers/{offer['id']}/requests",
            json={"slot": {"kind": "existing", "slot_id": offer["slots"][0]["id"]}},
            headers=_headers(student),
        )

        response = client.get("/api/v1/offers/mine", headers=_headers(tutor))

        assert response.status_code == 200
        assert response.json()[0]["pending_count"] == 1

    def test_mine_rejects_unknown_status(self, client, tutor):
        response = client.get(
            "/api/v1/offers/mine", params={"status": "archived"}, headers=_headers(tutor)
        )

        assert response.status_code == 422

    def test_get_offer(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()

        response = client.get(f"/api/v1/offers/{offer['id']}", headers=_headers(student))

        assert response.status_code == 200
        assert response.json()["skill_name"] == "Guitar"

    def test_get_unknown_offer(self, client, student):
        response = client.get(f"/api/v1/offers/{UNKNOWN_ID}", headers=_headers(student))

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "OFFER_NOT_FOUND"

    def test_malformed_offer_id(self, client, student):
        response = client.get("/api/v1/offers/not-a-ulid", headers=_headers(student))

        assert response.status_code == 422


class TestRequestSlot:
    def test_request_existing_slot(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()

        response = client.post(
            f"/api/v1/offers/{offer['id']}/requests",
            json={"slot": {"kind": "existing", "slot_id": offer["slots"][1]["id"]}},
            headers=_headers(student),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["slot_id"] == offer["slots"][1]["id"]

    def test_propose_time(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()

        response = client.post(
            f"/api/v1/offers/{offer['id']}/requests",
            json={
                "slot": {
                    "kind": "proposed",
                    "scheduled_at": future(days=9, hour=8).isoformat(),
                    "duration_minutes": 30,
                }
            },
            headers=_headers(student),
        )

        assert response.status_code == 201
        detail = client.get(f"/api/v1/offers/{offer['id']}", headers=_headers(student)).json()
        assert len(detail["slots"]) == 3
        assert response.json()["slot_id"] in {s["id"] for s in detail["slots"]}

    def test_duplicate_request(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()
        body = {"slot": {"kind": "existing", "slot_id": offer["slots"][0]["id"]}}
        client.post(f"/api/v1/offers/{offer['id']}/requests", json=body, headers=_headers(student))

        response = client.post(
            f"/api/v1/offers/{offer['id']}/requests", json=body, headers=_headers(student)
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_REQUEST"

    def test_own_offer(self, client, tutor, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()

        response = client.post(
            f"/api/v1/offers/{offer['id']}/requests",
            json={"slot": {"kind": "existing", "slot_id": offer["slots"][0]["id"]}},
            headers=_headers(tutor),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "OWN_OFFER"

    def test_unknown_slot_kind(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()

        response = client.post(
            f"/api/v1/offers/{offer['id']}/requests",
            json={"slot": {"kind": "whenever"}},
            headers=_headers(student),
        )

        assert response.status_code == 422


class TestCancelOffer:
    def test_cancel(self, client, tutor, student, student_2, offered_skill):
        offer = _publish(client, tutor, offered_skill, is_group=True, capacity=3).json()
        body = {"slot": {"kind": "existing", "slot_id": offer["slots"][0]["id"]}}
        ids = [
            client.post(f"/api/v1/offers/{offer['id']}/requests", json=body, headers=_headers(s)).json()["id"]
            for s in (student, student_2)
        ]

        response = client.post(f"/api/v1/offers/{offer['id']}/cancel", headers=_headers(tutor))

        assert response.status_code == 200
        data = response.json()
        assert data["offer"]["status"] == "closed"
        assert sorted(data["cancelled_request_ids"]) == sorted(ids)

    def test_cancel_twice(self, client, tutor, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()
        client.post(f"/api/v1/offers/{offer['id']}/cancel", headers=_headers(tutor))

        response = client.post(f"/api/v1/offers/{offer['id']}/cancel", headers=_headers(tutor))

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "OFFER_CLOSED"

    def test_cancel_by_student(self, client, tutor, student, offered_skill):
        offer = _publish(client, tutor, offered_skill).json()

        response = client.post(f"/api/v1/offers/{offer['id']}/cancel", headers=_headers(student))

        assert response.status_code == 403
