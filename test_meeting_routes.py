import pytest

from conftest import ORGANIZER_ID

HEADERS = {"X-User-Id": ORGANIZER_ID}
DRAFT = {
    "title": "Roadmap review",
    "participants": ["bob@example.com"],
    "duration_minutes": 60,
    "range_start": "2026-10-20T00:00:00Z",
    "range_end": "2026-10-21T00:00:00Z",
}


@pytest.fixture
def created(api_client, user_repo):
    user_repo.add("bob@example.com", "Bob")
    response = api_client.post("/meetings", json=DRAFT, headers=HEADERS)
    assert response.status_code == 201
    return response.json()


def test_missing_user_header_is_unauthorized(api_client):
    assert api_client.post("/meetings", json=DRAFT).status_code == 401
    assert api_client.get("/meetings").status_code == 401


def test_create_returns_ranked_suggestions(created):
    assert created["status"] == "pending"
    assert len(created["suggested_slots"]) == 5
    first = created["suggested_slots"][0]
    assert first["start_time"].startswith("2026-10-20T09:00:00")
    assert first["conflicts"] == []
    assert created["analysis"]["total_slots_analyzed"] == 8


def test_invalid_draft_returns_field_detail(api_client):
    response = api_client.post("/meetings", json={**DRAFT, "participants": []}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "participants"


def test_malformed_body_is_unprocessable(api_client):
    body = {key: value for key, value in DRAFT.items() if key != "duration_minutes"}

    assert api_client.post("/meetings", json=body, headers=HEADERS).status_code == 422


def test_suggest_previews_without_saving(api_client, request_repo):
    response = api_client.post("/meetings/suggest", json=DRAFT, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["meeting_request_id"] is None
    assert request_repo.requests == {}


def test_get_list_and_ownership(api_client, created):
    request_id = created["meeting_request_id"]

    detail = api_client.get(f"/meetings/{request_id}", headers=HEADERS)
    assert detail.status_code == 200
    assert len(detail.json()["slots"]) == 8
    assert "organizer_id" not in detail.json()

    listing = api_client.get("/meetings", params={"status": "pending"}, headers=HEADERS)
    assert listing.json()["total"] == 1

    assert api_client.get(f"/meetings/{request_id}", headers={"X-User-Id": "intruder"}).status_code == 404
    assert api_client.get("/meetings/request-404", headers=HEADERS).status_code == 404


def test_confirm_then_conflict(api_client, created):
    request_id = created["meeting_request_id"]
    first, second = created["suggested_slots"][:2]

    response = api_client.post(f"/meetings/{request_id}/confirm", json={"slot_id": first["id"]}, headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Meeting confirmed"
    assert body["calendar_event"]["id"] == body["event_id"]
    assert body["meeting"]["participants"] == ["bob@example.com"]

    again = api_client.post(f"/meetings/{request_id}/confirm", json={"slot_id": second["id"]}, headers=HEADERS)
    assert again.status_code == 409


def test_confirm_unknown_slot_is_not_found(api_client, created):
    response = api_client.post(
        f"/meetings/{created['meeting_request_id']}/confirm", json={"slot_id": "slot-404"}, headers=HEADERS
    )

    assert response.status_code == 404


def test_update_regenerates_slots(api_client, created):
    request_id = created["meeting_request_id"]

    response = api_client.put(f"/meetings/{request_id}", json={"duration_minutes": 30}, headers=HEADERS)
    assert response.status_code == 200
    new_ids = {slot["id"] for slot in response.json()["suggested_slots"]}
    assert new_ids.isdisjoint(slot["id"] for slot in created["suggested_slots"])

    invalid = api_client.put(f"/meetings/{request_id}", json={"duration_minutes": 1000}, headers=HEADERS)
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["field"] == "duration_minutes"


def test_cancel_is_terminal(api_client, created):
    request_id = created["meeting_request_id"]

    response = api_client.post(f"/meetings/{request_id}/cancel", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    assert api_client.post(f"/meetings/{request_id}/cancel", headers=HEADERS).status_code == 409
    assert api_client.put(f"/meetings/{request_id}", json={"title": "x"}, headers=HEADERS).status_code == 409
