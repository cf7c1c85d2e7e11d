import pytest

from conftest import at
from core.interfaces.repositories import CalendarEvent
from core.sync.normalizers import GoogleEventNormalizer, OutlookEventNormalizer, parse_provider_datetime


def test_parse_provider_datetime_variants():
    assert parse_provider_datetime("2026-10-20T09:00:00Z") == at(20, 9)
    assert parse_provider_datetime("2026-10-20T11:00:00+02:00") == at(20, 9)
    assert parse_provider_datetime("2026-10-20T09:00:00.1234567") == at(20, 9).replace(microsecond=123456)
    assert parse_provider_datetime("2026-10-20T05:00:00", "America/New_York") == at(20, 9)


@pytest.mark.parametrize("value, timezone", [
    ("", None),
    ("yesterday", None),
    ("2026-10-20T09:00:00", "Nowhere/City"),
])
def test_parse_provider_datetime_rejects_bad_input(value, timezone):
    with pytest.raises(ValueError):
        parse_provider_datetime(value, timezone)


def test_google_timed_event():
    fields = GoogleEventNormalizer().to_local({
        "id": "g1",
        "summary": "Design sync",
        "description": "Weekly",
        "location": "Room 4",
        "status": "tentative",
        "start": {"dateTime": "2026-10-20T11:00:00+02:00"},
        "end": {"dateTime": "2026-10-20T11:30:00+02:00"},
    })

    assert fields == {
        "external_id": "g1",
        "title": "Design sync",
        "description": "Weekly",
        "start": at(20, 9),
        "end": at(20, 9, 30),
        "location": "Room 4",
        "is_all_day": False,
        "status": "tentative",
    }


def test_google_all_day_event_and_defaults():
    fields = GoogleEventNormalizer().to_local({
        "id": "g2",
        "status": "needsAction",
        "start": {"date": "2026-10-22"},
        "end": {"date": "2026-10-23"},
    })

    assert fields["is_all_day"] is True
    assert (fields["start"], fields["end"]) == (at(22, 0), at(23, 0))
    assert fields["title"] == "(No title)"
    assert fields["status"] == "confirmed"


def test_google_deleted_instance_is_partial():
    assert GoogleEventNormalizer().to_local({"id": "g3", "status": "cancelled"}) == {
        "external_id": "g3",
        "status": "cancelled",
    }


@pytest.mark.parametrize("raw", [
    {"summary": "no id", "start": {"dateTime": "2026-10-20T09:00:00Z"}, "end": {"dateTime": "2026-10-20T10:00:00Z"}},
    {"id": "g4", "start": {"dateTime": "2026-10-20T10:00:00Z"}, "end": {"dateTime": "2026-10-20T09:00:00Z"}},
    {"id": "g5", "start": {}, "end": {}},
])
def test_google_malformed_events_raise(raw):
    with pytest.raises(ValueError):
        GoogleEventNormalizer().to_local(raw)


def test_outlook_event_with_graph_precision():
    fields = OutlookEventNormalizer().to_local({
        "id": "o1",
        "subject": "1:1",
        "bodyPreview": "Agenda inside",
        "location": {"displayName": ""},
        "showAs": "tentative",
        "start": {"dateTime": "2026-10-20T10:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2026-10-20T10:30:00.0000000", "timeZone": "UTC"},
    })

    assert (fields["start"], fields["end"]) == (at(20, 10), at(20, 10, 30))
    assert fields["description"] == "Agenda inside"
    assert fields["location"] is None
    assert fields["status"] == "tentative"


def test_outlook_cancelled_event():
    fields = OutlookEventNormalizer().to_local({
        "id": "o2",
        "isCancelled": True,
        "showAs": "tentative",
        "start": {"dateTime": "2026-10-20T10:00:00", "timeZone": "UTC"},
        "end": {"dateTime": "2026-10-20T11:00:00", "timeZone": "UTC"},
    })

    assert fields["status"] == "cancelled"


def local_event(**overrides):
    values = dict(user_id="u1", title="Dentist", start=at(20, 13), end=at(20, 14))
    values.update(overrides)
    return CalendarEvent(**values)


def test_google_export_payload():
    payload = GoogleEventNormalizer().to_provider(local_event(location="Clinic", status="tentative"))

    assert payload == {
        "summary": "Dentist",
        "start": {"dateTime": "2026-10-20T13:00:00", "timeZone": "UTC"},
        "end": {"dateTime": "2026-10-20T14:00:00", "timeZone": "UTC"},
        "location": "Clinic",
        "status": "tentative",
    }


def test_google_export_all_day_uses_dates():
    payload = GoogleEventNormalizer().to_provider(local_event(start=at(22, 0), end=at(23, 0), is_all_day=True))

    assert (payload["start"], payload["end"]) == ({"date": "2026-10-22"}, {"date": "2026-10-23"})


def test_outlook_export_payload():
    payload = OutlookEventNormalizer().to_provider(local_event(description="Bring forms"))

    assert payload == {
        "subject": "Dentist",
        "start": {"dateTime": "2026-10-20T13:00:00", "timeZone": "UTC"},
        "end": {"dateTime": "2026-10-20T14:00:00", "timeZone": "UTC"},
        "isAllDay": False,
        "body": {"contentType": "text", "content": "Bring forms"},
    }
