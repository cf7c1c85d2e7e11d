"""
Provider event normalizers

Pure mappings between Google Calendar / Microsoft Graph event payloads and the
fields of a local CalendarEvent. All datetimes are returned as aware UTC.
"""
import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

import pytz

from core.interfaces.calendar_provider import EventNormalizer
from core.interfaces.repositories import CalendarEvent
from core.scheduling.models import as_utc

# Graph returns seven fractional digits, datetime parsing accepts at most six
_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_provider_datetime(value: str, timezone: Optional[str] = None) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are localized to timezone (default UTC)"""
    if not value or not isinstance(value, str):
        raise ValueError(f"missing datetime value: {value!r}")
    cleaned = _FRACTION.sub(r"\1", value.strip())
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        zone = timezone or "UTC"
        if zone not in pytz.all_timezones_set:
            raise ValueError(f"unknown timezone {zone!r}")
        parsed = pytz.timezone(zone).localize(parsed)
    return parsed.astimezone(pytz.UTC)


def _all_day_start(value: str) -> datetime:
    return pytz.UTC.localize(datetime.combine(date.fromisoformat(value), datetime.min.time()))


def _utc_iso(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%S")


def _check_span(fields: Dict[str, Any]) -> Dict[str, Any]:
    if fields["start"] >= fields["end"]:
        raise ValueError(f"event {fields['external_id']} ends before it starts")
    return fields


class GoogleEventNormalizer(EventNormalizer):
    """Google Calendar v3 event resource"""

    def to_local(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        external_id = raw.get("id")
        if not external_id:
            raise ValueError("Google event without id")

        start = raw.get("start") or {}
        end = raw.get("end") or {}
        if raw.get("status") == "cancelled" and not start:
            # Deleted instances carry no times; only the status change applies
            return {"external_id": external_id, "status": "cancelled"}

        is_all_day = "date" in start and "dateTime" not in start
        if is_all_day:
            start_at = _all_day_start(start["date"])
            end_at = _all_day_start(end["date"]) if end.get("date") else start_at + timedelta(days=1)
        else:
            start_at = parse_provider_datetime(start.get("dateTime"), start.get("timeZone"))
            end_at = parse_provider_datetime(end.get("dateTime"), end.get("timeZone"))

        status = raw.get("status", "confirmed")
        if status not in ("confirmed", "tentative", "cancelled"):
            status = "confirmed"

        return _check_span({
            "external_id": external_id,
            "title": raw.get("summary") or "(No title)",
            "description": raw.get("description"),
            "start": start_at,
            "end": end_at,
            "location": raw.get("location"),
            "is_all_day": is_all_day,
            "status": status,
        })

    def to_provider(self, event: CalendarEvent) -> Dict[str, Any]:
        if event.is_all_day:
            start = {"date": as_utc(event.start).date().isoformat()}
            end = {"date": as_utc(event.end).date().isoformat()}
        else:
            start = {"dateTime": _utc_iso(event.start), "timeZone": "UTC"}
            end = {"dateTime": _utc_iso(event.end), "timeZone": "UTC"}

        payload = {"summary": event.title, "start": start, "end": end}
        if event.description:
            payload["description"] = event.description
        if event.location:
            payload["location"] = event.location
        if event.status == "tentative":
            payload["status"] = "tentative"
        return payload


class OutlookEventNormalizer(EventNormalizer):
    """Microsoft Graph event resource"""

    def to_local(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        external_id = raw.get("id")
        if not external_id:
            raise ValueError("Outlook event without id")

        start = raw.get("start") or {}
        end = raw.get("end") or {}
        start_at = parse_provider_datetime(start.get("dateTime"), start.get("timeZone"))
        end_at = parse_provider_datetime(end.get("dateTime"), end.get("timeZone"))

        if raw.get("isCancelled"):
            status = "cancelled"
        elif raw.get("showAs") == "tentative":
            status = "tentative"
        else:
            status = "confirmed"

        body = raw.get("body") or {}
        location = raw.get("location") or {}
        return _check_span({
            "external_id": external_id,
            "title": raw.get("subject") or "(No title)",
            "description": body.get("content") or raw.get("bodyPreview"),
            "start": start_at,
            "end": end_at,
            "location": location.get("displayName") or None,
            "is_all_day": bool(raw.get("isAllDay")),
            "status": status,
        })

    def to_provider(self, event: CalendarEvent) -> Dict[str, Any]:
        payload = {
            "subject": event.title,
            "start": {"dateTime": _utc_iso(event.start), "timeZone": "UTC"},
            "end": {"dateTime": _utc_iso(event.end), "timeZone": "UTC"},
            "isAllDay": event.is_all_day,
        }
        if event.description:
            payload["body"] = {"contentType": "text", "content": event.description}
        if event.location:
            payload["location"] = {"displayName": event.location}
        if event.status == "tentative":
            payload["showAs"] = "tentative"
        return payload
