"""
Google Calendar API client (v3)
Documentation: https://developers.google.com/calendar/api/v3/reference/events
"""
import httpx
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from config import settings
from core.scheduling.models import as_utc
from providers.base_client import RestCalendarClient
from utils.logger import logger


class GoogleCalendarClient(RestCalendarClient):
    """Events API of one Google account"""

    provider = "google"
    PAGE_SIZE = 250

    def __init__(self, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(
            access_token,
            settings.google_calendar_api_url,
            timeout=settings.provider_timeout_seconds,
            transport=transport
        )

    def _events_path(self, calendar_id: str) -> str:
        return f"/calendars/{quote(calendar_id, safe='')}/events"

    async def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        """List single (expanded) events ordered by start time, following nextPageToken"""
        params = {
            "timeMin": as_utc(time_min).isoformat(),
            "timeMax": as_utc(time_max).isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "showDeleted": "true",
            "maxResults": self.PAGE_SIZE,
        }
        events: List[Dict[str, Any]] = []
        while True:
            data = await self._request("GET", self._events_path(calendar_id), params=params)
            events.extend(data.get("items", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        logger.debug(f"Fetched {len(events)} Google events from calendar {calendar_id}")
        return events

    async def create_event(self, calendar_id: str, payload: Dict[str, Any]) -> str:
        data = await self._request("POST", self._events_path(calendar_id), json=payload)
        return self._created_id(data)
