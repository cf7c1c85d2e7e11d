"""
Microsoft Graph calendar client
Documentation: https://learn.microsoft.com/graph/api/resources/event
"""
import httpx
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import settings
from core.scheduling.models import as_utc
from providers.base_client import RestCalendarClient
from utils.logger import logger


class OutlookCalendarClient(RestCalendarClient):
    """Calendar API of one Microsoft account"""

    provider = "outlook"
    PAGE_SIZE = 100

    def __init__(self, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(
            access_token,
            settings.outlook_graph_api_url,
            timeout=settings.provider_timeout_seconds,
            transport=transport
        )
        # Ask Graph to report event times in UTC
        self.headers["Prefer"] = 'outlook.timezone="UTC"'

    def _calendar_path(self, calendar_id: str) -> str:
        if calendar_id in ("", "primary"):
            return "/me/calendar"
        return f"/me/calendars/{calendar_id}"

    async def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        """Expanded calendar view over the window, following @odata.nextLink"""
        url = f"{self._calendar_path(calendar_id)}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": as_utc(time_min).isoformat(),
            "endDateTime": as_utc(time_max).isoformat(),
            "$orderby": "start/dateTime",
            "$top": self.PAGE_SIZE,
        }
        events: List[Dict[str, Any]] = []
        while url:
            data = await self._request("GET", url, params=params)
            events.extend(data.get("value", []))
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        logger.debug(f"Fetched {len(events)} Outlook events from calendar {calendar_id}")
        return events

    async def create_event(self, calendar_id: str, payload: Dict[str, Any]) -> str:
        data = await self._request("POST", f"{self._calendar_path(calendar_id)}/events", json=payload)
        return self._created_id(data)
