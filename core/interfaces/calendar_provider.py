from abc import ABC, abstractmethod
from typing import Any, Dict, List
from datetime import datetime


class CalendarProviderError(Exception):
    """Raised when a calendar provider call fails"""

    def __init__(self, provider: str, message: str, status_code: int = None):
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code


class CalendarProviderClient(ABC):
    """Abstract external calendar provider, bound to one access token"""

    provider: str = ""

    @abstractmethod
    async def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        """List raw provider events overlapping [time_min, time_max]"""
        pass

    @abstractmethod
    async def create_event(self, calendar_id: str, payload: Dict[str, Any]) -> str:
        """Create a provider event and return its external ID"""
        pass


class EventNormalizer(ABC):
    """Maps between one provider's event shape and local calendar event fields"""

    @abstractmethod
    def to_local(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert a provider event into local fields

        Returns:
            Dict with external_id, title, description, start, end, location,
            is_all_day and status. A deleted event that carries no times is
            returned as only {"external_id", "status": "cancelled"}.

        Raises:
            ValueError: if the provider event is malformed
        """
        pass

    @abstractmethod
    def to_provider(self, event) -> Dict[str, Any]:
        """Convert a local CalendarEvent into a provider create payload"""
        pass
