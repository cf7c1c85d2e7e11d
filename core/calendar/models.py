from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from core.interfaces.repositories import CalendarConnection, CalendarEvent, SyncSettings


class CreateEventRequest(BaseModel):
    """Request to create a local calendar event"""
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    location: Optional[str] = None
    is_all_day: bool = False
    status: str = "confirmed"


class UpdateEventRequest(BaseModel):
    """Partial edit of a calendar event"""
    title: Optional[str] = None
    description: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    location: Optional[str] = None
    is_all_day: Optional[bool] = None
    status: Optional[str] = None


class EventResponse(BaseModel):
    """Single calendar event"""
    id: str
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    location: Optional[str] = None
    is_all_day: bool
    status: str
    source: str
    external_id: Optional[str] = None
    meeting_request_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "EventResponse":
        return cls(**event.model_dump(include=set(cls.model_fields)))


class EventListResponse(BaseModel):
    events: List[EventResponse]
    total: int


class BusySpan(BaseModel):
    start: datetime
    end: datetime
    tentative: bool = False


class AvailabilityResponse(BaseModel):
    """Merged busy intervals of the caller"""
    start: datetime
    end: datetime
    busy: List[BusySpan] = Field(default_factory=list)


class ConnectCalendarRequest(BaseModel):
    """Request to connect an external calendar with an issued access token"""
    provider: str
    access_token: str
    provider_calendar_id: str = "primary"
    calendar_name: Optional[str] = None
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)


class ConnectionResponse(BaseModel):
    """Calendar connection status, without credentials"""
    id: str
    provider: str
    provider_calendar_id: str
    calendar_name: Optional[str] = None
    is_active: bool
    sync_settings: SyncSettings
    last_sync_at: Optional[datetime] = None
    sync_status: str
    sync_error_message: Optional[str] = None

    @classmethod
    def from_connection(cls, connection: CalendarConnection) -> "ConnectionResponse":
        return cls(**connection.model_dump(include=set(cls.model_fields)))


class SyncResponse(BaseModel):
    """Aggregated result of a sync pass"""
    imported: int
    exported: int
    errors: List[str] = Field(default_factory=list)
    conflicts: List[str] = Field(default_factory=list)
