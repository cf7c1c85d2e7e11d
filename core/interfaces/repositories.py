from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any, Tuple
from pydantic import BaseModel, Field
from datetime import datetime

from core.scheduling.models import MeetingPreferences


class User:
    """User domain model"""
    def __init__(self, id: str, email: str, name: str, created_at: datetime, timezone: str = "UTC"):
        self.id = id
        self.email = email
        self.name = name
        self.created_at = created_at
        self.timezone = timezone


class UserRepository(ABC):
    """Abstract repository for user operations"""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address"""
        pass

    @abstractmethod
    async def get_by_emails(self, emails: List[str]) -> Dict[str, User]:
        """Get registered users keyed by lowercased email"""
        pass

    @abstractmethod
    async def create_user(self, email: str, name: str, timezone: str = "UTC") -> User:
        """Create a new user"""
        pass


# Calendar Models
class CalendarEvent(BaseModel):
    """Calendar event domain model"""
    id: Optional[str] = None
    user_id: str
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    location: Optional[str] = None
    is_all_day: bool = False
    status: str = "confirmed"  # 'confirmed', 'tentative', 'cancelled'
    source: str = "local"  # 'local', 'google', 'outlook', 'ai_scheduled'
    external_id: Optional[str] = None
    external_source: Optional[str] = None  # Provider the external_id belongs to
    connection_id: Optional[str] = None
    meeting_request_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SyncSettings(BaseModel):
    """Per-connection sync behaviour"""
    sync_direction: str = "bidirectional"  # 'import', 'export', 'bidirectional'
    conflict_resolution: str = "remote_wins"  # 'remote_wins', 'local_wins', 'manual'


class CalendarConnection(BaseModel):
    """Link between a user and an external calendar provider"""
    id: Optional[str] = None
    user_id: str
    provider: str  # 'google', 'outlook'
    provider_calendar_id: str = "primary"
    calendar_name: Optional[str] = None
    access_token: str
    is_active: bool = True
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)
    last_sync_at: Optional[datetime] = None
    sync_status: str = "active"  # 'active', 'error'
    sync_error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Meeting Models
class MeetingRequest(BaseModel):
    """Meeting request domain model"""
    id: Optional[str] = None
    organizer_id: str
    title: str
    participants: List[str]
    duration_minutes: int
    meeting_type: str = "team"
    priority: str = "medium"
    location_type: str = "video_call"
    location_details: Optional[str] = None
    agenda: Optional[str] = None
    preparation_minutes: int = 0
    buffer_minutes: int = 15
    preferences: MeetingPreferences = Field(default_factory=MeetingPreferences)
    range_start: datetime
    range_end: datetime
    status: str = "pending"  # 'pending', 'scheduled', 'cancelled'
    slot_generation: int = 0  # Bumped whenever candidate slots are superseded
    selected_slot: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CandidateSlot(BaseModel):
    """Scored meeting window proposed for a request"""
    id: Optional[str] = None
    meeting_request_id: Optional[str] = None
    generation: int = 0
    start_time: datetime
    end_time: datetime
    score: float
    confidence: float
    conflicting_participants: List[str] = Field(default_factory=list)
    tentative_participants: List[str] = Field(default_factory=list)
    unknown_participants: List[str] = Field(default_factory=list)
    reasoning: str = ""
    optimal_factors: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class CalendarEventRepository(ABC):
    """Abstract repository for calendar event operations"""

    @abstractmethod
    async def get_events_for_user(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        include_cancelled: bool = False
    ) -> List[CalendarEvent]:
        """Get events overlapping [start, end) ordered by start"""
        pass

    @abstractmethod
    async def get_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        """Get event by ID"""
        pass

    @abstractmethod
    async def create_event(self, event: CalendarEvent) -> str:
        """Insert an event and return its ID (uses event.id when set)"""
        pass

    @abstractmethod
    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[CalendarEvent]:
        """Update mutable fields of an event"""
        pass

    @abstractmethod
    async def find_by_external_id(
        self,
        user_id: str,
        external_source: str,
        external_id: str
    ) -> Optional[CalendarEvent]:
        """Get the event mirrored from/to a provider event"""
        pass

    @abstractmethod
    async def upsert_external_event(
        self,
        user_id: str,
        external_source: str,
        external_id: str,
        fields: Dict[str, Any],
        connection_id: Optional[str] = None
    ) -> Tuple[CalendarEvent, bool]:
        """Insert or update by (user, external source, external id); returns (event, created)"""
        pass

    @abstractmethod
    async def get_unexported_events(self, user_id: str) -> List[CalendarEvent]:
        """Get local events that have never been mirrored to a provider"""
        pass

    @abstractmethod
    async def set_external_id(self, event_id: str, external_source: str, external_id: str) -> bool:
        """Record the provider ID assigned to an exported event"""
        pass


class MeetingRequestRepository(ABC):
    """Abstract repository for meeting request operations"""

    @abstractmethod
    async def create_request(self, request: MeetingRequest) -> MeetingRequest:
        """Create a new meeting request"""
        pass

    @abstractmethod
    async def get_by_id(self, request_id: str) -> Optional[MeetingRequest]:
        """Get meeting request by ID"""
        pass

    @abstractmethod
    async def get_by_organizer(
        self,
        organizer_id: str,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[MeetingRequest]:
        """Get meeting requests by organizer, newest first"""
        pass

    @abstractmethod
    async def count_by_organizer(self, organizer_id: str, status: Optional[str] = None) -> int:
        """Count meeting requests for an organizer"""
        pass

    @abstractmethod
    async def update_status(
        self,
        request_id: str,
        expected_status: str,
        new_status: str,
        payload: Optional[Dict[str, Any]] = None,
        expected_generation: Optional[int] = None
    ) -> bool:
        """Transition status only if it still equals expected_status"""
        pass

    @abstractmethod
    async def supersede(
        self,
        request_id: str,
        expected_generation: int,
        fields: Dict[str, Any]
    ) -> Optional[MeetingRequest]:
        """Apply edits to a pending request and bump its slot generation"""
        pass


class CandidateSlotRepository(ABC):
    """Abstract repository for persisted candidate slots"""

    @abstractmethod
    async def replace_slots(
        self,
        request_id: str,
        generation: int,
        slots: List[CandidateSlot]
    ) -> List[CandidateSlot]:
        """Drop slots of older generations and store the given ones"""
        pass

    @abstractmethod
    async def get_slot(self, request_id: str, slot_id: str) -> Optional[CandidateSlot]:
        """Get a slot that belongs to the request"""
        pass

    @abstractmethod
    async def get_slots(self, request_id: str, generation: int) -> List[CandidateSlot]:
        """Get the slots of one generation ordered by rank"""
        pass


class CalendarConnectionRepository(ABC):
    """Abstract repository for external calendar connections"""

    @abstractmethod
    async def create_connection(self, connection: CalendarConnection) -> CalendarConnection:
        """Save or replace the connection for (user, provider, calendar)"""
        pass

    @abstractmethod
    async def get_by_user(self, user_id: str, active_only: bool = False) -> List[CalendarConnection]:
        """Get connections for a user"""
        pass

    @abstractmethod
    async def mark_synced(self, connection_id: str, synced_at: datetime) -> None:
        """Record a successful sync pass"""
        pass

    @abstractmethod
    async def mark_sync_error(self, connection_id: str, message: str) -> None:
        """Record a failed sync pass without touching last_sync_at"""
        pass

    @abstractmethod
    async def deactivate(self, connection_id: str, user_id: str) -> bool:
        """Disable a connection owned by the user"""
        pass


class NotificationRepository(ABC):
    """Abstract repository for queued user notifications"""

    @abstractmethod
    async def queue_notification(
        self,
        user_id: str,
        notification_type: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> str:
        """Queue a notification for delivery"""
        pass
