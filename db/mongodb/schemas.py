from pydantic import BaseModel, Field
from pydantic_core import core_schema
from typing import List, Optional, Dict, Any
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId
import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def to_object_id(value: str) -> Optional[ObjectId]:
    """ObjectId for a string id, or None when it is not a valid id"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class PyObjectId(ObjectId):
    """Custom ObjectId for Pydantic models"""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        return core_schema.union_schema([
            core_schema.is_instance_schema(ObjectId),
            core_schema.no_info_plain_validator_function(cls.validate),
        ])

    @classmethod
    def validate(cls, v):
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError("Invalid ObjectId")

    @classmethod
    def __get_pydantic_json_schema__(cls, core_schema, handler):
        return {"type": "string"}


class MongoDocument(BaseModel):
    """Base for collection documents; user ids are opaque strings from X-User-Id"""
    id: Optional[PyObjectId] = Field(default_factory=PyObjectId, alias="_id")

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True


class UserDocument(MongoDocument):
    """MongoDB document schema for users collection"""
    email: str  # Stored lowercased
    name: str
    timezone: str = "UTC"
    created_at: datetime = Field(default_factory=utcnow)


class CalendarEventDocument(MongoDocument):
    """MongoDB document schema for calendar_events collection"""
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
    external_source: Optional[str] = None
    connection_id: Optional[str] = None
    meeting_request_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MeetingRequestDocument(MongoDocument):
    """MongoDB document schema for meeting_requests collection"""
    organizer_id: str
    title: str
    participants: List[str]
    duration_minutes: int
    meeting_type: str
    priority: str
    location_type: str
    location_details: Optional[str] = None
    agenda: Optional[str] = None
    preparation_minutes: int = 0
    buffer_minutes: int = 15
    preferences: Dict[str, Any] = Field(default_factory=dict)
    range_start: datetime
    range_end: datetime
    status: str = "pending"  # 'pending', 'scheduled', 'cancelled'
    slot_generation: int = 0
    selected_slot: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CandidateSlotDocument(MongoDocument):
    """MongoDB document schema for meeting_slots collection"""
    meeting_request_id: str
    generation: int
    rank: int
    start_time: datetime
    end_time: datetime
    score: float
    confidence: float
    conflicting_participants: List[str] = Field(default_factory=list)
    tentative_participants: List[str] = Field(default_factory=list)
    unknown_participants: List[str] = Field(default_factory=list)
    reasoning: str = ""
    optimal_factors: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class CalendarConnectionDocument(MongoDocument):
    """MongoDB document schema for calendar_connections collection"""
    user_id: str
    provider: str  # 'google', 'outlook'
    provider_calendar_id: str = "primary"
    calendar_name: Optional[str] = None
    access_token: str
    is_active: bool = True
    sync_settings: Dict[str, Any] = Field(default_factory=dict)
    last_sync_at: Optional[datetime] = None
    sync_status: str = "active"  # 'active', 'error'
    sync_error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class NotificationDocument(MongoDocument):
    """MongoDB document schema for notifications collection"""
    user_id: str
    type: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)
