from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from core.interfaces.repositories import CandidateSlot, MeetingRequest
from core.scheduling.models import MeetingPreferences


class UpdateMeetingRequest(BaseModel):
    """Partial edit of a pending meeting request"""
    title: Optional[str] = None
    participants: Optional[List[str]] = None
    duration_minutes: Optional[int] = None
    meeting_type: Optional[str] = None
    priority: Optional[str] = None
    location_type: Optional[str] = None
    location_details: Optional[str] = None
    agenda: Optional[str] = None
    preparation_minutes: Optional[int] = None
    buffer_minutes: Optional[int] = None
    preferences: Optional[MeetingPreferences] = None
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None


class ConfirmMeetingRequest(BaseModel):
    """Select one suggested slot"""
    slot_id: str
    custom_message: Optional[str] = None


class SlotResponse(BaseModel):
    """Suggested time slot"""
    id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    score: float
    confidence: float
    reasoning: str
    conflicts: List[str] = Field(default_factory=list)
    tentative_participants: List[str] = Field(default_factory=list)
    unknown_participants: List[str] = Field(default_factory=list)
    optimal_factors: List[str] = Field(default_factory=list)

    @classmethod
    def from_slot(cls, slot: CandidateSlot) -> "SlotResponse":
        return cls(
            id=slot.id,
            start_time=slot.start_time,
            end_time=slot.end_time,
            score=slot.score,
            confidence=slot.confidence,
            reasoning=slot.reasoning,
            conflicts=slot.conflicting_participants,
            tentative_participants=slot.tentative_participants,
            unknown_participants=slot.unknown_participants,
            optimal_factors=slot.optimal_factors
        )


class AlternativeOptions(BaseModel):
    """Hints returned when no slot could be found"""
    extend_date_range: bool
    consider_weekends: bool
    shorten_duration: bool


class SchedulingResponse(BaseModel):
    """Result of creating, editing or previewing a meeting request"""
    meeting_request_id: Optional[str] = None
    status: str
    suggested_slots: List[SlotResponse]
    alternative_options: Optional[AlternativeOptions] = None
    analysis: Dict[str, Any] = Field(default_factory=dict)
    participant_feedback: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class MeetingRequestResponse(BaseModel):
    """Meeting request with its current slots"""
    id: str
    title: str
    participants: List[str]
    duration_minutes: int
    meeting_type: str
    priority: str
    location_type: str
    location_details: Optional[str] = None
    agenda: Optional[str] = None
    preparation_minutes: int
    buffer_minutes: int
    preferences: MeetingPreferences
    range_start: datetime
    range_end: datetime
    status: str
    selected_slot: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    slots: List[SlotResponse] = Field(default_factory=list)

    @classmethod
    def from_request(cls, request: MeetingRequest, slots: Optional[List[CandidateSlot]] = None) -> "MeetingRequestResponse":
        return cls(
            **request.model_dump(exclude={"organizer_id", "slot_generation"}),
            slots=[SlotResponse.from_slot(slot) for slot in slots or []]
        )


class MeetingListResponse(BaseModel):
    """Paginated meeting requests"""
    meetings: List[MeetingRequestResponse]
    total: int


class ConfirmedMeeting(BaseModel):
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    participants: List[str]
    location: Optional[str] = None
    agenda: Optional[str] = None


class ConfirmedCalendarEvent(BaseModel):
    id: str
    formatted: str


class ConfirmMeetingResponse(BaseModel):
    """Outcome of confirming a slot"""
    message: str
    event_id: str
    meeting: ConfirmedMeeting
    calendar_event: ConfirmedCalendarEvent
