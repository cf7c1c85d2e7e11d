"""Value types shared by the scheduling pipeline."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import FrozenSet, List, Optional

import pytz
from pydantic import BaseModel, Field


MEETING_TYPES = ("one_on_one", "team", "interview", "presentation", "workshop", "standup")
PRIORITIES = ("low", "medium", "high", "urgent")
LOCATION_TYPES = ("in_person", "video_call", "phone", "hybrid")

STATUS_PENDING = "pending"
STATUS_SCHEDULED = "scheduled"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = (STATUS_SCHEDULED, STATUS_CANCELLED)

# Weekdays use 0 = Sunday ... 6 = Saturday in requests and responses
SATURDAY = 6
SUNDAY = 0
WEEKEND_DAYS = (SATURDAY, SUNDAY)


def api_weekday(day: date) -> int:
    """Convert a date to the 0 = Sunday weekday numbering"""
    return (day.weekday() + 1) % 7


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC"""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def parse_clock(value: str) -> time:
    """Parse "HH:MM" into a time; raises ValueError on bad input"""
    parts = value.split(":") if isinstance(value, str) else []
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"expected HH:MM, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"out of range time {value!r}")
    return time(hour, minute)


@dataclass(frozen=True)
class BusyInterval:
    """An occupied span on one participant's calendar"""
    start: datetime
    end: datetime
    source_id: Optional[str] = None
    tentative: bool = False

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"BusyInterval start {self.start} must be before end {self.end}")


@dataclass(frozen=True)
class TimeWindow:
    """A half-open [start, end) candidate meeting window"""
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class DateRange:
    """The span of time a meeting may be scheduled in"""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError("date range end must be after start")


@dataclass(frozen=True)
class SlotConstraints:
    """Per-request knobs for the slot generator"""
    timezone: str
    work_start: time
    work_end: time
    granularity_minutes: int = 60
    max_candidates: int = 40
    allow_weekends: bool = False
    preferred_days: FrozenSet[int] = frozenset()


@dataclass
class ConflictResult:
    """Per-window aggregate of participant availability"""
    has_conflict: bool = False
    conflicting_participants: List[str] = field(default_factory=list)
    tentative_participants: List[str] = field(default_factory=list)
    unknown_participants: List[str] = field(default_factory=list)


class TimeOfDayWindow(BaseModel):
    """Clock window such as {"start": "09:00", "end": "12:00"}"""
    start: str
    end: str

    def bounds(self) -> tuple:
        return parse_clock(self.start), parse_clock(self.end)


class MeetingPreferences(BaseModel):
    """Structured scheduling preferences supplied by the organizer"""
    preferred_times: List[TimeOfDayWindow] = Field(default_factory=list)
    avoid_times: List[TimeOfDayWindow] = Field(default_factory=list)
    preferred_days: List[int] = Field(default_factory=list)  # 0 = Sunday
    avoid_days: List[int] = Field(default_factory=list)
    timezone: str = "UTC"
    require_all_participants: bool = True
    allow_weekends: bool = False


class MeetingDraft(BaseModel):
    """Organizer input for a new or edited meeting request"""
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
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
