"""
Availability model

Builds the ordered, non-overlapping busy intervals of a participant from their
calendar events. Confirmed and tentative events are both busy; where they
overlap the confirmed interval wins so a span is never reported twice.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from core.interfaces.repositories import CalendarEvent, CalendarEventRepository, UserRepository
from core.scheduling.models import BusyInterval
from utils.logger import logger


def merge_intervals(intervals: Iterable[BusyInterval]) -> List[BusyInterval]:
    """Union intervals that overlap or touch; all inputs share one tentative flag"""
    merged: List[BusyInterval] = []
    for interval in sorted(intervals, key=lambda i: (i.start, i.end)):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            if interval.end > last.end:
                merged[-1] = BusyInterval(
                    start=last.start,
                    end=interval.end,
                    source_id=last.source_id,
                    tentative=last.tentative
                )
        else:
            merged.append(interval)
    return merged


def subtract_intervals(
    intervals: List[BusyInterval],
    blockers: List[BusyInterval]
) -> List[BusyInterval]:
    """Remove the spans covered by blockers; both lists sorted and merged"""
    result: List[BusyInterval] = []
    for interval in intervals:
        cursor = interval.start
        for blocker in blockers:
            if blocker.end <= cursor:
                continue
            if blocker.start >= interval.end:
                break
            if blocker.start > cursor:
                result.append(BusyInterval(cursor, blocker.start, interval.source_id, interval.tentative))
            cursor = max(cursor, blocker.end)
            if cursor >= interval.end:
                break
        if cursor < interval.end:
            result.append(BusyInterval(cursor, interval.end, interval.source_id, interval.tentative))
    return result


class AvailabilityModel:
    """Busy intervals of a single participant"""

    def __init__(self, intervals: Iterable[BusyInterval] = ()):
        intervals = list(intervals)
        confirmed = merge_intervals(i for i in intervals if not i.tentative)
        tentative = merge_intervals(i for i in intervals if i.tentative)
        combined = confirmed + subtract_intervals(tentative, confirmed)
        self._intervals = sorted(combined, key=lambda i: i.start)

    @classmethod
    def from_events(cls, events: Iterable[CalendarEvent]) -> "AvailabilityModel":
        """Build from calendar events, ignoring cancelled ones"""
        intervals = []
        for event in events:
            if event.status == "cancelled":
                continue
            if event.start >= event.end:
                logger.warning(f"Skipping calendar event {event.id} with non-positive duration")
                continue
            intervals.append(BusyInterval(
                start=event.start,
                end=event.end,
                source_id=event.id,
                tentative=event.status == "tentative"
            ))
        return cls(intervals)

    def busy_intervals(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[BusyInterval]:
        """Ordered busy intervals, clipped to [start, end) when given"""
        if start is None and end is None:
            return list(self._intervals)

        clipped = []
        for interval in self._intervals:
            if end is not None and interval.start >= end:
                break
            if start is not None and interval.end <= start:
                continue
            clip_start = max(interval.start, start) if start is not None else interval.start
            clip_end = min(interval.end, end) if end is not None else interval.end
            clipped.append(BusyInterval(clip_start, clip_end, interval.source_id, interval.tentative))
        return clipped

    def __len__(self) -> int:
        return len(self._intervals)


class AvailabilityService:
    """Loads availability for organizers and participants from persistence"""

    def __init__(self, event_repo: CalendarEventRepository, user_repo: UserRepository):
        self.event_repo = event_repo
        self.user_repo = user_repo

    async def load_user(self, user_id: str, start: datetime, end: datetime) -> AvailabilityModel:
        """Availability of a registered user over [start, end)"""
        events = await self.event_repo.get_events_for_user(user_id, start, end)
        return AvailabilityModel.from_events(events)

    async def load_participants(
        self,
        organizer_id: str,
        participants: List[str],
        start: datetime,
        end: datetime
    ) -> Dict[str, Optional[AvailabilityModel]]:
        """
        Availability keyed by participant email.

        Unregistered participants map to None (unknown availability). The
        organizer listed as a participant is left out; their calendar is
        checked separately.
        """
        users = await self.user_repo.get_by_emails(participants)
        availability: Dict[str, Optional[AvailabilityModel]] = {}

        for email in participants:
            user = users.get(email.lower())
            if user is None:
                availability[email] = None
                continue
            if user.id == organizer_id:
                continue
            availability[email] = await self.load_user(user.id, start, end)

        known = sum(1 for model in availability.values() if model is not None)
        logger.debug(f"Loaded availability for {known}/{len(availability)} participants")
        return availability

    async def load(
        self,
        organizer_id: str,
        participants: List[str],
        start: datetime,
        end: datetime
    ) -> Tuple[AvailabilityModel, Dict[str, Optional[AvailabilityModel]]]:
        """Organizer availability plus per-participant availability"""
        organizer = await self.load_user(organizer_id, start, end)
        return organizer, await self.load_participants(organizer_id, participants, start, end)
