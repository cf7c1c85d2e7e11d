"""
Slot generator

Enumerates candidate meeting windows inside a date range. Days are walked in
the meeting's timezone; windows are returned in UTC.
"""
from datetime import datetime, timedelta
from typing import Iterator, Optional

import pytz

from config import settings
from core.scheduling.models import (
    DateRange,
    MeetingPreferences,
    SlotConstraints,
    TimeWindow,
    WEEKEND_DAYS,
    api_weekday,
    parse_clock,
)


def build_constraints(
    preferences: MeetingPreferences,
    priority: str = "medium",
    granularity_minutes: Optional[int] = None,
    max_candidates: Optional[int] = None
) -> SlotConstraints:
    """Derive generator constraints from request preferences"""
    if preferences.preferred_times:
        work_start, work_end = preferences.preferred_times[0].bounds()
    else:
        work_start = parse_clock(settings.default_work_start)
        work_end = parse_clock(settings.default_work_end)

    return SlotConstraints(
        timezone=preferences.timezone or settings.default_timezone,
        work_start=work_start,
        work_end=work_end,
        granularity_minutes=granularity_minutes or settings.slot_granularity_minutes,
        max_candidates=max_candidates or settings.max_candidate_windows,
        allow_weekends=preferences.allow_weekends or priority == "urgent",
        preferred_days=frozenset(preferences.preferred_days),
    )


class CandidateWindows:
    """
    Lazy, restartable sequence of candidate windows.

    Every call to iter() walks the range again from the first day, so callers
    may stop early or iterate more than once.
    """

    def __init__(self, date_range: DateRange, duration_minutes: int, constraints: SlotConstraints):
        self.date_range = date_range
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=constraints.granularity_minutes)
        self.constraints = constraints
        self.tz = pytz.timezone(constraints.timezone)

    def __iter__(self) -> Iterator[TimeWindow]:
        return self._walk()

    def _day_allowed(self, day) -> bool:
        weekday = api_weekday(day)
        if weekday not in WEEKEND_DAYS:
            return True
        return self.constraints.allow_weekends or weekday in self.constraints.preferred_days

    def _day_bounds(self, day):
        start = self.tz.localize(datetime.combine(day, self.constraints.work_start))
        end = self.tz.localize(datetime.combine(day, self.constraints.work_end))
        return start.astimezone(pytz.UTC), end.astimezone(pytz.UTC)

    def _walk(self) -> Iterator[TimeWindow]:
        range_start = self.date_range.start
        range_end = self.date_range.end
        day = range_start.astimezone(self.tz).date()
        last_day = range_end.astimezone(self.tz).date()
        produced = 0

        if self.constraints.max_candidates <= 0 or self.step <= timedelta(0):
            return

        while day <= last_day:
            if self._day_allowed(day):
                window_start, window_end = self._day_bounds(day)
                cursor = window_start
                while cursor + self.duration <= window_end:
                    if cursor >= range_start and cursor + self.duration <= range_end:
                        yield TimeWindow(start=cursor, end=cursor + self.duration)
                        produced += 1
                        if produced >= self.constraints.max_candidates:
                            return
                    cursor += self.step
            day += timedelta(days=1)


class SlotGenerator:
    """Produces candidate windows for a meeting"""

    def generate(
        self,
        date_range: DateRange,
        duration_minutes: int,
        constraints: SlotConstraints
    ) -> CandidateWindows:
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        return CandidateWindows(date_range, duration_minutes, constraints)
