"""
Slot scoring and ranking

Scores are deterministic: identical inputs always produce identical scores,
rationale and ordering.
"""
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List, Optional, Sequence

import pytz

from core.interfaces.repositories import CandidateSlot
from core.scheduling.conflict_detector import IntervalIndex
from core.scheduling.models import ConflictResult, DateRange, TimeWindow, api_weekday

BASE_SCORE = 50.0
MAX_SCORE = 100.0
MIN_SCORE = 0.0

NO_CONFLICT_BONUS = 15
PREFERRED_TIME_BONUS = 10
PREFERRED_DAY_BONUS = 10
BUFFER_BONUS = 10
BUFFER_PENALTY = 5
EARLINESS_BONUS = 5
MEETING_TYPE_BONUS = 5
URGENT_OVERRIDE_BONUS = 10
REQUIRED_CONFLICT_PENALTY = 40
OPTIONAL_CONFLICT_PENALTY = 15
TENTATIVE_PENALTY = 5
AVOID_TIME_PENALTY = 20
AVOID_DAY_PENALTY = 20
UNKNOWN_PENALTY = 2

DEFAULT_REASONING = "Good availability for all participants"


@dataclass
class ScoringContext:
    """Inputs shared by every window of one request"""
    date_range: DateRange
    participant_count: int
    organizer_busy: IntervalIndex = field(default_factory=lambda: IntervalIndex([]))


def _meeting_type_fit(meeting_type: str, local_start: datetime) -> Optional[str]:
    hour = local_start.hour
    if meeting_type == "standup" and hour == 9 and local_start.minute == 0:
        return "Good time for a standup"
    if meeting_type == "presentation" and 10 <= hour < 15:
        return "Good time for presentations"
    if meeting_type == "interview" and 10 <= hour < 16:
        return "Professional interview hours"
    return None


def _clock_span(local_start: datetime, local_end: datetime):
    """Wall-clock start/end of a window; a window running past midnight ends at time.max"""
    end_clock = local_end.time() if local_end.date() == local_start.date() else time.max
    return local_start.time(), end_clock


def _clock_contains(local_start: datetime, local_end: datetime, bounds) -> bool:
    start_clock, end_clock = _clock_span(local_start, local_end)
    return bounds[0] <= start_clock and end_clock <= bounds[1]


def _clock_overlap(local_start: datetime, local_end: datetime, bounds) -> bool:
    start_clock, end_clock = _clock_span(local_start, local_end)
    return start_clock < bounds[1] and end_clock > bounds[0]


class SlotScorer:
    """Turns candidate windows into scored CandidateSlots"""

    def score(self, window: TimeWindow, request, conflicts: ConflictResult, context: ScoringContext) -> CandidateSlot:
        preferences = request.preferences
        tz = pytz.timezone(preferences.timezone)
        local_start = window.start.astimezone(tz)
        local_end = window.end.astimezone(tz)
        weekday = api_weekday(local_start.date())

        score = BASE_SCORE
        factors: List[str] = []
        concerns: List[str] = []

        if not conflicts.has_conflict and not conflicts.tentative_participants:
            score += NO_CONFLICT_BONUS
            factors.append("No conflicts")

        if any(_clock_contains(local_start, local_end, w.bounds()) for w in preferences.preferred_times):
            score += PREFERRED_TIME_BONUS
            factors.append("Within preferred hours")

        if weekday in preferences.preferred_days:
            score += PREFERRED_DAY_BONUS
            factors.append("Preferred day")

        if self._buffer_respected(window, request, context):
            score += BUFFER_BONUS
            factors.append("Buffer respected")
        else:
            score -= BUFFER_PENALTY
            concerns.append("Tight buffer around adjacent events")

        earliness = self._earliness(window, context.date_range)
        if earliness > 0:
            score += earliness
            if earliness >= EARLINESS_BONUS / 2:
                factors.append("Early in range")

        type_fit = _meeting_type_fit(request.meeting_type, local_start)
        if type_fit:
            score += MEETING_TYPE_BONUS
            factors.append(type_fit)

        if conflicts.conflicting_participants:
            penalty = REQUIRED_CONFLICT_PENALTY if preferences.require_all_participants else OPTIONAL_CONFLICT_PENALTY
            score -= penalty * len(conflicts.conflicting_participants)
            concerns.append(f"Conflicts for {', '.join(conflicts.conflicting_participants)}")
            if request.priority == "urgent":
                score += URGENT_OVERRIDE_BONUS
                factors.append("Urgent priority override")

        if conflicts.tentative_participants:
            score -= TENTATIVE_PENALTY * len(conflicts.tentative_participants)
            concerns.append(f"Tentative for {', '.join(conflicts.tentative_participants)}")

        if any(_clock_overlap(local_start, local_end, w.bounds()) for w in preferences.avoid_times):
            score -= AVOID_TIME_PENALTY
            concerns.append("Inside an avoided time window")

        if weekday in preferences.avoid_days:
            score -= AVOID_DAY_PENALTY
            concerns.append("On an avoided day")

        if conflicts.unknown_participants:
            score -= UNKNOWN_PENALTY * len(conflicts.unknown_participants)
            concerns.append(f"Unknown availability for {', '.join(conflicts.unknown_participants)}")

        score = round(min(MAX_SCORE, max(MIN_SCORE, score)), 2)

        return CandidateSlot(
            start_time=window.start,
            end_time=window.end,
            score=score,
            confidence=self._confidence(conflicts, context.participant_count),
            conflicting_participants=list(conflicts.conflicting_participants),
            tentative_participants=list(conflicts.tentative_participants),
            unknown_participants=list(conflicts.unknown_participants),
            reasoning="; ".join(concerns) if concerns else DEFAULT_REASONING,
            optimal_factors=factors,
        )

    def rank(self, slots: Sequence[CandidateSlot], limit: Optional[int] = None) -> List[CandidateSlot]:
        """Highest score first, earliest start on ties"""
        ordered = sorted(slots, key=lambda slot: (-slot.score, slot.start_time))
        return ordered[:limit] if limit is not None else ordered

    def _buffer_respected(self, window: TimeWindow, request, context: ScoringContext) -> bool:
        before = timedelta(minutes=request.buffer_minutes + request.preparation_minutes)
        after = timedelta(minutes=request.buffer_minutes)
        if not before and not after:
            return True
        return not context.organizer_busy.overlapping(window.start - before, window.end + after)

    def _earliness(self, window: TimeWindow, date_range: DateRange) -> float:
        span = (date_range.end - date_range.start).total_seconds()
        offset = (window.start - date_range.start).total_seconds()
        if span <= 0:
            return 0.0
        fraction = min(1.0, max(0.0, offset / span))
        return round(EARLINESS_BONUS * (1.0 - fraction), 2)

    def _confidence(self, conflicts: ConflictResult, participant_count: int) -> float:
        if participant_count <= 0:
            return 1.0
        not_free = (
            len(conflicts.conflicting_participants)
            + len(conflicts.tentative_participants)
            + len(conflicts.unknown_participants)
        )
        free = max(0, participant_count - not_free)
        value = (free + 0.5 * len(conflicts.tentative_participants)) / participant_count
        return round(min(1.0, max(0.0, value)), 3)
