"""
Conflict detection between candidate windows and participant calendars.

Intervals are half-open: a meeting ending at 11:00 does not conflict with one
starting at 11:00.
"""
from bisect import bisect_left
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from core.scheduling.availability import AvailabilityModel
from core.scheduling.models import BusyInterval, ConflictResult, TimeWindow


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


class IntervalIndex:
    """Sorted, non-overlapping busy intervals with bisect lookup"""

    def __init__(self, intervals: Sequence[BusyInterval]):
        self.intervals = sorted(intervals, key=lambda i: i.start)
        self.ends = [interval.end for interval in self.intervals]

    def overlapping(self, start: datetime, end: datetime) -> List[BusyInterval]:
        # Ends ascend with starts because intervals never overlap
        index = bisect_left(self.ends, start)
        if index < len(self.ends) and self.ends[index] == start:
            index += 1
        found = []
        while index < len(self.intervals) and self.intervals[index].start < end:
            interval = self.intervals[index]
            if overlaps(start, end, interval.start, interval.end):
                found.append(interval)
            index += 1
        return found


class ConflictDetector:
    """Checks candidate windows against every participant's busy intervals"""

    def __init__(self, participant_availability: Mapping[str, Optional[AvailabilityModel]]):
        self.indexes: Dict[str, Optional[IntervalIndex]] = {}
        for participant, model in participant_availability.items():
            self.indexes[participant] = IntervalIndex(model.busy_intervals()) if model is not None else None

    def detect(self, window: TimeWindow) -> ConflictResult:
        result = ConflictResult()
        for participant, index in self.indexes.items():
            if index is None:
                result.unknown_participants.append(participant)
                continue

            hits = index.overlapping(window.start, window.end)
            if not hits:
                continue
            if any(not hit.tentative for hit in hits):
                result.conflicting_participants.append(participant)
            else:
                result.tentative_participants.append(participant)

        result.has_conflict = bool(result.conflicting_participants)
        return result

    def is_free(self, participant: str, window: TimeWindow) -> bool:
        """True when the participant is known and has nothing in the window"""
        index = self.indexes.get(participant)
        return index is not None and not index.overlapping(window.start, window.end)
