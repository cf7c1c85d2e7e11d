from conftest import ORGANIZER_ID, at
from core.interfaces.repositories import MeetingRequest
from core.scheduling.conflict_detector import IntervalIndex
from core.scheduling.models import BusyInterval, ConflictResult, DateRange, MeetingPreferences, TimeWindow
from core.scheduling.slot_scorer import DEFAULT_REASONING, ScoringContext, SlotScorer

RANGE = DateRange(start=at(20, 9), end=at(21, 9))
FIRST_WINDOW = TimeWindow(at(20, 9), at(20, 10))


def make_request(**overrides):
    values = dict(
        organizer_id=ORGANIZER_ID,
        title="Planning",
        participants=["bob@example.com"],
        duration_minutes=60,
        range_start=RANGE.start,
        range_end=RANGE.end,
    )
    values.update(overrides)
    return MeetingRequest(**values)


def context(participant_count=1, organizer_busy=()):
    return ScoringContext(
        date_range=RANGE,
        participant_count=participant_count,
        organizer_busy=IntervalIndex(list(organizer_busy))
    )


def test_free_early_slot_scores_all_bonuses():
    slot = SlotScorer().score(FIRST_WINDOW, make_request(), ConflictResult(), context())

    assert slot.score == 80.0
    assert slot.confidence == 1.0
    assert slot.reasoning == DEFAULT_REASONING
    assert slot.optimal_factors == ["No conflicts", "Buffer respected", "Early in range"]


def test_required_participant_conflict_is_heavily_penalized():
    conflicts = ConflictResult(has_conflict=True, conflicting_participants=["bob@example.com"])

    slot = SlotScorer().score(FIRST_WINDOW, make_request(), conflicts, context())

    assert slot.score == 25.0
    assert slot.confidence == 0.0
    assert slot.conflicting_participants == ["bob@example.com"]
    assert "Conflicts for bob@example.com" in slot.reasoning
    assert "No conflicts" not in slot.optimal_factors


def test_optional_participant_conflict_costs_less():
    request = make_request(preferences=MeetingPreferences(require_all_participants=False))
    conflicts = ConflictResult(has_conflict=True, conflicting_participants=["bob@example.com"])

    assert SlotScorer().score(FIRST_WINDOW, request, conflicts, context()).score == 50.0


def test_urgent_priority_softens_conflicts():
    conflicts = ConflictResult(has_conflict=True, conflicting_participants=["bob@example.com"])
    slot = SlotScorer().score(FIRST_WINDOW, make_request(priority="urgent"), conflicts, context())

    assert slot.score == 35.0
    assert "Urgent priority override" in slot.optimal_factors


def test_tentative_and_unknown_participants():
    scorer = SlotScorer()
    tentative = scorer.score(
        FIRST_WINDOW, make_request(), ConflictResult(tentative_participants=["bob@example.com"]), context()
    )
    unknown = scorer.score(
        FIRST_WINDOW,
        make_request(participants=["bob@example.com", "guest@elsewhere.org"]),
        ConflictResult(unknown_participants=["guest@elsewhere.org"]),
        context(participant_count=2)
    )

    assert tentative.score == 60.0
    assert tentative.confidence == 0.5
    assert unknown.score == 78.0
    assert unknown.confidence == 0.5
    assert "Unknown availability for guest@elsewhere.org" in unknown.reasoning


def test_adjacent_organizer_event_breaks_buffer():
    organizer_busy = [BusyInterval(at(20, 8, 50), at(20, 9))]

    slot = SlotScorer().score(FIRST_WINDOW, make_request(), ConflictResult(), context(organizer_busy=organizer_busy))

    assert slot.score == 65.0
    assert "Tight buffer around adjacent events" in slot.reasoning


def test_preferences_and_meeting_type_fit():
    preferences = MeetingPreferences(
        preferred_times=[{"start": "09:00", "end": "12:00"}],
        preferred_days=[2],
        avoid_times=[{"start": "09:30", "end": "10:30"}]
    )
    slot = SlotScorer().score(
        FIRST_WINDOW, make_request(meeting_type="standup", preferences=preferences), ConflictResult(), context()
    )

    # 50 + 15 + 10 + 10 + 10 + 5 + 5 - 20
    assert slot.score == 85.0
    assert "Within preferred hours" in slot.optimal_factors
    assert "Preferred day" in slot.optimal_factors
    assert "Good time for a standup" in slot.optimal_factors
    assert slot.reasoning == "Inside an avoided time window"


def test_avoided_day_is_penalized():
    request = make_request(preferences=MeetingPreferences(avoid_days=[2]))

    slot = SlotScorer().score(FIRST_WINDOW, request, ConflictResult(), context())

    assert slot.score == 60.0
    assert "On an avoided day" in slot.reasoning


def test_scores_are_clamped():
    conflicts = ConflictResult(
        has_conflict=True, conflicting_participants=["a@example.com", "b@example.com", "c@example.com"]
    )
    slot = SlotScorer().score(
        FIRST_WINDOW, make_request(participants=["a@example.com", "b@example.com", "c@example.com"]), conflicts,
        context(participant_count=3)
    )

    assert slot.score == 0.0


def test_scoring_is_deterministic():
    scorer = SlotScorer()
    window = TimeWindow(at(20, 14), at(20, 15))
    first = scorer.score(window, make_request(), ConflictResult(), context())
    second = scorer.score(window, make_request(), ConflictResult(), context())

    assert first == second


def test_rank_orders_by_score_then_start():
    scorer = SlotScorer()
    request = make_request()
    flat = context()
    flat.date_range = DateRange(start=at(20, 9), end=at(20, 12))
    late = scorer.score(TimeWindow(at(20, 11), at(20, 12)), request, ConflictResult(), flat)
    early = scorer.score(TimeWindow(at(20, 9), at(20, 10)), request, ConflictResult(), flat)
    tied = early.model_copy(update={"start_time": at(20, 9, 30)})

    ranked = scorer.rank([late, tied, early])

    assert ranked == [early, tied, late]
    assert scorer.rank([late, tied, early], limit=1) == [early]
