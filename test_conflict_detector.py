from conftest import at
from core.scheduling.availability import AvailabilityModel
from core.scheduling.conflict_detector import ConflictDetector, IntervalIndex, overlaps
from core.scheduling.models import BusyInterval, TimeWindow


def busy(start, end, tentative=False):
    return BusyInterval(start=start, end=end, tentative=tentative)


def test_touching_intervals_do_not_overlap():
    assert not overlaps(at(20, 10), at(20, 11), at(20, 11), at(20, 12))
    assert not overlaps(at(20, 11), at(20, 12), at(20, 10), at(20, 11))
    assert overlaps(at(20, 10), at(20, 11, 1), at(20, 11), at(20, 12))


def test_interval_index_finds_only_overlapping_intervals():
    index = IntervalIndex([
        busy(at(20, 9), at(20, 10)),
        busy(at(20, 11), at(20, 12)),
        busy(at(20, 14), at(20, 16)),
    ])

    assert index.overlapping(at(20, 10), at(20, 11)) == []
    assert [i.start for i in index.overlapping(at(20, 11, 30), at(20, 15))] == [at(20, 11), at(20, 14)]
    assert index.overlapping(at(20, 16), at(20, 17)) == []


def test_partial_overlap_is_a_conflict():
    bob = AvailabilityModel([busy(at(20, 14), at(20, 14, 30))])
    detector = ConflictDetector({"bob@example.com": bob})

    result = detector.detect(TimeWindow(at(20, 14, 15), at(20, 14, 45)))

    assert result.has_conflict
    assert result.conflicting_participants == ["bob@example.com"]
    assert not detector.is_free("bob@example.com", TimeWindow(at(20, 14, 15), at(20, 14, 45)))


def test_back_to_back_meetings_are_free():
    bob = AvailabilityModel([busy(at(20, 10), at(20, 11))])
    detector = ConflictDetector({"bob@example.com": bob})

    result = detector.detect(TimeWindow(at(20, 11), at(20, 12)))

    assert not result.has_conflict
    assert detector.is_free("bob@example.com", TimeWindow(at(20, 11), at(20, 12)))


def test_tentative_only_overlap_is_reported_separately():
    carol = AvailabilityModel([busy(at(20, 10), at(20, 11), tentative=True)])
    detector = ConflictDetector({"carol@example.com": carol})

    result = detector.detect(TimeWindow(at(20, 10), at(20, 11)))

    assert not result.has_conflict
    assert result.tentative_participants == ["carol@example.com"]
    assert result.conflicting_participants == []


def test_confirmed_hit_outranks_tentative_hit():
    dave = AvailabilityModel([
        busy(at(20, 10), at(20, 10, 30), tentative=True),
        busy(at(20, 10, 30), at(20, 11)),
    ])
    result = ConflictDetector({"dave@example.com": dave}).detect(TimeWindow(at(20, 10), at(20, 11)))

    assert result.conflicting_participants == ["dave@example.com"]
    assert result.tentative_participants == []


def test_unknown_participants_are_flagged_not_conflicting():
    detector = ConflictDetector({"guest@elsewhere.org": None, "bob@example.com": AvailabilityModel()})

    result = detector.detect(TimeWindow(at(20, 9), at(20, 10)))

    assert not result.has_conflict
    assert result.unknown_participants == ["guest@elsewhere.org"]
    assert not detector.is_free("guest@elsewhere.org", TimeWindow(at(20, 9), at(20, 10)))
    assert detector.is_free("bob@example.com", TimeWindow(at(20, 9), at(20, 10)))
