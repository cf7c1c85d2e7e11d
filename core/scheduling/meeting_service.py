"""
Meeting negotiation

Owns the lifecycle of a meeting request: pending -> scheduled | cancelled.
Status transitions go through the repository's conditional update so that two
concurrent confirms on the same request cannot both succeed.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytz
from bson import ObjectId
from pydantic import ValidationError

from config import settings
from core.interfaces.repositories import (
    CalendarEvent,
    CalendarEventRepository,
    CandidateSlot,
    CandidateSlotRepository,
    MeetingRequest,
    MeetingRequestRepository,
    UserRepository,
)
from core.notifications.notification_service import (
    MEETING_CANCELLED,
    MEETING_CONFIRMED,
    MEETING_INVITATION,
    NotificationService,
)
from core.scheduling.availability import AvailabilityModel, AvailabilityService
from core.scheduling.conflict_detector import ConflictDetector, IntervalIndex
from core.scheduling.errors import InvalidMeetingRequestError, NotFoundError, SchedulingConflictError
from core.scheduling.models import (
    DateRange,
    LOCATION_TYPES,
    MEETING_TYPES,
    MeetingDraft,
    PRIORITIES,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    as_utc,
)
from core.scheduling.slot_generator import SlotGenerator, build_constraints
from core.scheduling.slot_scorer import ScoringContext, SlotScorer
from utils.logger import logger

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_TITLE_LENGTH = 200
MAX_PREPARATION_MINUTES = 120
MAX_BUFFER_MINUTES = 60
LARGE_MEETING_SIZE = 5

DRAFT_FIELDS = set(MeetingDraft.model_fields)


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def validate_draft(draft: MeetingDraft, now: Optional[datetime] = None) -> DateRange:
    """
    Reject malformed input before any computation.

    Returns:
        The date range to search, defaulting to the next default_search_days

    Raises:
        InvalidMeetingRequestError: naming the offending field
    """
    if not draft.title or not draft.title.strip():
        raise InvalidMeetingRequestError("title", "Title is required")
    if len(draft.title) > MAX_TITLE_LENGTH:
        raise InvalidMeetingRequestError("title", f"Title must be at most {MAX_TITLE_LENGTH} characters")

    if not draft.participants:
        raise InvalidMeetingRequestError("participants", "At least one participant is required")
    for email in draft.participants:
        if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
            raise InvalidMeetingRequestError("participants", f"Invalid participant email: {email}")
    if len({email.lower() for email in draft.participants}) != len(draft.participants):
        raise InvalidMeetingRequestError("participants", "Participants must be unique")

    if not settings.min_duration_minutes <= draft.duration_minutes <= settings.max_duration_minutes:
        raise InvalidMeetingRequestError(
            "duration_minutes",
            f"Duration must be between {settings.min_duration_minutes} and {settings.max_duration_minutes} minutes"
        )
    if draft.meeting_type not in MEETING_TYPES:
        raise InvalidMeetingRequestError("meeting_type", f"Must be one of {', '.join(MEETING_TYPES)}")
    if draft.priority not in PRIORITIES:
        raise InvalidMeetingRequestError("priority", f"Must be one of {', '.join(PRIORITIES)}")
    if draft.location_type not in LOCATION_TYPES:
        raise InvalidMeetingRequestError("location_type", f"Must be one of {', '.join(LOCATION_TYPES)}")
    if not 0 <= draft.preparation_minutes <= MAX_PREPARATION_MINUTES:
        raise InvalidMeetingRequestError(
            "preparation_minutes", f"Must be between 0 and {MAX_PREPARATION_MINUTES}"
        )
    if not 0 <= draft.buffer_minutes <= MAX_BUFFER_MINUTES:
        raise InvalidMeetingRequestError("buffer_minutes", f"Must be between 0 and {MAX_BUFFER_MINUTES}")

    _validate_preferences(draft)

    start = as_utc(draft.range_start) if draft.range_start else (now or _utcnow())
    end = as_utc(draft.range_end) if draft.range_end else start + timedelta(days=settings.default_search_days)
    if end <= start:
        raise InvalidMeetingRequestError("range_end", "End of the date range must be after its start")
    return DateRange(start=start, end=end)


def _validate_preferences(draft: MeetingDraft) -> None:
    preferences = draft.preferences
    for name in ("preferred_times", "avoid_times"):
        for window in getattr(preferences, name):
            try:
                start, end = window.bounds()
            except ValueError as e:
                raise InvalidMeetingRequestError(f"preferences.{name}", str(e))
            if start >= end:
                raise InvalidMeetingRequestError(f"preferences.{name}", "Window start must be before its end")

    for name in ("preferred_days", "avoid_days"):
        if any(day < 0 or day > 6 for day in getattr(preferences, name)):
            raise InvalidMeetingRequestError(f"preferences.{name}", "Days must be between 0 (Sunday) and 6 (Saturday)")

    if preferences.timezone not in pytz.all_timezones_set:
        raise InvalidMeetingRequestError("preferences.timezone", f"Unknown timezone: {preferences.timezone}")


@dataclass
class PipelineRun:
    """Everything one generate -> detect -> score pass produced"""
    slots: List[CandidateSlot]
    windows_generated: int
    participants: Dict[str, Optional[AvailabilityModel]]


@dataclass
class SchedulingResult:
    meeting_request_id: Optional[str]
    status: str
    suggested_slots: List[CandidateSlot]
    alternative_options: Optional[Dict[str, bool]] = None
    analysis: Dict[str, Any] = field(default_factory=dict)
    participant_feedback: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def format_window(start: datetime, end: datetime, timezone: str) -> str:
    """Human readable window, e.g. 'Tue, Oct 20 2026 09:00-10:00 (UTC)'"""
    tz = pytz.timezone(timezone)
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    return f"{local_start.strftime('%a, %b %d %Y %H:%M')}-{local_end.strftime('%H:%M')} ({timezone})"


class MeetingService:
    """Creates, re-plans, confirms and cancels meeting requests"""

    def __init__(
        self,
        request_repo: MeetingRequestRepository,
        slot_repo: CandidateSlotRepository,
        event_repo: CalendarEventRepository,
        user_repo: UserRepository,
        notifications: Optional[NotificationService] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.request_repo = request_repo
        self.slot_repo = slot_repo
        self.event_repo = event_repo
        self.user_repo = user_repo
        self.availability = AvailabilityService(event_repo, user_repo)
        self.notifications = notifications or NotificationService()
        self.generator = SlotGenerator()
        self.scorer = SlotScorer()
        self.clock = clock or _utcnow

    async def create(self, organizer_id: str, draft: MeetingDraft) -> SchedulingResult:
        """Validate, persist as pending and propose ranked slots"""
        date_range = validate_draft(draft, self.clock())
        now = self.clock()

        request = MeetingRequest(
            organizer_id=organizer_id,
            **draft.model_dump(exclude={"range_start", "range_end"}),
            range_start=date_range.start,
            range_end=date_range.end,
            status=STATUS_PENDING,
            created_at=now,
            updated_at=now
        )
        request = await self.request_repo.create_request(request)
        logger.info(f"Created meeting request {request.id} for organizer {organizer_id}")

        run = await self._run_pipeline(organizer_id, request, date_range)
        stored = await self.slot_repo.replace_slots(
            request.id, request.slot_generation, run.slots[:settings.persisted_slots_limit]
        )

        await self._notify_participants(
            request,
            MEETING_INVITATION,
            f"You have been invited to '{request.title}'",
            {"meeting_request_id": request.id}
        )
        return self._build_result(request, stored, run)

    async def suggest(self, organizer_id: str, draft: MeetingDraft) -> SchedulingResult:
        """Run the pipeline without persisting anything"""
        date_range = validate_draft(draft, self.clock())
        request = MeetingRequest(
            organizer_id=organizer_id,
            **draft.model_dump(exclude={"range_start", "range_end"}),
            range_start=date_range.start,
            range_end=date_range.end
        )
        run = await self._run_pipeline(organizer_id, request, date_range)
        return self._build_result(request, run.slots, run)

    async def update(self, organizer_id: str, request_id: str, changes: Dict[str, Any]) -> SchedulingResult:
        """Edit a pending request; its previous slots become unconfirmable"""
        existing = await self._get_owned(organizer_id, request_id)
        if existing.status != STATUS_PENDING:
            raise SchedulingConflictError(f"Meeting request is already {existing.status}")

        merged = existing.model_dump(include=DRAFT_FIELDS)
        merged.update({key: value for key, value in changes.items() if key in DRAFT_FIELDS})
        try:
            draft = MeetingDraft.model_validate(merged)
        except ValidationError as e:
            error = e.errors()[0]
            raise InvalidMeetingRequestError(".".join(str(part) for part in error["loc"]), error["msg"])

        date_range = validate_draft(draft, self.clock())
        fields = draft.model_dump(exclude={"range_start", "range_end"})
        fields.update(range_start=date_range.start, range_end=date_range.end, updated_at=self.clock())

        updated = await self.request_repo.supersede(request_id, existing.slot_generation, fields)
        if updated is None:
            raise SchedulingConflictError("Meeting request changed concurrently or is no longer pending")
        logger.info(f"Meeting request {request_id} superseded, slot generation {updated.slot_generation}")

        run = await self._run_pipeline(organizer_id, updated, date_range)
        stored = await self.slot_repo.replace_slots(
            request_id, updated.slot_generation, run.slots[:settings.persisted_slots_limit]
        )
        return self._build_result(updated, stored, run)

    async def confirm(
        self,
        organizer_id: str,
        request_id: str,
        slot_id: str,
        custom_message: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Select one candidate slot and materialize it as a calendar event

        Raises:
            NotFoundError: unknown or foreign request, unknown or superseded slot
            SchedulingConflictError: request not pending, lost a concurrent
                confirm, or the slot is no longer free for the organizer
        """
        request = await self._get_owned(organizer_id, request_id)
        if request.status != STATUS_PENDING:
            raise SchedulingConflictError(f"Meeting request is already {request.status}")

        slot = await self.slot_repo.get_slot(request_id, slot_id)
        if slot is None or slot.generation != request.slot_generation:
            if slot is not None:
                logger.warning(f"Rejected stale slot {slot_id} for meeting request {request_id}")
            raise NotFoundError("Candidate slot", slot_id)

        if settings.revalidate_on_confirm:
            organizer = await self.availability.load_user(organizer_id, slot.start_time, slot.end_time)
            if organizer.busy_intervals(slot.start_time, slot.end_time):
                raise SchedulingConflictError("Selected slot is no longer free on the organizer's calendar")

        event_id = str(ObjectId())
        confirmed_at = self.clock()
        selected_slot = {
            "slot_id": slot_id,
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "confirmed_at": confirmed_at,
            "event_id": event_id,
            "custom_message": custom_message,
        }

        transitioned = await self.request_repo.update_status(
            request_id,
            STATUS_PENDING,
            STATUS_SCHEDULED,
            {"selected_slot": selected_slot, "updated_at": confirmed_at},
            expected_generation=request.slot_generation
        )
        if not transitioned:
            raise SchedulingConflictError("Meeting request is no longer pending")

        location = request.location_details or request.location_type
        event = CalendarEvent(
            id=event_id,
            user_id=organizer_id,
            title=request.title,
            description=request.agenda,
            start=slot.start_time,
            end=slot.end_time,
            location=location,
            status="confirmed",
            source="ai_scheduled",
            meeting_request_id=request_id,
            created_at=confirmed_at,
            updated_at=confirmed_at
        )
        try:
            await self.event_repo.create_event(event)
        except Exception as e:
            logger.error(f"Failed to create calendar event for meeting request {request_id}: {e}")
            await self._rollback_confirmation(request_id)
            raise

        logger.info(f"Meeting request {request_id} scheduled with slot {slot_id}")

        message = custom_message or f"'{request.title}' is confirmed for " \
            f"{format_window(slot.start_time, slot.end_time, request.preferences.timezone)}"
        await self._notify_participants(
            request, MEETING_CONFIRMED, message, {"meeting_request_id": request_id, "event_id": event_id}
        )

        return {
            "message": "Meeting confirmed",
            "event_id": event_id,
            "meeting": {
                "id": request_id,
                "title": request.title,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                "participants": list(request.participants),
                "location": location,
                "agenda": request.agenda,
            },
            "calendar_event": {
                "id": event_id,
                "formatted": format_window(slot.start_time, slot.end_time, request.preferences.timezone),
            },
        }

    async def cancel(self, organizer_id: str, request_id: str) -> MeetingRequest:
        """Abandon a pending request; no calendar event is created"""
        request = await self._get_owned(organizer_id, request_id)
        transitioned = await self.request_repo.update_status(
            request_id, STATUS_PENDING, STATUS_CANCELLED, {"updated_at": self.clock()}
        )
        if not transitioned:
            current = await self.request_repo.get_by_id(request_id)
            status = current.status if current else request.status
            if status == STATUS_PENDING:
                raise SchedulingConflictError("Meeting request is no longer pending")
            raise SchedulingConflictError(f"Meeting request is already {status}")

        logger.info(f"Meeting request {request_id} cancelled")
        await self._notify_participants(
            request, MEETING_CANCELLED, f"'{request.title}' was cancelled", {"meeting_request_id": request_id}
        )
        return await self.request_repo.get_by_id(request_id)

    async def get(self, organizer_id: str, request_id: str) -> Tuple[MeetingRequest, List[CandidateSlot]]:
        """An owned request with its current candidate slots"""
        request = await self._get_owned(organizer_id, request_id)
        slots = await self.slot_repo.get_slots(request_id, request.slot_generation)
        return request, slots

    async def list(
        self,
        organizer_id: str,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[MeetingRequest], int]:
        requests = await self.request_repo.get_by_organizer(organizer_id, status=status, skip=skip, limit=limit)
        total = await self.request_repo.count_by_organizer(organizer_id, status=status)
        return requests, total

    async def _get_owned(self, organizer_id: str, request_id: str) -> MeetingRequest:
        request = await self.request_repo.get_by_id(request_id)
        if request is None or request.organizer_id != organizer_id:
            raise NotFoundError("Meeting request", request_id)
        return request

    async def _rollback_confirmation(self, request_id: str) -> None:
        try:
            await self.request_repo.update_status(
                request_id, STATUS_SCHEDULED, STATUS_PENDING, {"selected_slot": None, "updated_at": self.clock()}
            )
        except Exception as e:
            logger.error(f"Failed to roll back meeting request {request_id} to pending: {e}")

    async def _run_pipeline(self, organizer_id: str, request: MeetingRequest, date_range: DateRange) -> PipelineRun:
        padding = timedelta(minutes=request.buffer_minutes + request.preparation_minutes)
        organizer, participants = await self.availability.load(
            organizer_id, request.participants, date_range.start - padding, date_range.end + padding
        )

        organizer_busy = IntervalIndex(organizer.busy_intervals())
        detector = ConflictDetector(participants)
        context = ScoringContext(
            date_range=date_range,
            participant_count=len(participants),
            organizer_busy=organizer_busy
        )
        constraints = build_constraints(request.preferences, request.priority)

        slots = []
        generated = 0
        for window in self.generator.generate(date_range, request.duration_minutes, constraints):
            generated += 1
            if organizer_busy.overlapping(window.start, window.end):
                continue
            conflicts = detector.detect(window)
            slot = self.scorer.score(window, request, conflicts, context)
            slot.meeting_request_id = request.id
            slot.generation = request.slot_generation
            slots.append(slot)

        ranked = self.scorer.rank(slots)
        logger.info(
            f"Scored {len(ranked)} of {generated} candidate windows for meeting request {request.id or '(preview)'}"
        )
        return PipelineRun(slots=ranked, windows_generated=generated, participants=participants)

    def _build_result(self, request: MeetingRequest, slots: List[CandidateSlot], run: PipelineRun) -> SchedulingResult:
        alternative_options = None
        if not run.slots:
            alternative_options = {
                "extend_date_range": True,
                "consider_weekends": not (request.preferences.allow_weekends or request.priority == "urgent"),
                "shorten_duration": request.duration_minutes > 30,
            }

        return SchedulingResult(
            meeting_request_id=request.id,
            status=request.status,
            suggested_slots=slots[:settings.suggested_slots_limit],
            alternative_options=alternative_options,
            analysis=self._analysis(run, len(request.participants)),
            participant_feedback=self._participant_feedback(run),
        )

    def _analysis(self, run: PipelineRun, participant_count: int) -> Dict[str, Any]:
        scores = [slot.score for slot in run.slots]
        best = max(scores) if scores else 0.0
        average = round(sum(scores) / len(scores)) if scores else 0

        if best < 30:
            difficulty = "very_difficult"
        elif best < 50:
            difficulty = "difficult"
        elif best < 70:
            difficulty = "moderate"
        else:
            difficulty = "easy"

        recommendations = []
        if not scores:
            recommendations.append("Extend the date range or allow weekends")
        elif best < 50:
            recommendations.append("Consider reducing the number of participants")
            recommendations.append("Try scheduling for next week when availability might be better")
        if participant_count > LARGE_MEETING_SIZE:
            recommendations.append("Large meetings are harder to schedule - consider breaking into smaller groups")

        return {
            "total_slots_analyzed": run.windows_generated,
            "viable_slots": len(run.slots),
            "conflict_free_slots": sum(1 for slot in run.slots if not slot.conflicting_participants),
            "best_score": best,
            "average_score": average,
            "scheduling_difficulty": difficulty,
            "recommendations": recommendations,
        }

    def _participant_feedback(self, run: PipelineRun) -> Dict[str, Dict[str, Any]]:
        feedback = {}
        total = len(run.slots)
        for email, model in run.participants.items():
            if model is None:
                feedback[email] = {"known_availability": False, "availability_rate": None}
                continue
            available = sum(
                1 for slot in run.slots
                if email not in slot.conflicting_participants and email not in slot.tentative_participants
            )
            entry = {
                "known_availability": True,
                "availability_rate": round(available / total, 3) if total else 0.0,
            }
            if available < 3:
                entry["suggested_alternatives"] = ["Consider flexible timing", "Check availability for next week"]
            feedback[email] = entry
        return feedback

    async def _notify_participants(
        self,
        request: MeetingRequest,
        notification_type: str,
        message: str,
        data: Dict[str, Any]
    ) -> None:
        try:
            users = await self.user_repo.get_by_emails(request.participants)
        except Exception as e:
            logger.warning(f"Could not resolve participants for {notification_type} notification: {e}")
            return
        user_ids = [user.id for user in users.values() if user.id != request.organizer_id]
        await self.notifications.notify(user_ids, notification_type, message, data)
