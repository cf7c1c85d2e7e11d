"""
Shared fixtures: in-memory repositories and fake calendar providers, so the
services run without MongoDB or network access.
"""
import asyncio
import itertools
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytz

from core.interfaces.calendar_provider import CalendarProviderClient, CalendarProviderError
from core.interfaces.repositories import (
    CalendarConnection,
    CalendarConnectionRepository,
    CalendarEvent,
    CalendarEventRepository,
    CandidateSlot,
    CandidateSlotRepository,
    MeetingRequest,
    MeetingRequestRepository,
    NotificationRepository,
    User,
    UserRepository,
)
from core.notifications.notification_service import NotificationService
from core.scheduling.meeting_service import MeetingService
from core.sync.normalizers import GoogleEventNormalizer, OutlookEventNormalizer
from core.sync.sync_reconciler import CalendarSyncReconciler, ProviderRegistry

UTC = pytz.UTC
# Monday; the default test day below is the Tuesday after it
NOW = UTC.localize(datetime(2026, 10, 19, 6, 0))
ORGANIZER_ID = "organizer-1"


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """Aware UTC datetime in October 2026"""
    return UTC.localize(datetime(2026, 10, day, hour, minute))


class InMemoryUserRepository(UserRepository):
    def __init__(self):
        self.users: Dict[str, User] = {}
        self._ids = itertools.count(1)

    def add(self, email: str, name: str = "", user_id: Optional[str] = None) -> User:
        user = User(id=user_id or f"user-{next(self._ids)}", email=email.lower(), name=name or email, created_at=NOW)
        self.users[user.id] = user
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email.lower()), None)

    async def get_by_emails(self, emails: List[str]) -> Dict[str, User]:
        wanted = {email.lower() for email in emails}
        return {u.email: u for u in self.users.values() if u.email in wanted}

    async def create_user(self, email: str, name: str, timezone: str = "UTC") -> User:
        return await self.get_by_email(email) or self.add(email, name)


class InMemoryCalendarEventRepository(CalendarEventRepository):
    def __init__(self):
        self.events: Dict[str, CalendarEvent] = {}
        self._ids = itertools.count(1)
        self.fail_on_create = False

    def add(self, user_id: str, start: datetime, end: datetime, **fields) -> CalendarEvent:
        event = CalendarEvent(
            id=f"event-{next(self._ids)}",
            user_id=user_id,
            title=fields.pop("title", "Busy"),
            start=start,
            end=end,
            created_at=fields.pop("created_at", NOW),
            updated_at=fields.pop("updated_at", NOW),
            **fields
        )
        self.events[event.id] = event
        return event

    async def get_events_for_user(self, user_id, start, end, include_cancelled=False):
        found = [
            e for e in self.events.values()
            if e.user_id == user_id and e.start < end and e.end > start
            and (include_cancelled or e.status != "cancelled")
        ]
        return sorted((e.model_copy() for e in found), key=lambda e: e.start)

    async def get_by_id(self, event_id):
        event = self.events.get(event_id)
        return event.model_copy() if event else None

    async def create_event(self, event):
        if self.fail_on_create:
            raise RuntimeError("event store unavailable")
        stored = event.model_copy(update={
            "id": event.id or f"event-{next(self._ids)}",
            "created_at": event.created_at or NOW,
            "updated_at": event.updated_at or event.created_at or NOW,
        })
        self.events[stored.id] = stored
        return stored.id

    async def update_event(self, event_id, fields):
        event = self.events.get(event_id)
        if event is None:
            return None
        updated = event.model_copy(update={**fields, "updated_at": fields.get("updated_at") or NOW})
        self.events[event_id] = updated
        return updated.model_copy()

    async def find_by_external_id(self, user_id, external_source, external_id):
        for event in self.events.values():
            if (event.user_id, event.external_source, event.external_id) == (user_id, external_source, external_id):
                return event.model_copy()
        return None

    async def upsert_external_event(self, user_id, external_source, external_id, fields, connection_id=None):
        existing = await self.find_by_external_id(user_id, external_source, external_id)
        extra = {"connection_id": connection_id} if connection_id else {}
        if existing is not None:
            updated = existing.model_copy(update={**fields, **extra})
            self.events[existing.id] = updated
            return updated.model_copy(), False

        event = CalendarEvent(
            id=f"event-{next(self._ids)}",
            user_id=user_id,
            source=external_source,
            external_source=external_source,
            external_id=external_id,
            created_at=NOW,
            **{**fields, **extra}
        )
        self.events[event.id] = event
        return event.model_copy(), True

    async def get_unexported_events(self, user_id):
        return [
            e.model_copy() for e in self.events.values()
            if e.user_id == user_id and e.source in ("local", "ai_scheduled")
            and e.status != "cancelled" and e.external_id is None
        ]

    async def set_external_id(self, event_id, external_source, external_id):
        event = self.events.get(event_id)
        if event is None or event.external_id is not None:
            return False
        self.events[event_id] = event.model_copy(update={"external_id": external_id, "external_source": external_source})
        return True


class InMemoryMeetingRequestRepository(MeetingRequestRepository):
    def __init__(self):
        self.requests: Dict[str, MeetingRequest] = {}
        self._ids = itertools.count(1)

    async def create_request(self, request):
        stored = request.model_copy(update={"id": f"request-{next(self._ids)}"}, deep=True)
        self.requests[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_by_id(self, request_id):
        request = self.requests.get(request_id)
        return request.model_copy(deep=True) if request else None

    def _for_organizer(self, organizer_id, status):
        return [
            r for r in self.requests.values()
            if r.organizer_id == organizer_id and (status is None or r.status == status)
        ]

    async def get_by_organizer(self, organizer_id, status=None, skip=0, limit=50):
        found = list(reversed(self._for_organizer(organizer_id, status)))
        return [r.model_copy(deep=True) for r in found[skip:skip + limit]]

    async def count_by_organizer(self, organizer_id, status=None):
        return len(self._for_organizer(organizer_id, status))

    async def update_status(self, request_id, expected_status, new_status, payload=None, expected_generation=None):
        request = self.requests.get(request_id)
        if request is None or request.status != expected_status:
            return False
        if expected_generation is not None and request.slot_generation != expected_generation:
            return False
        self.requests[request_id] = request.model_copy(update={**(payload or {}), "status": new_status})
        return True

    async def supersede(self, request_id, expected_generation, fields):
        request = self.requests.get(request_id)
        if request is None or request.status != "pending" or request.slot_generation != expected_generation:
            return None
        # Re-validate so nested preferences become a model again
        updated = MeetingRequest.model_validate({
            **request.model_dump(),
            **fields,
            "slot_generation": expected_generation + 1,
        })
        self.requests[request_id] = updated
        return updated.model_copy(deep=True)


class InMemoryCandidateSlotRepository(CandidateSlotRepository):
    def __init__(self):
        self.slots: List[Tuple[int, CandidateSlot]] = []
        self._ids = itertools.count(1)

    async def replace_slots(self, request_id, generation, slots):
        self.slots = [
            (rank, s) for rank, s in self.slots
            if not (s.meeting_request_id == request_id and s.generation < generation)
        ]
        stored = []
        for rank, slot in enumerate(slots):
            copy = slot.model_copy(update={
                "id": f"slot-{next(self._ids)}",
                "meeting_request_id": request_id,
                "generation": generation,
            })
            self.slots.append((rank, copy))
            stored.append(copy)
        return stored

    async def get_slot(self, request_id, slot_id):
        for _, slot in self.slots:
            if slot.id == slot_id and slot.meeting_request_id == request_id:
                return slot.model_copy()
        return None

    async def get_slots(self, request_id, generation):
        found = [(rank, s) for rank, s in self.slots if s.meeting_request_id == request_id and s.generation == generation]
        return [s.model_copy() for _, s in sorted(found, key=lambda pair: pair[0])]


class InMemoryCalendarConnectionRepository(CalendarConnectionRepository):
    def __init__(self):
        self.connections: Dict[str, CalendarConnection] = {}
        self._ids = itertools.count(1)

    async def create_connection(self, connection):
        for existing in self.connections.values():
            if (existing.user_id, existing.provider, existing.provider_calendar_id) == \
                    (connection.user_id, connection.provider, connection.provider_calendar_id):
                updated = connection.model_copy(update={"id": existing.id})
                self.connections[existing.id] = updated
                return updated.model_copy()
        stored = connection.model_copy(update={"id": f"connection-{next(self._ids)}", "created_at": NOW})
        self.connections[stored.id] = stored
        return stored.model_copy()

    async def get_by_user(self, user_id, active_only=False):
        return [
            c.model_copy() for c in self.connections.values()
            if c.user_id == user_id and (c.is_active or not active_only)
        ]

    async def mark_synced(self, connection_id, synced_at):
        connection = self.connections[connection_id]
        self.connections[connection_id] = connection.model_copy(update={
            "last_sync_at": synced_at, "sync_status": "active", "sync_error_message": None
        })

    async def mark_sync_error(self, connection_id, message):
        connection = self.connections[connection_id]
        self.connections[connection_id] = connection.model_copy(update={
            "sync_status": "error", "sync_error_message": message
        })

    async def deactivate(self, connection_id, user_id):
        connection = self.connections.get(connection_id)
        if connection is None or connection.user_id != user_id:
            return False
        self.connections[connection_id] = connection.model_copy(update={"is_active": False})
        return True


class InMemoryNotificationRepository(NotificationRepository):
    def __init__(self, fail: bool = False):
        self.notifications: List[Dict[str, Any]] = []
        self.fail = fail

    async def queue_notification(self, user_id, notification_type, message, data=None):
        if self.fail:
            raise RuntimeError("notification queue unavailable")
        self.notifications.append({"user_id": user_id, "type": notification_type, "message": message, "data": data})
        return f"notification-{len(self.notifications)}"


class FakeProviderClient(CalendarProviderClient):
    """Scripted provider: serves raw events and records created ones"""

    def __init__(self, provider: str, events: Optional[List[Dict[str, Any]]] = None):
        self.provider = provider
        self.events = events if events is not None else []
        self.created: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        self.delay: float = 0.0
        self.list_calls: List[Tuple[datetime, datetime]] = []

    async def list_events(self, calendar_id, time_min, time_max):
        self.list_calls.append((time_min, time_max))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise CalendarProviderError(self.provider, self.error, 500)
        return list(self.events)

    async def create_event(self, calendar_id, payload):
        if self.error:
            raise CalendarProviderError(self.provider, self.error, 500)
        self.created.append(payload)
        return f"{self.provider}-remote-{len(self.created)}"


@pytest.fixture
def user_repo():
    repo = InMemoryUserRepository()
    repo.add("organizer@example.com", "Organizer", user_id=ORGANIZER_ID)
    return repo


@pytest.fixture
def event_repo():
    return InMemoryCalendarEventRepository()


@pytest.fixture
def request_repo():
    return InMemoryMeetingRequestRepository()


@pytest.fixture
def slot_repo():
    return InMemoryCandidateSlotRepository()


@pytest.fixture
def connection_repo():
    return InMemoryCalendarConnectionRepository()


@pytest.fixture
def notification_repo():
    return InMemoryNotificationRepository()


@pytest.fixture
def meeting_service(request_repo, slot_repo, event_repo, user_repo, notification_repo):
    return MeetingService(
        request_repo=request_repo,
        slot_repo=slot_repo,
        event_repo=event_repo,
        user_repo=user_repo,
        notifications=NotificationService(notification_repo),
        clock=lambda: NOW
    )


@pytest.fixture
def google_client():
    return FakeProviderClient("google")


@pytest.fixture
def outlook_client():
    return FakeProviderClient("outlook")


@pytest.fixture
def provider_registry(google_client, outlook_client):
    registry = ProviderRegistry()
    registry.register("google", lambda token: google_client, GoogleEventNormalizer())
    registry.register("outlook", lambda token: outlook_client, OutlookEventNormalizer())
    return registry


@pytest.fixture
def sync_clock():
    """Mutable clock for sync tests; advance with clock['now'] += timedelta(...)"""
    return {"now": NOW}


@pytest.fixture
def reconciler(connection_repo, event_repo, provider_registry, sync_clock):
    return CalendarSyncReconciler(
        connection_repo=connection_repo,
        event_repo=event_repo,
        registry=provider_registry,
        timeout_seconds=0.5,
        clock=lambda: sync_clock["now"]
    )


@pytest.fixture
def api_client(meeting_service, event_repo, user_repo, connection_repo, provider_registry, reconciler):
    """TestClient with repositories and services swapped for the in-memory ones; startup (MongoDB) is not run"""
    from fastapi.testclient import TestClient

    from api.dependencies.providers import get_provider_registry
    from api.dependencies.services import get_availability_service, get_meeting_service, get_sync_reconciler
    from core.scheduling.availability import AvailabilityService
    from db.repository_factory import get_calendar_connection_repository, get_calendar_event_repository
    from main import app

    app.dependency_overrides.update({
        get_meeting_service: lambda: meeting_service,
        get_availability_service: lambda: AvailabilityService(event_repo, user_repo),
        get_sync_reconciler: lambda: reconciler,
        get_calendar_event_repository: lambda: event_repo,
        get_calendar_connection_repository: lambda: connection_repo,
        get_provider_registry: lambda: provider_registry,
    })
    yield TestClient(app)
    app.dependency_overrides.clear()
