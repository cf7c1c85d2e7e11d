from fastapi import APIRouter, Depends, Header, HTTPException, Query
from typing import Optional
from datetime import datetime, timedelta
import pytz

from api.dependencies.providers import get_provider_registry
from api.dependencies.services import get_availability_service, get_sync_reconciler
from core.calendar.models import (
    AvailabilityResponse,
    BusySpan,
    ConnectCalendarRequest,
    ConnectionResponse,
    CreateEventRequest,
    EventListResponse,
    EventResponse,
    SyncResponse,
    UpdateEventRequest,
)
from api.dependencies.user import get_user_id_from_header
from core.interfaces.repositories import (
    CalendarConnection,
    CalendarConnectionRepository,
    CalendarEvent,
    CalendarEventRepository,
)
from core.scheduling.availability import AvailabilityService
from core.scheduling.models import as_utc
from core.sync.sync_reconciler import CalendarSyncReconciler, ProviderRegistry
from db.repository_factory import get_calendar_connection_repository, get_calendar_event_repository
from utils.logger import logger


router = APIRouter(prefix="/calendar")

EVENT_STATUSES = ("confirmed", "tentative", "cancelled")
SYNC_DIRECTIONS = ("import", "export", "bidirectional")
CONFLICT_POLICIES = ("remote_wins", "local_wins", "manual")
# Event fields an edit may change but never clear
REQUIRED_EVENT_FIELDS = ("title", "start", "end", "is_all_day", "status")


def _bad_request(field: str, message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"field": field, "message": message})


def _resolve_range(start: Optional[datetime], end: Optional[datetime], default_days: int = 7):
    range_start = as_utc(start) if start else datetime.now(pytz.UTC)
    range_end = as_utc(end) if end else range_start + timedelta(days=default_days)
    if range_end <= range_start:
        raise _bad_request("end", "End must be after start")
    return range_start, range_end


async def _get_owned_event(repo: CalendarEventRepository, event_id: str, user_id: str) -> CalendarEvent:
    event = await repo.get_by_id(event_id)
    if event is None or event.user_id != user_id:
        raise HTTPException(status_code=404, detail=f"Calendar event not found: {event_id}")
    return event


@router.get("/events", response_model=EventListResponse)
async def list_events(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    include_cancelled: bool = Query(False),
    x_user_id: Optional[str] = Header(None),
    event_repo: CalendarEventRepository = Depends(get_calendar_event_repository)
):
    """List the caller's events overlapping a range (default: next 7 days)"""
    user_id = get_user_id_from_header(x_user_id)
    range_start, range_end = _resolve_range(start, end)

    try:
        events = await event_repo.get_events_for_user(user_id, range_start, range_end, include_cancelled)
        return EventListResponse(events=[EventResponse.from_event(e) for e in events], total=len(events))
    except Exception as e:
        logger.error(f"Error listing events: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/events", response_model=EventResponse, status_code=201)
async def create_event(
    request: CreateEventRequest,
    x_user_id: Optional[str] = Header(None),
    event_repo: CalendarEventRepository = Depends(get_calendar_event_repository)
):
    """Create a local calendar event"""
    user_id = get_user_id_from_header(x_user_id)

    if not request.title.strip():
        raise _bad_request("title", "Title is required")
    if as_utc(request.end) <= as_utc(request.start):
        raise _bad_request("end", "Event must end after it starts")
    if request.status not in EVENT_STATUSES:
        raise _bad_request("status", f"Must be one of {', '.join(EVENT_STATUSES)}")

    try:
        event = CalendarEvent(
            user_id=user_id,
            title=request.title,
            description=request.description,
            start=as_utc(request.start),
            end=as_utc(request.end),
            location=request.location,
            is_all_day=request.is_all_day,
            status=request.status,
            source="local"
        )
        event.id = await event_repo.create_event(event)
        logger.info(f"Created calendar event {event.id} for user {user_id}")
        return EventResponse.from_event(event)
    except Exception as e:
        logger.error(f"Error creating event: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/events/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    request: UpdateEventRequest,
    x_user_id: Optional[str] = Header(None),
    event_repo: CalendarEventRepository = Depends(get_calendar_event_repository)
):
    """Update a calendar event owned by the caller"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        existing = await _get_owned_event(event_repo, event_id, user_id)
        fields = request.model_dump(exclude_unset=True)
        for key in REQUIRED_EVENT_FIELDS:
            if key in fields and fields[key] is None:
                raise _bad_request(key, "Cannot be null")
        for key in ("start", "end"):
            if fields.get(key) is not None:
                fields[key] = as_utc(fields[key])

        if as_utc(fields.get("end") or existing.end) <= as_utc(fields.get("start") or existing.start):
            raise _bad_request("end", "Event must end after it starts")
        if "status" in fields and fields["status"] not in EVENT_STATUSES:
            raise _bad_request("status", f"Must be one of {', '.join(EVENT_STATUSES)}")

        updated = await event_repo.update_event(event_id, fields)
        return EventResponse.from_event(updated)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating event {event_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    x_user_id: Optional[str] = Header(None),
    event_repo: CalendarEventRepository = Depends(get_calendar_event_repository)
):
    """Cancel a calendar event; it stops counting as busy"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        await _get_owned_event(event_repo, event_id, user_id)
        await event_repo.update_event(event_id, {"status": "cancelled"})
        return {"success": True, "message": "Event cancelled"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error cancelling event {event_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    x_user_id: Optional[str] = Header(None),
    availability: AvailabilityService = Depends(get_availability_service)
):
    """Merged busy intervals of the caller over a range"""
    user_id = get_user_id_from_header(x_user_id)
    range_start, range_end = _resolve_range(start, end)

    try:
        model = await availability.load_user(user_id, range_start, range_end)
        busy = [
            BusySpan(start=interval.start, end=interval.end, tentative=interval.tentative)
            for interval in model.busy_intervals(range_start, range_end)
        ]
        return AvailabilityResponse(start=range_start, end=range_end, busy=busy)
    except Exception as e:
        logger.error(f"Error getting availability: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/connections", response_model=list[ConnectionResponse])
async def list_connections(
    x_user_id: Optional[str] = Header(None),
    connection_repo: CalendarConnectionRepository = Depends(get_calendar_connection_repository)
):
    """List the caller's calendar connections"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        connections = await connection_repo.get_by_user(user_id)
        return [ConnectionResponse.from_connection(c) for c in connections]
    except Exception as e:
        logger.error(f"Error listing calendar connections: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/connections", response_model=ConnectionResponse, status_code=201)
async def connect_calendar(
    request: ConnectCalendarRequest,
    x_user_id: Optional[str] = Header(None),
    connection_repo: CalendarConnectionRepository = Depends(get_calendar_connection_repository),
    registry: ProviderRegistry = Depends(get_provider_registry)
):
    """Connect an external calendar using an already issued access token"""
    user_id = get_user_id_from_header(x_user_id)

    if registry.get(request.provider) is None:
        raise _bad_request("provider", f"Unsupported provider: {request.provider}")
    if not request.access_token:
        raise _bad_request("access_token", "Access token is required")
    if request.sync_settings.sync_direction not in SYNC_DIRECTIONS:
        raise _bad_request("sync_settings.sync_direction", f"Must be one of {', '.join(SYNC_DIRECTIONS)}")
    if request.sync_settings.conflict_resolution not in CONFLICT_POLICIES:
        raise _bad_request("sync_settings.conflict_resolution", f"Must be one of {', '.join(CONFLICT_POLICIES)}")

    try:
        connection = await connection_repo.create_connection(CalendarConnection(
            user_id=user_id,
            provider=request.provider,
            provider_calendar_id=request.provider_calendar_id,
            calendar_name=request.calendar_name,
            access_token=request.access_token,
            sync_settings=request.sync_settings
        ))
        return ConnectionResponse.from_connection(connection)
    except Exception as e:
        logger.error(f"Error connecting {request.provider} calendar: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/connections/{connection_id}")
async def disconnect_calendar(
    connection_id: str,
    x_user_id: Optional[str] = Header(None),
    connection_repo: CalendarConnectionRepository = Depends(get_calendar_connection_repository)
):
    """Disconnect calendar"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        if not await connection_repo.deactivate(connection_id, user_id):
            raise HTTPException(status_code=404, detail=f"Calendar connection not found: {connection_id}")
        return {"success": True, "message": "Calendar disconnected"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error disconnecting calendar: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/sync", response_model=SyncResponse)
async def sync_calendars(
    x_user_id: Optional[str] = Header(None),
    reconciler: CalendarSyncReconciler = Depends(get_sync_reconciler)
):
    """Reconcile all active connections; provider failures are reported, not raised"""
    user_id = get_user_id_from_header(x_user_id)

    try:
        result = await reconciler.sync_user(user_id)
        return SyncResponse(
            imported=result.imported,
            exported=result.exported,
            errors=result.errors,
            conflicts=result.conflicts
        )
    except Exception as e:
        logger.error(f"Error syncing calendars: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
