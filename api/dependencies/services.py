from fastapi import Depends

from api.dependencies.providers import get_provider_registry
from core.notifications.notification_service import NotificationService
from core.scheduling.availability import AvailabilityService
from core.scheduling.meeting_service import MeetingService
from core.sync.sync_reconciler import CalendarSyncReconciler, ProviderRegistry
from db.repository_factory import (
    get_user_repository,
    get_calendar_event_repository,
    get_meeting_request_repository,
    get_candidate_slot_repository,
    get_calendar_connection_repository,
    get_notification_repository
)


async def get_meeting_service() -> MeetingService:
    """Meeting service wired to the MongoDB repositories"""
    return MeetingService(
        request_repo=await get_meeting_request_repository(),
        slot_repo=await get_candidate_slot_repository(),
        event_repo=await get_calendar_event_repository(),
        user_repo=await get_user_repository(),
        notifications=NotificationService(await get_notification_repository())
    )


async def get_availability_service() -> AvailabilityService:
    return AvailabilityService(await get_calendar_event_repository(), await get_user_repository())


async def get_sync_reconciler(
    registry: ProviderRegistry = Depends(get_provider_registry)
) -> CalendarSyncReconciler:
    """Sync reconciler wired to the MongoDB repositories"""
    return CalendarSyncReconciler(
        connection_repo=await get_calendar_connection_repository(),
        event_repo=await get_calendar_event_repository(),
        registry=registry
    )
