from core.interfaces.repositories import (
    UserRepository,
    CalendarEventRepository,
    MeetingRequestRepository,
    CandidateSlotRepository,
    CalendarConnectionRepository,
    NotificationRepository
)
from db.mongodb.user_repository import MongoUserRepository
from db.mongodb.calendar_event_repository import MongoCalendarEventRepository
from db.mongodb.meeting_request_repository import MongoMeetingRequestRepository
from db.mongodb.candidate_slot_repository import MongoCandidateSlotRepository
from db.mongodb.calendar_connection_repository import MongoCalendarConnectionRepository
from db.mongodb.notification_repository import MongoNotificationRepository
from db.mongodb.connection import mongodb_connection
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional


class RepositoryFactory:
    """Factory for creating repository instances"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database

    def _get_database(self) -> AsyncIOMotorDatabase:
        if self.database is None:
            self.database = mongodb_connection.get_database()
        return self.database

    async def create_user_repository(self) -> UserRepository:
        """Create user repository instance"""
        return MongoUserRepository(self._get_database())

    async def create_calendar_event_repository(self) -> CalendarEventRepository:
        """Create calendar event repository instance"""
        return MongoCalendarEventRepository(self._get_database())

    async def create_meeting_request_repository(self) -> MeetingRequestRepository:
        """Create meeting request repository instance"""
        return MongoMeetingRequestRepository(self._get_database())

    async def create_candidate_slot_repository(self) -> CandidateSlotRepository:
        """Create candidate slot repository instance"""
        return MongoCandidateSlotRepository(self._get_database())

    async def create_calendar_connection_repository(self) -> CalendarConnectionRepository:
        """Create calendar connection repository instance"""
        return MongoCalendarConnectionRepository(self._get_database())

    async def create_notification_repository(self) -> NotificationRepository:
        """Create notification repository instance"""
        return MongoNotificationRepository(self._get_database())


# Global factory instance
repository_factory = RepositoryFactory()


async def get_user_repository() -> UserRepository:
    """Convenience function to get user repository"""
    return await repository_factory.create_user_repository()


async def get_calendar_event_repository() -> CalendarEventRepository:
    """Convenience function to get calendar event repository"""
    return await repository_factory.create_calendar_event_repository()


async def get_meeting_request_repository() -> MeetingRequestRepository:
    """Convenience function to get meeting request repository"""
    return await repository_factory.create_meeting_request_repository()


async def get_candidate_slot_repository() -> CandidateSlotRepository:
    """Convenience function to get candidate slot repository"""
    return await repository_factory.create_candidate_slot_repository()


async def get_calendar_connection_repository() -> CalendarConnectionRepository:
    """Convenience function to get calendar connection repository"""
    return await repository_factory.create_calendar_connection_repository()


async def get_notification_repository() -> NotificationRepository:
    """Convenience function to get notification repository"""
    return await repository_factory.create_notification_repository()
