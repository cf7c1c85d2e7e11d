from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.interfaces.repositories import CalendarEvent, CalendarEventRepository
from db.mongodb.schemas import CalendarEventDocument, to_object_id, utcnow
from db.mongodb.connection import mongodb_connection
from utils.logger import logger

EXPORTABLE_SOURCES = ["local", "ai_scheduled"]


class MongoCalendarEventRepository(CalendarEventRepository):
    """MongoDB implementation of CalendarEventRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else mongodb_connection.get_database()
        self.collection = self.database.calendar_events

    def _document_to_event(self, doc: dict) -> CalendarEvent:
        """Convert MongoDB document to CalendarEvent domain model"""
        return CalendarEvent(
            id=str(doc["_id"]),
            user_id=doc["user_id"],
            title=doc["title"],
            description=doc.get("description"),
            start=doc["start"],
            end=doc["end"],
            location=doc.get("location"),
            is_all_day=doc.get("is_all_day", False),
            status=doc.get("status", "confirmed"),
            source=doc.get("source", "local"),
            external_id=doc.get("external_id"),
            external_source=doc.get("external_source"),
            connection_id=doc.get("connection_id"),
            meeting_request_id=doc.get("meeting_request_id"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at")
        )

    async def get_events_for_user(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        include_cancelled: bool = False
    ) -> List[CalendarEvent]:
        """Get events overlapping [start, end) ordered by start"""
        try:
            query: Dict[str, Any] = {"user_id": user_id, "start": {"$lt": end}, "end": {"$gt": start}}
            if not include_cancelled:
                query["status"] = {"$ne": "cancelled"}

            events = []
            async for doc in self.collection.find(query).sort("start", 1):
                events.append(self._document_to_event(doc))
            return events
        except Exception as e:
            logger.error(f"Error getting events for user {user_id}: {str(e)}")
            raise

    async def get_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        """Get event by ID"""
        object_id = to_object_id(event_id)
        if object_id is None:
            return None
        try:
            doc = await self.collection.find_one({"_id": object_id})
            return self._document_to_event(doc) if doc else None
        except Exception as e:
            logger.error(f"Error getting event {event_id}: {str(e)}")
            raise

    async def create_event(self, event: CalendarEvent) -> str:
        """Insert an event and return its ID (uses event.id when set)"""
        try:
            fields = event.model_dump(exclude={"id", "created_at", "updated_at"})
            event_doc = CalendarEventDocument(**fields)
            if event.id:
                event_doc.id = to_object_id(event.id)
            if event.created_at:
                event_doc.created_at = event.created_at
                event_doc.updated_at = event.updated_at or event.created_at

            result = await self.collection.insert_one(event_doc.model_dump(by_alias=True))
            logger.debug(f"Created calendar event {result.inserted_id} for user {event.user_id}")
            return str(result.inserted_id)
        except Exception as e:
            logger.error(f"Error creating calendar event: {str(e)}")
            raise

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[CalendarEvent]:
        """Update mutable fields of an event"""
        object_id = to_object_id(event_id)
        if object_id is None:
            return None
        try:
            update_data = {**fields, "updated_at": fields.get("updated_at") or utcnow()}
            result = await self.collection.find_one_and_update(
                {"_id": object_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )
            return self._document_to_event(result) if result else None
        except Exception as e:
            logger.error(f"Error updating event {event_id}: {str(e)}")
            raise

    async def find_by_external_id(
        self,
        user_id: str,
        external_source: str,
        external_id: str
    ) -> Optional[CalendarEvent]:
        """Get the event mirrored from/to a provider event"""
        try:
            doc = await self.collection.find_one({
                "user_id": user_id,
                "external_source": external_source,
                "external_id": external_id
            })
            return self._document_to_event(doc) if doc else None
        except Exception as e:
            logger.error(f"Error finding {external_source} event {external_id}: {str(e)}")
            raise

    async def upsert_external_event(
        self,
        user_id: str,
        external_source: str,
        external_id: str,
        fields: Dict[str, Any],
        connection_id: Optional[str] = None
    ) -> Tuple[CalendarEvent, bool]:
        """Insert or update by (user, external source, external id); returns (event, created)"""
        try:
            now = utcnow()
            update_data = {**fields, "updated_at": fields.get("updated_at") or now}
            if connection_id:
                update_data["connection_id"] = connection_id

            key = {"user_id": user_id, "external_source": external_source, "external_id": external_id}
            result = await self.collection.update_one(
                key,
                {
                    "$set": update_data,
                    "$setOnInsert": {"source": external_source, "created_at": now}
                },
                upsert=True
            )
            doc = await self.collection.find_one(key)
            return self._document_to_event(doc), result.upserted_id is not None
        except Exception as e:
            logger.error(f"Error upserting {external_source} event {external_id}: {str(e)}")
            raise

    async def get_unexported_events(self, user_id: str) -> List[CalendarEvent]:
        """Get local events that have never been mirrored to a provider"""
        try:
            cursor = self.collection.find({
                "user_id": user_id,
                "source": {"$in": EXPORTABLE_SOURCES},
                "status": {"$ne": "cancelled"},
                "external_id": None
            }).sort("start", 1)
            return [self._document_to_event(doc) async for doc in cursor]
        except Exception as e:
            logger.error(f"Error getting unexported events for user {user_id}: {str(e)}")
            raise

    async def set_external_id(self, event_id: str, external_source: str, external_id: str) -> bool:
        """Record the provider ID assigned to an exported event"""
        object_id = to_object_id(event_id)
        if object_id is None:
            return False
        try:
            # Guarded so an event is only ever bound to one provider event
            result = await self.collection.update_one(
                {"_id": object_id, "external_id": None},
                {"$set": {"external_id": external_id, "external_source": external_source}}
            )
            return result.modified_count > 0
        except Exception as e:
            logger.error(f"Error setting external id on event {event_id}: {str(e)}")
            raise
