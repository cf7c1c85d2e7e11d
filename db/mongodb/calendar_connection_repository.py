from typing import List, Optional
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.interfaces.repositories import CalendarConnection, CalendarConnectionRepository, SyncSettings
from db.mongodb.schemas import CalendarConnectionDocument, to_object_id, utcnow
from db.mongodb.connection import mongodb_connection
from utils.logger import logger


class MongoCalendarConnectionRepository(CalendarConnectionRepository):
    """MongoDB repository for external calendar connections"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        """Initialize repository with database connection"""
        self.database = database if database is not None else mongodb_connection.get_database()
        self.collection = self.database.calendar_connections

    def _document_to_connection(self, doc: dict) -> CalendarConnection:
        """Convert MongoDB document to CalendarConnection"""
        return CalendarConnection(
            id=str(doc["_id"]),
            user_id=doc["user_id"],
            provider=doc["provider"],
            provider_calendar_id=doc.get("provider_calendar_id", "primary"),
            calendar_name=doc.get("calendar_name"),
            access_token=doc["access_token"],  # In production, decrypt here
            is_active=doc.get("is_active", True),
            sync_settings=SyncSettings(**(doc.get("sync_settings") or {})),
            last_sync_at=doc.get("last_sync_at"),
            sync_status=doc.get("sync_status", "active"),
            sync_error_message=doc.get("sync_error_message"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at")
        )

    async def create_connection(self, connection: CalendarConnection) -> CalendarConnection:
        """Save or replace the connection for (user, provider, calendar)"""
        key = {
            "user_id": connection.user_id,
            "provider": connection.provider,
            "provider_calendar_id": connection.provider_calendar_id
        }
        try:
            connection_doc = CalendarConnectionDocument(
                **connection.model_dump(exclude={"id", "created_at", "updated_at", "last_sync_at"})
            )
            doc_dict = connection_doc.model_dump(by_alias=True, exclude={"id", "created_at"})
            doc_dict["updated_at"] = utcnow()

            result = await self.collection.find_one_and_update(
                key,
                {"$set": doc_dict, "$setOnInsert": {"created_at": connection_doc.created_at}},
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
            logger.info(f"Saved {connection.provider} connection for user {connection.user_id}")
            return self._document_to_connection(result)
        except Exception as e:
            logger.error(f"Error saving {connection.provider} connection for user {connection.user_id}: {str(e)}")
            raise

    async def get_by_user(self, user_id: str, active_only: bool = False) -> List[CalendarConnection]:
        """Get connections for a user"""
        try:
            query = {"user_id": user_id}
            if active_only:
                query["is_active"] = True
            cursor = self.collection.find(query).sort("created_at", 1)
            return [self._document_to_connection(doc) async for doc in cursor]
        except Exception as e:
            logger.error(f"Error getting connections for user {user_id}: {str(e)}")
            raise

    async def mark_synced(self, connection_id: str, synced_at: datetime) -> None:
        """Record a successful sync pass"""
        try:
            await self.collection.update_one(
                {"_id": to_object_id(connection_id)},
                {"$set": {
                    "last_sync_at": synced_at,
                    "sync_status": "active",
                    "sync_error_message": None,
                    "updated_at": utcnow()
                }}
            )
        except Exception as e:
            logger.error(f"Error marking connection {connection_id} synced: {str(e)}")
            raise

    async def mark_sync_error(self, connection_id: str, message: str) -> None:
        """Record a failed sync pass without touching last_sync_at"""
        try:
            await self.collection.update_one(
                {"_id": to_object_id(connection_id)},
                {"$set": {"sync_status": "error", "sync_error_message": message, "updated_at": utcnow()}}
            )
        except Exception as e:
            logger.error(f"Error marking connection {connection_id} failed: {str(e)}")
            raise

    async def deactivate(self, connection_id: str, user_id: str) -> bool:
        """Disable a connection owned by the user"""
        object_id = to_object_id(connection_id)
        if object_id is None:
            return False
        try:
            result = await self.collection.update_one(
                {"_id": object_id, "user_id": user_id},
                {"$set": {"is_active": False, "updated_at": utcnow()}}
            )
            if result.matched_count:
                logger.info(f"Deactivated connection {connection_id} for user {user_id}")
            return result.matched_count > 0
        except Exception as e:
            logger.error(f"Error deactivating connection {connection_id}: {str(e)}")
            raise
