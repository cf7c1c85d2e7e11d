from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.interfaces.repositories import NotificationRepository
from db.mongodb.schemas import NotificationDocument
from db.mongodb.connection import mongodb_connection
from utils.logger import logger


class MongoNotificationRepository(NotificationRepository):
    """Queues notifications for an external dispatcher"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else mongodb_connection.get_database()
        self.collection = self.database.notifications

    async def queue_notification(
        self,
        user_id: str,
        notification_type: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> str:
        """Queue a notification for delivery"""
        try:
            doc = NotificationDocument(user_id=user_id, type=notification_type, message=message, data=data or {})
            result = await self.collection.insert_one(doc.model_dump(by_alias=True))
            return str(result.inserted_id)
        except Exception as e:
            logger.error(f"Error queueing {notification_type} notification for {user_id}: {str(e)}")
            raise
