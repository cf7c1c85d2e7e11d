from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from config import settings
from utils.logger import logger


class MongoDBConnection:
    """MongoDB connection manager using Motor"""

    def __init__(self):
        self.client: AsyncIOMotorClient = None
        self.database: AsyncIOMotorDatabase = None

    async def connect(self):
        """Connect to MongoDB and make sure indexes exist"""
        try:
            # tz_aware so datetimes come back as aware UTC
            self.client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
            self.database = self.client[settings.mongo_db_name]
            await self.client.admin.command('ping')
            logger.info(f"Connected to MongoDB database: {settings.mongo_db_name}")
            await self.ensure_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def ensure_indexes(self):
        """Create the indexes the repositories rely on"""
        db = self.database
        await db.users.create_index("email", unique=True)
        await db.calendar_events.create_index([("user_id", ASCENDING), ("start", ASCENDING)])
        # Sync idempotency key; only enforced for mirrored events
        await db.calendar_events.create_index(
            [("user_id", ASCENDING), ("external_source", ASCENDING), ("external_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"external_id": {"$type": "string"}}
        )
        await db.meeting_requests.create_index([("organizer_id", ASCENDING), ("created_at", DESCENDING)])
        await db.meeting_slots.create_index(
            [("meeting_request_id", ASCENDING), ("generation", ASCENDING), ("rank", ASCENDING)]
        )
        await db.calendar_connections.create_index(
            [("user_id", ASCENDING), ("provider", ASCENDING), ("provider_calendar_id", ASCENDING)],
            unique=True
        )
        await db.notifications.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        logger.debug("MongoDB indexes ensured")

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client is not None:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_database(self) -> AsyncIOMotorDatabase:
        """Get the database instance"""
        if self.database is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.database


# Global connection instance
mongodb_connection = MongoDBConnection()


async def get_database() -> AsyncIOMotorDatabase:
    """Convenience function to get database instance"""
    return mongodb_connection.get_database()
