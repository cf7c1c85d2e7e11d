from typing import Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from core.interfaces.repositories import UserRepository, User
from .schemas import UserDocument
from .connection import mongodb_connection
from utils.logger import logger


class MongoUserRepository(UserRepository):
    """MongoDB implementation of UserRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else mongodb_connection.get_database()
        self.collection = self.database["users"]

    def _document_to_user(self, doc: dict) -> User:
        user_doc = UserDocument(**doc)
        return User(
            id=str(user_doc.id),
            email=user_doc.email,
            name=user_doc.name,
            created_at=user_doc.created_at,
            timezone=user_doc.timezone
        )

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address"""
        try:
            doc = await self.collection.find_one({"email": email.lower()})
            return self._document_to_user(doc) if doc else None
        except Exception as e:
            logger.error(f"Error getting user by email {email}: {e}")
            raise

    async def get_by_emails(self, emails: List[str]) -> Dict[str, User]:
        """Get registered users keyed by lowercased email"""
        if not emails:
            return {}
        try:
            cursor = self.collection.find({"email": {"$in": [email.lower() for email in emails]}})
            users = {}
            async for doc in cursor:
                user = self._document_to_user(doc)
                users[user.email] = user
            return users
        except Exception as e:
            logger.error(f"Error getting users by email: {e}")
            raise

    async def create_user(self, email: str, name: str, timezone: str = "UTC") -> User:
        """Create a new user"""
        try:
            # Check if user already exists
            existing_user = await self.get_by_email(email)
            if existing_user:
                return existing_user

            user_doc = UserDocument(email=email.lower(), name=name, timezone=timezone)
            result = await self.collection.insert_one(user_doc.model_dump(by_alias=True))
            logger.info(f"Created user {result.inserted_id}")

            return User(
                id=str(result.inserted_id),
                email=user_doc.email,
                name=name,
                created_at=user_doc.created_at,
                timezone=timezone
            )
        except Exception as e:
            logger.error(f"Error creating user {email}: {e}")
            raise
