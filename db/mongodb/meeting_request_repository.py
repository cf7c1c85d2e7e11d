from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.interfaces.repositories import MeetingRequest, MeetingRequestRepository
from db.mongodb.schemas import MeetingRequestDocument, to_object_id, utcnow
from db.mongodb.connection import mongodb_connection
from utils.logger import logger


class MongoMeetingRequestRepository(MeetingRequestRepository):
    """
    MongoDB implementation of MeetingRequestRepository.

    Status changes are single find_one_and_update calls filtered on the
    expected status (and slot generation), so concurrent writers cannot both
    win a transition.
    """

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else mongodb_connection.get_database()
        self.collection = self.database.meeting_requests

    def _document_to_request(self, doc: dict) -> MeetingRequest:
        """Convert MongoDB document to MeetingRequest domain model"""
        return MeetingRequest(
            id=str(doc["_id"]),
            organizer_id=doc["organizer_id"],
            title=doc["title"],
            participants=doc.get("participants", []),
            duration_minutes=doc["duration_minutes"],
            meeting_type=doc.get("meeting_type", "team"),
            priority=doc.get("priority", "medium"),
            location_type=doc.get("location_type", "video_call"),
            location_details=doc.get("location_details"),
            agenda=doc.get("agenda"),
            preparation_minutes=doc.get("preparation_minutes", 0),
            buffer_minutes=doc.get("buffer_minutes", 15),
            preferences=doc.get("preferences") or {},
            range_start=doc["range_start"],
            range_end=doc["range_end"],
            status=doc["status"],
            slot_generation=doc.get("slot_generation", 0),
            selected_slot=doc.get("selected_slot"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at")
        )

    async def create_request(self, request: MeetingRequest) -> MeetingRequest:
        """Create a new meeting request"""
        try:
            request_doc = MeetingRequestDocument(
                **request.model_dump(exclude={"id", "created_at", "updated_at"})
            )
            if request.created_at:
                request_doc.created_at = request.created_at
                request_doc.updated_at = request.updated_at or request.created_at

            result = await self.collection.insert_one(request_doc.model_dump(by_alias=True))
            created_doc = await self.collection.find_one({"_id": result.inserted_id})
            return self._document_to_request(created_doc)
        except Exception as e:
            logger.error(f"Error creating meeting request: {str(e)}")
            raise

    async def get_by_id(self, request_id: str) -> Optional[MeetingRequest]:
        """Get meeting request by ID"""
        object_id = to_object_id(request_id)
        if object_id is None:
            return None
        try:
            doc = await self.collection.find_one({"_id": object_id})
            return self._document_to_request(doc) if doc else None
        except Exception as e:
            logger.error(f"Error getting meeting request {request_id}: {str(e)}")
            raise

    def _organizer_query(self, organizer_id: str, status: Optional[str]) -> Dict[str, Any]:
        query: Dict[str, Any] = {"organizer_id": organizer_id}
        if status:
            query["status"] = status
        return query

    async def get_by_organizer(
        self,
        organizer_id: str,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[MeetingRequest]:
        """Get meeting requests by organizer, newest first"""
        try:
            cursor = self.collection.find(
                self._organizer_query(organizer_id, status)
            ).sort("created_at", -1).skip(skip).limit(limit)
            return [self._document_to_request(doc) async for doc in cursor]
        except Exception as e:
            logger.error(f"Error getting meeting requests for organizer {organizer_id}: {str(e)}")
            raise

    async def count_by_organizer(self, organizer_id: str, status: Optional[str] = None) -> int:
        """Count meeting requests for an organizer"""
        try:
            return await self.collection.count_documents(self._organizer_query(organizer_id, status))
        except Exception as e:
            logger.error(f"Error counting meeting requests for organizer {organizer_id}: {str(e)}")
            raise

    async def update_status(
        self,
        request_id: str,
        expected_status: str,
        new_status: str,
        payload: Optional[Dict[str, Any]] = None,
        expected_generation: Optional[int] = None
    ) -> bool:
        """Transition status only if it still equals expected_status"""
        object_id = to_object_id(request_id)
        if object_id is None:
            return False
        try:
            query: Dict[str, Any] = {"_id": object_id, "status": expected_status}
            if expected_generation is not None:
                query["slot_generation"] = expected_generation

            update_data = {"updated_at": utcnow(), **(payload or {}), "status": new_status}
            result = await self.collection.find_one_and_update(
                query,
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )
            if result is None:
                logger.info(f"Meeting request {request_id} is no longer {expected_status}, {new_status} rejected")
                return False
            return True
        except Exception as e:
            logger.error(f"Error updating meeting request {request_id} status: {str(e)}")
            raise

    async def supersede(
        self,
        request_id: str,
        expected_generation: int,
        fields: Dict[str, Any]
    ) -> Optional[MeetingRequest]:
        """Apply edits to a pending request and bump its slot generation"""
        object_id = to_object_id(request_id)
        if object_id is None:
            return None
        try:
            update_data = {"updated_at": utcnow(), **fields}
            result = await self.collection.find_one_and_update(
                {"_id": object_id, "status": "pending", "slot_generation": expected_generation},
                {"$set": update_data, "$inc": {"slot_generation": 1}},
                return_document=ReturnDocument.AFTER
            )
            return self._document_to_request(result) if result else None
        except Exception as e:
            logger.error(f"Error superseding meeting request {request_id}: {str(e)}")
            raise
