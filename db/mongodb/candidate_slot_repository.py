from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.interfaces.repositories import CandidateSlot, CandidateSlotRepository
from db.mongodb.schemas import CandidateSlotDocument, to_object_id
from db.mongodb.connection import mongodb_connection
from utils.logger import logger


class MongoCandidateSlotRepository(CandidateSlotRepository):
    """MongoDB implementation of CandidateSlotRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else mongodb_connection.get_database()
        self.collection = self.database.meeting_slots

    def _document_to_slot(self, doc: dict) -> CandidateSlot:
        return CandidateSlot(
            id=str(doc["_id"]),
            meeting_request_id=doc["meeting_request_id"],
            generation=doc["generation"],
            start_time=doc["start_time"],
            end_time=doc["end_time"],
            score=doc["score"],
            confidence=doc["confidence"],
            conflicting_participants=doc.get("conflicting_participants", []),
            tentative_participants=doc.get("tentative_participants", []),
            unknown_participants=doc.get("unknown_participants", []),
            reasoning=doc.get("reasoning", ""),
            optimal_factors=doc.get("optimal_factors", []),
            created_at=doc.get("created_at")
        )

    async def replace_slots(
        self,
        request_id: str,
        generation: int,
        slots: List[CandidateSlot]
    ) -> List[CandidateSlot]:
        """Drop slots of older generations and store the given ones"""
        try:
            deleted = await self.collection.delete_many(
                {"meeting_request_id": request_id, "generation": {"$lt": generation}}
            )
            if deleted.deleted_count:
                logger.debug(f"Removed {deleted.deleted_count} superseded slots of meeting request {request_id}")

            if not slots:
                return []

            docs = [
                CandidateSlotDocument(
                    **slot.model_dump(exclude={"id", "meeting_request_id", "generation", "created_at"}),
                    meeting_request_id=request_id,
                    generation=generation,
                    rank=rank
                )
                for rank, slot in enumerate(slots)
            ]
            await self.collection.insert_many([doc.model_dump(by_alias=True) for doc in docs])
            return [
                self._document_to_slot(doc.model_dump(by_alias=True))
                for doc in docs
            ]
        except Exception as e:
            logger.error(f"Error storing slots for meeting request {request_id}: {str(e)}")
            raise

    async def get_slot(self, request_id: str, slot_id: str) -> Optional[CandidateSlot]:
        """Get a slot that belongs to the request"""
        object_id = to_object_id(slot_id)
        if object_id is None:
            return None
        try:
            doc = await self.collection.find_one({"_id": object_id, "meeting_request_id": request_id})
            return self._document_to_slot(doc) if doc else None
        except Exception as e:
            logger.error(f"Error getting slot {slot_id}: {str(e)}")
            raise

    async def get_slots(self, request_id: str, generation: int) -> List[CandidateSlot]:
        """Get the slots of one generation ordered by rank"""
        try:
            cursor = self.collection.find(
                {"meeting_request_id": request_id, "generation": generation}
            ).sort("rank", 1)
            return [self._document_to_slot(doc) async for doc in cursor]
        except Exception as e:
            logger.error(f"Error getting slots for meeting request {request_id}: {str(e)}")
            raise
