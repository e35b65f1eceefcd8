from datetime import datetime
from typing import Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.db.session import store_operation
from app.models.base import utcnow
from app.models.reminder import Reminder


class ReminderRepository:
    """Reminder database operations. Sent reminders are never deleted."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["reminders"]

    @store_operation
    async def insert_many(self, reminders: List[Reminder]) -> List[Reminder]:
        if not reminders:
            return []
        docs = [r.model_dump(by_alias=True) for r in reminders]
        await self.collection.insert_many(docs)
        return reminders

    @store_operation
    async def delete_pending(self, split_bill_id: ObjectId, user_id: ObjectId, types: Iterable[str]) -> int:
        """Delete a recipient's unsent reminders of the given types on one bill."""
        result = await self.collection.delete_many({
            "split_bill_id": split_bill_id,
            "user_id": user_id,
            "type": {"$in": list(types)},
            "sent_at": None
        })
        return result.deleted_count

    @store_operation
    async def get(self, reminder_id: ObjectId) -> Optional[Reminder]:
        doc = await self.collection.find_one({"_id": reminder_id})
        if doc:
            return Reminder(**doc)
        return None

    @store_operation
    async def claim_next_due(self, now: datetime) -> Optional[Reminder]:
        """
        Atomically mark the oldest due, unsent reminder as sent and return it.

        The filter on sent_at is the claim: two sweeps racing for the same
        row cannot both match it.
        """
        doc = await self.collection.find_one_and_update(
            {
                "sent_at": None,
                "scheduled_for": {"$lte": now}
            },
            {"$set": {"sent_at": now, "updated_at": now}},
            sort=[("scheduled_for", 1)],
            return_document=ReturnDocument.AFTER
        )
        if doc:
            return Reminder(**doc)
        return None

    @store_operation
    async def mark_read(self, reminder_id: ObjectId, user_id: ObjectId) -> Optional[Reminder]:
        now = utcnow()
        doc = await self.collection.find_one_and_update(
            {"_id": reminder_id, "user_id": user_id},
            {"$set": {"is_read": True, "read_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER
        )
        if doc:
            return Reminder(**doc)
        return None

    @store_operation
    async def list_for_user(
        self,
        user_id: ObjectId,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[Reminder]:
        query = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False
        cursor = self.collection.find(query).sort("scheduled_for", -1).skip(offset).limit(limit)
        docs = await cursor.to_list(None)
        return [Reminder(**doc) for doc in docs]

    @store_operation
    async def list_for_bill(self, split_bill_id: ObjectId) -> List[Reminder]:
        docs = await self.collection.find(
            {"split_bill_id": split_bill_id}
        ).sort("scheduled_for", 1).to_list(None)
        return [Reminder(**doc) for doc in docs]
