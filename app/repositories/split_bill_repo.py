"""
SplitBillRepository - the ledger store.

A split bill is one aggregate: participants and payments live inside the
bill document. Every write is conditional on the version the caller read,
so concurrent mutations of one bill serialize instead of overwriting each
other.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.session import store_operation
from app.models.base import utcnow
from app.models.split_bill import SplitBill

# Fields a versioned save may rewrite; identity and authorship never change
MUTABLE_FIELDS = (
    "participants",
    "payments",
    "is_settled",
    "settled_at",
    "is_cancelled",
)


class SplitBillRepository:
    """Repository for split bills."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["split_bills"]

    @store_operation
    async def insert(self, bill: SplitBill) -> SplitBill:
        doc = bill.model_dump(by_alias=True)
        result = await self.collection.insert_one(doc)
        bill.id = result.inserted_id
        return bill

    @store_operation
    async def get(self, bill_id: ObjectId) -> Optional[SplitBill]:
        """Get a live (not deleted) bill."""
        doc = await self.collection.find_one({"_id": bill_id, "is_deleted": False})
        if doc:
            return SplitBill(**doc)
        return None

    @store_operation
    async def save(self, bill: SplitBill, expected_version: int) -> bool:
        """
        Write the bill's mutable fields if nobody else wrote since
        `expected_version` was read.

        Returns False on a lost race; the caller re-reads and retries.
        """
        doc = bill.model_dump(by_alias=True)
        updates = {field: doc[field] for field in MUTABLE_FIELDS}
        updates["version"] = expected_version + 1
        updates["updated_at"] = utcnow()

        result = await self.collection.update_one(
            {
                "_id": bill.id,
                "version": expected_version,
                "is_deleted": False
            },
            {"$set": updates}
        )
        if result.matched_count == 1:
            bill.version = updates["version"]
            bill.updated_at = updates["updated_at"]
            return True
        return False

    @store_operation
    async def soft_delete(self, bill_id: ObjectId, expected_version: int) -> bool:
        result = await self.collection.update_one(
            {
                "_id": bill_id,
                "version": expected_version,
                "is_deleted": False
            },
            {
                "$set": {
                    "is_deleted": True,
                    "updated_at": utcnow()
                },
                "$inc": {"version": 1}
            }
        )
        return result.modified_count == 1

    @store_operation
    async def list_for_user(
        self,
        user_id: ObjectId,
        group_id: Optional[ObjectId] = None,
        skip: int = 0,
        limit: int = 0
    ) -> Tuple[List[SplitBill], int]:
        """Bills where the user is creator or participant, newest first."""
        query = {
            "is_deleted": False,
            "$or": [
                {"created_by": user_id},
                {"participants.user_id": user_id}
            ]
        }
        if group_id is not None:
            query["group_id"] = group_id

        total = await self.collection.count_documents(query)
        cursor = self.collection.find(query).sort("created_at", -1).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(None)
        return [SplitBill(**doc) for doc in docs], total

    @store_operation
    async def list_by_group(self, group_id: ObjectId) -> List[SplitBill]:
        docs = await self.collection.find({
            "group_id": group_id,
            "is_deleted": False
        }).sort("created_at", 1).to_list(None)
        return [SplitBill(**doc) for doc in docs]

    @store_operation
    async def aggregate_stats(
        self,
        user_id: ObjectId,
        since: Optional[datetime] = None,
        group_id: Optional[ObjectId] = None
    ) -> Dict[str, List[dict]]:
        """
        Totals over the user's live bills, grouped three ways.

        Each row is {"_id": key, "amount_cents": sum, "count": n}, keyed by
        settlement state, category and group respectively.
        """
        match = {
            "is_deleted": False,
            "$or": [
                {"created_by": user_id},
                {"participants.user_id": user_id}
            ]
        }
        if since is not None:
            match["created_at"] = {"$gte": since}
        if group_id is not None:
            match["group_id"] = group_id

        async def grouped(key: str, extra_match: Optional[dict] = None) -> List[dict]:
            pipeline = [
                {"$match": {**match, **(extra_match or {})}},
                {"$group": {
                    "_id": key,
                    "amount_cents": {"$sum": "$total_amount_cents"},
                    "count": {"$sum": 1}
                }}
            ]
            return await self.collection.aggregate(pipeline).to_list(None)

        # Bills outside any group have no group row
        grouped_only = None if group_id is not None else {"group_id": {"$ne": None}}
        return {
            "by_settled": await grouped("$is_settled"),
            "by_category": await grouped("$category"),
            "by_group": await grouped("$group_id", grouped_only)
        }
