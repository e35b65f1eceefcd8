from typing import Iterable, Optional, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.session import store_operation
from app.models.user import UserInDB


class UserRepository:
    """Read-only access to user records."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    @store_operation
    async def get_user_by_id(self, user_id: ObjectId) -> Optional[UserInDB]:
        user = await self.collection.find_one({
            "_id": user_id,
            "is_deleted": {"$ne": True}
        })
        if user:
            return UserInDB(**user)
        return None

    @store_operation
    async def find_existing_ids(self, user_ids: Iterable[ObjectId]) -> Set[ObjectId]:
        """Return the subset of user_ids that belong to live users."""
        ids = list(set(user_ids))
        if not ids:
            return set()
        docs = await self.collection.find(
            {"_id": {"$in": ids}, "is_deleted": {"$ne": True}},
            {"_id": 1}
        ).to_list(None)
        return {doc["_id"] for doc in docs}
