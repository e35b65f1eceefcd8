from typing import Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.session import store_operation
from app.models.group import Group


class GroupRepository:
    """Read-only access to chat groups and their membership."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["groups"]

    @store_operation
    async def get_group(self, group_id: ObjectId) -> Optional[Group]:
        doc = await self.collection.find_one({"_id": group_id})
        if doc:
            return Group(**doc)
        return None

    @store_operation
    async def get_names(self, group_ids: List[ObjectId]) -> Dict[ObjectId, str]:
        cursor = self.collection.find({"_id": {"$in": group_ids}}, {"name": 1})
        docs = await cursor.to_list(None)
        return {doc["_id"]: doc.get("name") for doc in docs}
