from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


class GroupMember(BaseModel):
    user_id: ObjectId
    role: str = "member"
    is_active: bool = True

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")


class Group(BaseModel):
    """Chat group as owned by the groups service (read-only here)."""
    id: ObjectId = Field(alias="_id")
    name: str
    members: List[GroupMember] = []

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore"
    )

    def active_member_ids(self) -> set[ObjectId]:
        return {m.user_id for m in self.members if m.is_active}

    def is_member(self, user_id: Optional[ObjectId]) -> bool:
        return user_id in self.active_member_ids()
