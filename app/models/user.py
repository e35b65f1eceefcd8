from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional
from bson import ObjectId


class UserInDB(BaseModel):
    """User record as owned by the accounts service (read-only here)."""
    id: ObjectId = Field(alias="_id")
    name: str
    email: Optional[str] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        arbitrary_types_allowed=True,
        extra="ignore"
    )


class CurrentUser(BaseModel):
    """Authenticated caller."""
    id: str
    name: str
