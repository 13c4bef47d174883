from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone
from typing import Optional


class Profile(Document):
    """Display profile, one per user. Upserted, never duplicated."""
    user_id: PydanticObjectId
    name: str = Field(..., max_length=100)
    avatar_id: Optional[PydanticObjectId] = None  # StoredFile id
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "profiles"
        indexes = [
            IndexModel([("user_id", ASCENDING)], name="profiles_user_id_unique", unique=True),
        ]
