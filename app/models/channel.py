from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone


class Channel(Document):
    """MongoDB document for a channel. Names are unique within a workspace."""
    workspace_id: PydanticObjectId
    name: str = Field(..., max_length=80)
    created_by: PydanticObjectId
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "channels"
        indexes = [
            IndexModel(
                [("workspace_id", ASCENDING), ("name", ASCENDING)],
                name="channels_workspace_name_unique",
                unique=True,
            ),
        ]
