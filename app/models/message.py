from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel
from datetime import datetime, timezone


class Message(Document):
    """
    MongoDB document for chat messages.

    Multi-Tenant Architecture:
    - workspace_id: tenant boundary, always equal to the channel's workspace_id
    - channel_id: owning channel
    - Immutable once written (no edit or delete operations)

    Indexes:
    - Compound (channel_id, created_at): ordered channel history
    - Compound (workspace_id, channel_id, created_at): workspace-scoped search
    """
    workspace_id: PydanticObjectId
    channel_id: PydanticObjectId
    author_id: PydanticObjectId
    content: str = Field(..., min_length=1, max_length=10000)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "messages"
        indexes = [
            IndexModel(
                [("channel_id", ASCENDING), ("created_at", ASCENDING)],
                name="messages_channel_created",
            ),
            IndexModel(
                [("workspace_id", ASCENDING), ("channel_id", ASCENDING), ("created_at", DESCENDING)],
                name="messages_workspace_channel_created",
            ),
        ]
