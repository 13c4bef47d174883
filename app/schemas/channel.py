from pydantic import BaseModel, Field
from datetime import datetime

from app.models.channel import Channel


class ChannelCreate(BaseModel):
    """Schema for creating a channel. Blank names are rejected by the service."""
    name: str = Field(..., max_length=80)


class ChannelResponse(BaseModel):
    """Schema for channel response."""
    id: str
    workspace_id: str
    name: str
    created_by: str
    created_at: datetime

    @classmethod
    def from_model(cls, channel: Channel) -> "ChannelResponse":
        return cls(
            id=str(channel.id),
            workspace_id=str(channel.workspace_id),
            name=channel.name,
            created_by=str(channel.created_by),
            created_at=channel.created_at,
        )
