from pydantic import BaseModel, Field, field_validator, ConfigDict
from datetime import datetime
from typing import Optional
import html

import bleach

from app.models.message import Message


class MessageCreate(BaseModel):
    """Schema for sending a message."""
    content: str = Field(..., max_length=10000)

    @field_validator('content')
    @classmethod
    def sanitize_content(cls, v: str) -> str:
        """
        Strip all HTML/JS tags while preserving text content, then trim.

        bleach escapes &, < and > in what it keeps; those are unescaped again so
        the stored text (and what search matches against) is what the user typed.

        Whitespace-only content survives validation as "" and is rejected by
        the service with "Message cannot be empty".
        """
        return html.unescape(bleach.clean(v, tags=[], strip=True)).strip()


class AuthorInfo(BaseModel):
    """Display data for a message author."""
    name: str
    avatar_url: Optional[str] = None


class MessageResponse(BaseModel):
    """Schema for a stored message."""
    id: str
    workspace_id: str
    channel_id: str
    author_id: str
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, message: Message) -> "MessageResponse":
        return cls(
            id=str(message.id),
            workspace_id=str(message.workspace_id),
            channel_id=str(message.channel_id),
            author_id=str(message.author_id),
            content=message.content,
            created_at=message.created_at,
        )


class MessageWithAuthor(MessageResponse):
    """A message enriched with its author's display data."""
    author: AuthorInfo

    @classmethod
    def build(cls, message: Message, author: AuthorInfo) -> "MessageWithAuthor":
        return cls(**MessageResponse.from_model(message).model_dump(), author=author)


class SearchResult(MessageWithAuthor):
    """A search hit: message, author, and the name of the channel it is in."""
    channel_name: str

    @classmethod
    def build(cls, message: Message, author: AuthorInfo, channel_name: str) -> "SearchResult":
        return cls(
            **MessageResponse.from_model(message).model_dump(),
            author=author,
            channel_name=channel_name,
        )
