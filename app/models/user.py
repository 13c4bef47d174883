from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone
from typing import Optional


class User(Document):
    """
    MongoDB document for an authenticated identity.

    Email is stored lower-cased and is unique. Users never own data directly;
    everything they see is reached through their single WorkspaceMember row.
    """
    email: str = Field(..., max_length=320)
    name: Optional[str] = Field(default=None, max_length=100)
    password_hash: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("email", ASCENDING)], name="users_email_unique", unique=True),
        ]
