from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone
from enum import Enum


class WorkspaceRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class Workspace(Document):
    """
    MongoDB document for a tenant.

    Created once per user on first sign-in (or by the seed). Never deleted.
    """
    name: str = Field(..., max_length=200)
    created_by: PydanticObjectId
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "workspaces"
        indexes = [
            IndexModel([("name", ASCENDING)], name="workspaces_name"),
        ]


class WorkspaceMember(Document):
    """
    MongoDB document linking a user to their workspace.

    Single-workspace-per-user:
    - Unique index on user_id: the storage layer rejects a second row
    - Reads still check for >1 row and fail fatally (data written before the
      index existed, or inserted around it)

    Indexes:
    - Unique user_id: membership resolution and bootstrap idempotency key
    - Compound (workspace_id, user_id): role lookups for add_member
    - workspace_id: member listing
    """
    workspace_id: PydanticObjectId
    user_id: PydanticObjectId
    role: WorkspaceRole
    joined_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "workspace_members"
        indexes = [
            IndexModel([("user_id", ASCENDING)], name="workspace_members_user_id_unique", unique=True),
            IndexModel(
                [("workspace_id", ASCENDING), ("user_id", ASCENDING)],
                name="workspace_members_workspace_user",
            ),
            IndexModel([("workspace_id", ASCENDING)], name="workspace_members_workspace"),
        ]
