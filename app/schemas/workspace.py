from pydantic import BaseModel
from datetime import datetime

from app.models.workspace import WorkspaceRole


class WorkspaceResponse(BaseModel):
    """The caller's workspace and their role in it."""
    id: str
    name: str
    created_at: datetime
    role: WorkspaceRole


class EnsureWorkspaceResponse(BaseModel):
    """Result of the first-login bootstrap."""
    workspace_id: str
    created: bool
