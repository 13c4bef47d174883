from typing import Optional

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, status

from app.core.exceptions import UnauthorizedError
from app.core.logging_config import get_logger
from app.dependencies import get_optional_user_id
from app.schemas.workspace import EnsureWorkspaceResponse, WorkspaceResponse
from app.services.identity_service import IdentityService, get_identity_service
from app.services.tenancy_service import TenancyService, get_tenancy_service

router = APIRouter()
logger = get_logger(__name__)


@router.get(
    "/workspaces/me",
    response_model=Optional[WorkspaceResponse],
    status_code=status.HTTP_200_OK
)
async def get_my_workspace(
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    tenancy: TenancyService = Depends(get_tenancy_service)
):
    """The caller's workspace and role, or null when there is none."""
    if user_id is None:
        return None

    result = await tenancy.get_workspace_for_user(user_id)
    if result is None:
        return None

    workspace, role = result
    return WorkspaceResponse(
        id=str(workspace.id),
        name=workspace.name,
        created_at=workspace.created_at,
        role=role
    )


@router.post(
    "/workspaces/ensure",
    response_model=EnsureWorkspaceResponse,
    status_code=status.HTTP_200_OK
)
async def ensure_workspace(
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    identity: IdentityService = Depends(get_identity_service),
    tenancy: TenancyService = Depends(get_tenancy_service)
):
    """
    First-login bootstrap.

    Idempotent: safe to call on every sign-in and from concurrent clients.
    ``created`` is true only for the call that created the workspace.
    """
    if user_id is None:
        raise UnauthorizedError("Not authenticated")

    user = await identity.get_user(str(user_id))
    if user is None:
        raise UnauthorizedError("Not authenticated")

    workspace_id, created = await tenancy.ensure_workspace_for_user(user)
    return EnsureWorkspaceResponse(workspace_id=str(workspace_id), created=created)
