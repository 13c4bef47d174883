"""
TenancyService - single source of truth for workspace membership.

Every user belongs to at most one workspace. Every other service resolves
the caller's membership here before touching workspace-scoped data, and
every entity read or written is checked against that membership's
workspace_id.

Invariant enforcement:
- Storage: unique index on workspace_members.user_id
- Reads: more than one membership row is a WorkspaceIntegrityError (500),
  never resolved by picking one
- Bootstrap: the unique index is the idempotency key; losing the insert
  race means another call already created the workspace
"""

from typing import Optional, Tuple

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from app.core import metrics
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    WorkspaceIntegrityError,
)
from app.core.logging_config import get_logger
from app.models.channel import Channel
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember, WorkspaceRole

logger = get_logger(__name__)

DEFAULT_CHANNEL_NAME = "general"


def default_workspace_name(user: User) -> str:
    """``"<display name>'s Workspace"``, falling back to the email local-part, then "My"."""
    base = (user.name or "").strip()
    if not base and user.email:
        base = user.email.split("@")[0].strip()
    return f"{base or 'My'}'s Workspace"


class TenancyService:
    """Membership resolution, first-login bootstrap and internal membership writes."""

    async def resolve_membership(
        self,
        user_id: PydanticObjectId,
        expected_workspace_id: Optional[PydanticObjectId] = None
    ) -> Optional[WorkspaceMember]:
        """
        Look up the (at most one) membership row for a user.

        Args:
            user_id: Caller's user id
            expected_workspace_id: If given, the membership must be in this workspace

        Returns:
            The membership, or None if the user has none

        Raises:
            WorkspaceIntegrityError: More than one membership row exists
            ConflictError: Membership exists in a workspace other than expected_workspace_id
        """
        memberships = await WorkspaceMember.find(
            WorkspaceMember.user_id == user_id
        ).limit(2).to_list()

        if not memberships:
            return None

        if len(memberships) > 1:
            metrics.membership_integrity_violations_total.inc()
            logger.error(
                "membership_integrity_violation",
                user_id=str(user_id),
                workspace_ids=[str(m.workspace_id) for m in memberships],
                alert=True
            )
            raise WorkspaceIntegrityError()

        membership = memberships[0]

        if expected_workspace_id is not None and membership.workspace_id != expected_workspace_id:
            logger.warning(
                "membership_in_other_workspace",
                user_id=str(user_id),
                workspace_id=str(membership.workspace_id),
                expected_workspace_id=str(expected_workspace_id)
            )
            raise ConflictError("User already belongs to a different workspace")

        return membership

    async def require_membership(self, user_id: PydanticObjectId) -> WorkspaceMember:
        """
        Resolve membership for a write path.

        Raises:
            ForbiddenError: No membership (writes must not silently no-op)
            WorkspaceIntegrityError: More than one membership row exists
        """
        membership = await self.resolve_membership(user_id)
        if not membership:
            logger.info("workspace_membership_missing", user_id=str(user_id))
            raise ForbiddenError("No workspace membership found for user")
        return membership

    async def is_member(self, user_id: PydanticObjectId, workspace_id: PydanticObjectId) -> bool:
        membership = await self.resolve_membership(user_id)
        return membership is not None and membership.workspace_id == workspace_id

    def authorize(
        self,
        membership: WorkspaceMember,
        workspace_id: PydanticObjectId,
        resource: str,
        detail: str
    ) -> None:
        """
        Check that an entity belongs to the caller's workspace.

        Raises:
            ForbiddenError: The entity's workspace differs from the membership's
        """
        if workspace_id != membership.workspace_id:
            metrics.authorization_denials_total.labels(resource=resource).inc()
            logger.warning(
                "cross_workspace_access_blocked",
                resource=resource,
                user_id=str(membership.user_id),
                member_workspace_id=str(membership.workspace_id),
                entity_workspace_id=str(workspace_id),
                security_violation=True
            )
            raise ForbiddenError(detail)

    async def ensure_workspace_for_user(self, user: User) -> Tuple[PydanticObjectId, bool]:
        """
        Idempotent first-login bootstrap.

        Flow:
        1. Existing membership -> (workspace_id, False)
        2. Pre-allocate the workspace id and insert the owner membership; the
           unique user_id index lets exactly one concurrent caller win
        3. Winner creates the workspace and its default channel -> (workspace_id, True)
        4. Losers resolve the winner's membership -> (workspace_id, False)

        Raises:
            WorkspaceIntegrityError: More than one membership row exists
        """
        existing = await self.resolve_membership(user.id)
        if existing:
            await self._complete_bootstrap(existing, user)
            return existing.workspace_id, False

        membership = WorkspaceMember(
            workspace_id=PydanticObjectId(),
            user_id=user.id,
            role=WorkspaceRole.OWNER,
        )
        try:
            await membership.insert()
        except DuplicateKeyError:
            metrics.workspace_bootstrap_races_total.inc()
            winner = await self.require_membership(user.id)
            logger.info(
                "workspace_bootstrap_race_lost",
                user_id=str(user.id),
                workspace_id=str(winner.workspace_id)
            )
            return winner.workspace_id, False

        await self._complete_bootstrap(membership, user)

        metrics.workspaces_bootstrapped_total.inc()
        logger.info(
            "workspace_bootstrapped",
            user_id=str(user.id),
            workspace_id=str(membership.workspace_id)
        )
        return membership.workspace_id, True

    async def _complete_bootstrap(self, membership: WorkspaceMember, user: User) -> None:
        """
        Create the owner's workspace and default channel if either is missing.

        Also repairs a bootstrap that stopped after the membership insert.
        Only applies to owner memberships; members of someone else's workspace
        are left alone.
        """
        if membership.role != WorkspaceRole.OWNER:
            return

        workspace = await Workspace.get(membership.workspace_id)
        if workspace is not None:
            return

        try:
            await Workspace(
                id=membership.workspace_id,
                name=default_workspace_name(user),
                created_by=user.id,
            ).insert()
        except DuplicateKeyError:
            return  # A concurrent call finished the bootstrap

        try:
            await Channel(
                workspace_id=membership.workspace_id,
                name=DEFAULT_CHANNEL_NAME,
                created_by=user.id,
            ).insert()
        except DuplicateKeyError:
            pass

    async def get_workspace_for_user(
        self,
        user_id: PydanticObjectId
    ) -> Optional[Tuple[Workspace, WorkspaceRole]]:
        """The caller's workspace and role, or None when there is none."""
        membership = await self.resolve_membership(user_id)
        if not membership:
            return None

        workspace = await Workspace.get(membership.workspace_id)
        if not workspace:
            return None

        return workspace, membership.role

    async def create_workspace(self, name: str, created_by: PydanticObjectId) -> Workspace:
        """
        Internal creation primitive (seed only, not client-callable).

        Creates no membership and no default channel.

        Raises:
            BadRequestError: Blank name
        """
        name = name.strip()
        if not name:
            raise BadRequestError("Workspace name is required")

        workspace = Workspace(name=name, created_by=created_by)
        await workspace.insert()

        logger.info("workspace_created", workspace_id=str(workspace.id), created_by=str(created_by))
        return workspace

    async def add_member(
        self,
        workspace_id: PydanticObjectId,
        user_id: PydanticObjectId,
        role: WorkspaceRole
    ) -> WorkspaceMember:
        """
        Internal, idempotent membership write (seed only, not client-callable).

        Updates the role if the row exists instead of duplicating it.

        Raises:
            NotFoundError: Workspace does not exist
            ConflictError: User is a member of a different workspace
            WorkspaceIntegrityError: More than one membership row exists
        """
        if not await Workspace.get(workspace_id):
            raise NotFoundError("Workspace not found")

        existing = await self.resolve_membership(user_id, expected_workspace_id=workspace_id)

        if existing is None:
            member = WorkspaceMember(workspace_id=workspace_id, user_id=user_id, role=role)
            try:
                await member.insert()
                logger.info(
                    "workspace_member_added",
                    workspace_id=str(workspace_id),
                    user_id=str(user_id),
                    role=role.value
                )
                return member
            except DuplicateKeyError:
                existing = await self.resolve_membership(user_id, expected_workspace_id=workspace_id)
                if existing is None:
                    raise

        if existing.role != role:
            existing.role = role
            await existing.save()
            logger.info(
                "workspace_member_role_updated",
                workspace_id=str(workspace_id),
                user_id=str(user_id),
                role=role.value
            )

        return existing


_tenancy_service: Optional[TenancyService] = None


def get_tenancy_service() -> TenancyService:
    """Get singleton TenancyService instance."""
    global _tenancy_service
    if _tenancy_service is None:
        _tenancy_service = TenancyService()
    return _tenancy_service
