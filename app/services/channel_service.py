"""
ChannelService - channel listing, lookup and creation scoped to the caller's workspace.

Authorization (same pattern for every workspace-scoped service):
1. No caller -> queries return empty/None, mutations raise "Not authenticated"
2. No membership -> queries return empty/None, mutations raise "No workspace membership"
3. Entity in another workspace -> "Not authorized"
4. Reads and writes go through workspace_id indexes
"""

from typing import List, Optional

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from app.core import metrics
from app.core.exceptions import BadRequestError, ConflictError, UnauthorizedError
from app.core.logging_config import get_logger
from app.models.channel import Channel
from app.services.tenancy_service import TenancyService, get_tenancy_service

logger = get_logger(__name__)


class ChannelService:
    """Service for channel operations."""

    def __init__(self, tenancy: TenancyService):
        self.tenancy = tenancy

    async def list_channels(self, user_id: Optional[PydanticObjectId]) -> List[Channel]:
        """Channels in the caller's workspace, in creation order."""
        if user_id is None:
            return []

        membership = await self.tenancy.resolve_membership(user_id)
        if not membership:
            return []

        return await Channel.find(
            Channel.workspace_id == membership.workspace_id
        ).sort("+created_at", "+_id").to_list()

    async def get_channel(
        self,
        user_id: Optional[PydanticObjectId],
        channel_id: PydanticObjectId
    ) -> Optional[Channel]:
        """
        Get a channel by id.

        Returns:
            The channel, or None (no caller, no membership, no such channel)

        Raises:
            ForbiddenError: Channel belongs to another workspace
        """
        if user_id is None:
            return None

        membership = await self.tenancy.resolve_membership(user_id)
        if not membership:
            return None

        channel = await Channel.get(channel_id)
        if not channel:
            return None

        self.tenancy.authorize(
            membership,
            channel.workspace_id,
            resource="channel",
            detail="Not authorized to access this channel"
        )
        return channel

    async def create_channel(self, user_id: Optional[PydanticObjectId], name: str) -> Channel:
        """
        Create a channel in the caller's workspace.

        Raises:
            UnauthorizedError: No caller
            BadRequestError: Blank name
            ForbiddenError: Caller has no workspace membership
            ConflictError: A channel with this name already exists in the workspace
        """
        if user_id is None:
            raise UnauthorizedError("Not authenticated")

        name = name.strip()
        if not name:
            raise BadRequestError("Channel name is required")

        membership = await self.tenancy.require_membership(user_id)

        existing = await Channel.find_one(
            Channel.workspace_id == membership.workspace_id,
            Channel.name == name
        )
        if existing:
            raise ConflictError("Channel already exists")

        channel = Channel(workspace_id=membership.workspace_id, name=name, created_by=user_id)
        try:
            await channel.insert()
        except DuplicateKeyError:
            raise ConflictError("Channel already exists")

        metrics.channels_created_total.inc()
        metrics.mongodb_operations_total.labels(
            operation="insert",
            collection="channels",
            status="success"
        ).inc()
        logger.info(
            "channel_created",
            channel_id=str(channel.id),
            workspace_id=str(membership.workspace_id),
            user_id=str(user_id)
        )
        return channel


def get_channel_service() -> ChannelService:
    return ChannelService(get_tenancy_service())
