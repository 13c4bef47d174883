from typing import List, Optional

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Request, status

from app.core.logging_config import get_logger
from app.core.rate_limit import limiter
from app.dependencies import get_optional_user_id
from app.schemas.channel import ChannelCreate, ChannelResponse
from app.schemas.message import MessageCreate, MessageResponse, MessageWithAuthor
from app.services.channel_service import ChannelService, get_channel_service
from app.services.message_service import MessageService, get_message_service

router = APIRouter()
logger = get_logger(__name__)


@router.get(
    "/channels",
    response_model=List[ChannelResponse],
    status_code=status.HTTP_200_OK
)
async def list_channels(
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    channel_service: ChannelService = Depends(get_channel_service)
):
    """Channels in the caller's workspace, oldest first. Empty without a membership."""
    channels = await channel_service.list_channels(user_id)
    return [ChannelResponse.from_model(c) for c in channels]


@router.post(
    "/channels",
    response_model=ChannelResponse,
    status_code=status.HTTP_201_CREATED
)
@limiter.limit("10/minute")
async def create_channel(
    request: Request,
    channel_data: ChannelCreate,
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    channel_service: ChannelService = Depends(get_channel_service)
):
    """
    Create a channel in the caller's workspace.

    Multi-Tenant Security:
    - The channel's workspace_id is taken from the caller's membership, never the request
    - Names are unique per workspace (409 on duplicates)
    """
    channel = await channel_service.create_channel(user_id, channel_data.name)
    return ChannelResponse.from_model(channel)


@router.get(
    "/channels/{channel_id}",
    response_model=Optional[ChannelResponse],
    status_code=status.HTTP_200_OK
)
async def get_channel(
    channel_id: PydanticObjectId,
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    channel_service: ChannelService = Depends(get_channel_service)
):
    """A single channel, null if unknown; 403 if it belongs to another workspace."""
    channel = await channel_service.get_channel(user_id, channel_id)
    return ChannelResponse.from_model(channel) if channel else None


@router.get(
    "/channels/{channel_id}/messages",
    response_model=List[MessageWithAuthor],
    status_code=status.HTTP_200_OK
)
async def list_messages(
    channel_id: PydanticObjectId,
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    message_service: MessageService = Depends(get_message_service)
):
    """
    Full channel history in creation order, each message with author name and avatar.

    Multi-Tenant Security:
    - Validates channel.workspace_id == caller's membership workspace_id
    """
    return await message_service.list_messages(user_id, channel_id)


@router.post(
    "/channels/{channel_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED
)
@limiter.limit("20/minute")  # Prevent message spam
async def send_message(
    request: Request,
    channel_id: PydanticObjectId,
    message_data: MessageCreate,
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    message_service: MessageService = Depends(get_message_service)
):
    """
    Post a message to a channel.

    Multi-Tenant Security:
    - Validates channel.workspace_id == caller's membership workspace_id
    - Message stored with the channel's workspace_id for tenant isolation
    """
    logger.info("api_send_message", channel_id=str(channel_id), user_id=str(user_id) if user_id else None)

    message = await message_service.send_message(user_id, channel_id, message_data.content)
    return MessageResponse.from_model(message)
