from typing import List, Optional

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Query, status

from app.core.logging_config import get_logger
from app.dependencies import get_optional_user_id
from app.schemas.message import SearchResult
from app.services.message_service import MessageService, get_message_service

router = APIRouter()
logger = get_logger(__name__)


@router.get(
    "/messages/search",
    response_model=List[SearchResult],
    status_code=status.HTTP_200_OK
)
async def search_messages(
    q: str = Query("", max_length=500, description="Whitespace-separated terms, all must match"),
    channel_id: Optional[PydanticObjectId] = Query(None, description="Restrict to one channel"),
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    message_service: MessageService = Depends(get_message_service)
):
    """
    Search messages in the caller's workspace, newest first.

    Multi-Tenant Security:
    - Always filtered by the caller's workspace_id
    - A channel filter from another workspace is rejected with 403

    Returns at most SEARCH_RESULT_LIMIT results; there is no pagination.
    """
    return await message_service.search_messages(user_id, q, channel_id)
