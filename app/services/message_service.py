"""
MessageService - message history, sending and search within the caller's workspace.

Security Model:
- Every channel touched is checked against the caller's membership workspace_id
- Messages carry workspace_id (denormalized from the channel) so history and
  search queries stay on workspace-scoped indexes
- Messages are immutable: no edit or delete operations
"""

import re
import time
from typing import List, Optional

from beanie import PydanticObjectId
from beanie.operators import In

from app.config import settings
from app.core import metrics
from app.core.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from app.core.logging_config import get_logger
from app.models.channel import Channel
from app.models.message import Message
from app.schemas.message import MessageWithAuthor, SearchResult
from app.services.profile_service import ProfileService, get_profile_service
from app.services.tenancy_service import TenancyService, get_tenancy_service

logger = get_logger(__name__)

UNKNOWN_CHANNEL = "Unknown Channel"


def search_terms(query: str) -> List[str]:
    """Whitespace-separated terms of a search query, blanks dropped."""
    return [term for term in query.split() if term]


def content_filter(terms: List[str]) -> dict:
    """Case-insensitive filter matching content that contains every term."""
    return {
        "$and": [
            {"content": {"$regex": re.escape(term), "$options": "i"}}
            for term in terms
        ]
    }


class MessageService:
    """
    Service for message operations.

    All operations validate:
    1. Caller is authenticated (mutations) or results are empty (queries)
    2. Caller has a workspace membership
    3. Channel belongs to the caller's workspace
    """

    def __init__(self, tenancy: TenancyService, profiles: ProfileService):
        self.tenancy = tenancy
        self.profiles = profiles

    async def list_messages(
        self,
        user_id: Optional[PydanticObjectId],
        channel_id: PydanticObjectId
    ) -> List[MessageWithAuthor]:
        """
        Channel history in creation order, each message with its author.

        Returns [] without a caller, without a membership, or for an unknown channel.

        Raises:
            ForbiddenError: Channel belongs to another workspace
        """
        if user_id is None:
            return []

        membership = await self.tenancy.resolve_membership(user_id)
        if not membership:
            return []

        channel = await Channel.get(channel_id)
        if not channel:
            return []

        self.tenancy.authorize(
            membership,
            channel.workspace_id,
            resource="channel",
            detail="Not authorized to access this channel"
        )

        messages = await Message.find(
            Message.channel_id == channel.id
        ).sort("+created_at", "+_id").to_list()

        authors = await self.profiles.resolve_authors(m.author_id for m in messages)

        logger.info(
            "messages_fetched",
            channel_id=str(channel.id),
            workspace_id=str(channel.workspace_id),
            returned=len(messages)
        )
        return [MessageWithAuthor.build(m, authors[m.author_id]) for m in messages]

    async def send_message(
        self,
        user_id: Optional[PydanticObjectId],
        channel_id: PydanticObjectId,
        content: str
    ) -> Message:
        """
        Post a message to a channel in the caller's workspace.

        Args:
            user_id: Caller's user id
            channel_id: Target channel
            content: Message text (already sanitized, trimmed here)

        Returns:
            Created Message

        Raises:
            UnauthorizedError: No caller
            ForbiddenError: No membership, or channel in another workspace
            BadRequestError: Blank content
            NotFoundError: Channel does not exist
        """
        if user_id is None:
            raise UnauthorizedError("Not authenticated")

        start_time = time.time()

        try:
            membership = await self.tenancy.require_membership(user_id)

            content = content.strip()
            if not content:
                raise BadRequestError("Message cannot be empty")

            channel = await Channel.get(channel_id)
            if not channel:
                raise NotFoundError("Channel not found")

            self.tenancy.authorize(
                membership,
                channel.workspace_id,
                resource="message",
                detail="Not authorized to send messages to this channel"
            )

            message = Message(
                workspace_id=channel.workspace_id,
                channel_id=channel.id,
                author_id=user_id,
                content=content,
            )
            await message.insert()

            metrics.mongodb_operations_total.labels(
                operation="insert",
                collection="messages",
                status="success"
            ).inc()
            metrics.messages_sent_total.inc()

            logger.info(
                "message_sent",
                message_id=str(message.id),
                channel_id=str(channel.id),
                workspace_id=str(channel.workspace_id),
                author_id=str(user_id)
            )
            return message

        except Exception as e:
            metrics.message_operation_errors_total.labels(
                operation="send",
                error_type=type(e).__name__
            ).inc()
            raise

        finally:
            metrics.message_operation_duration_seconds.labels(
                operation="send"
            ).observe(time.time() - start_time)

    async def search_messages(
        self,
        user_id: Optional[PydanticObjectId],
        query: str,
        channel_id: Optional[PydanticObjectId] = None
    ) -> List[SearchResult]:
        """
        Search message content in the caller's workspace, newest first.

        Every whitespace-separated term must appear in the content (case-insensitive).
        Results are capped at SEARCH_RESULT_LIMIT with no pagination.

        Returns [] for a blank query, no caller, no membership, or an unknown
        filter channel.

        Raises:
            ForbiddenError: Filter channel belongs to another workspace
        """
        terms = search_terms(query or "")
        if not terms or user_id is None:
            return []

        membership = await self.tenancy.resolve_membership(user_id)
        if not membership:
            return []

        start_time = time.time()
        scope = "workspace"
        criteria = [Message.workspace_id == membership.workspace_id]

        if channel_id is not None:
            channel = await Channel.get(channel_id)
            if not channel:
                return []

            self.tenancy.authorize(
                membership,
                channel.workspace_id,
                resource="search",
                detail="Not authorized to search this channel"
            )
            scope = "channel"
            criteria.append(Message.channel_id == channel.id)

        messages = await Message.find(
            *criteria,
            content_filter(terms)
        ).sort("-created_at", "-_id").limit(settings.SEARCH_RESULT_LIMIT).to_list()

        authors = await self.profiles.resolve_authors(m.author_id for m in messages)

        channel_ids = list({m.channel_id for m in messages})
        channel_names = {}
        if channel_ids:
            channel_names = {
                c.id: c.name for c in await Channel.find(In(Channel.id, channel_ids)).to_list()
            }

        metrics.message_searches_total.labels(scope=scope).inc()
        metrics.message_operation_duration_seconds.labels(
            operation="search"
        ).observe(time.time() - start_time)

        logger.info(
            "messages_searched",
            workspace_id=str(membership.workspace_id),
            scope=scope,
            terms=len(terms),
            returned=len(messages)
        )

        return [
            SearchResult.build(
                m,
                authors[m.author_id],
                channel_names.get(m.channel_id, UNKNOWN_CHANNEL)
            )
            for m in messages
        ]


def get_message_service() -> MessageService:
    return MessageService(get_tenancy_service(), get_profile_service())
