"""
Dependency injection for FastAPI routes.

Provides reusable dependencies that can be easily mocked in tests:

    app.dependency_overrides[get_message_service] = lambda: FakeMessageService()

Caller identity is explicit: routes receive ``Optional[PydanticObjectId]``
and pass it to the services, which decide whether an anonymous caller gets
an empty result (queries) or a 401 (mutations).
"""

from typing import Optional

import jwt
from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.logging_config import get_logger
from app.core.security import decode_access_token
from app.services.channel_service import ChannelService, get_channel_service
from app.services.identity_service import IdentityService, get_identity_service
from app.services.message_service import MessageService, get_message_service
from app.services.profile_service import ProfileService, get_profile_service
from app.services.tenancy_service import TenancyService, get_tenancy_service
from app.services.blob_store import BlobStore, get_blob_store

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[PydanticObjectId]:
    """
    Resolve the caller from the bearer token.

    A missing, malformed or expired token is an anonymous caller, not an error.
    """
    if credentials is None:
        return None

    try:
        token = decode_access_token(credentials.credentials)
        user_id = PydanticObjectId(token.user_id)
    except (jwt.InvalidTokenError, InvalidId, TypeError) as e:
        logger.debug("bearer_token_ignored", error_type=type(e).__name__)
        return None

    request.state.user_id = str(user_id)
    return user_id


__all__ = [
    "get_optional_user_id",
    "get_identity_service",
    "get_tenancy_service",
    "get_channel_service",
    "get_message_service",
    "get_profile_service",
    "get_blob_store",
    "IdentityService",
    "TenancyService",
    "ChannelService",
    "MessageService",
    "ProfileService",
    "BlobStore",
]
