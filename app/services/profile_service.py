"""
ProfileService - display names and avatars.

Also resolves author display data for message listings and search results:
profile name, else account name, else email, else "Unknown".
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from beanie import PydanticObjectId
from beanie.operators import In
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from app.core.logging_config import get_logger
from app.models.profile import Profile
from app.models.user import User
from app.schemas.message import AuthorInfo
from app.schemas.profile import ProfileResponse
from app.services.blob_store import BlobStore, get_blob_store, parse_storage_id
from app.services.tenancy_service import TenancyService, get_tenancy_service

logger = get_logger(__name__)

UNKNOWN_AUTHOR = "Unknown"


class ProfileService:
    """Service for profile reads, updates and author resolution."""

    def __init__(self, tenancy: TenancyService, blob_store: BlobStore):
        self.tenancy = tenancy
        self.blob_store = blob_store

    async def get_profile(self, user_id: Optional[PydanticObjectId]) -> Optional[ProfileResponse]:
        """The caller's profile, or None without a caller or membership."""
        if user_id is None:
            return None

        if not await self.tenancy.resolve_membership(user_id):
            return None

        user = await User.get(user_id)
        if not user:
            return None

        profile = await Profile.find_one(Profile.user_id == user_id)
        name = profile.name if profile else (user.name or user.email.split("@")[0])
        avatar_id = profile.avatar_id if profile else None

        return ProfileResponse(
            user_id=str(user_id),
            name=name,
            email=user.email,
            avatar_id=str(avatar_id) if avatar_id else None,
            avatar_url=self.blob_store.get_url(avatar_id),
        )

    async def update_profile(
        self,
        user_id: Optional[PydanticObjectId],
        name: str,
        avatar_id: Optional[str] = None
    ) -> ProfileResponse:
        """
        Update the caller's name and (optionally) avatar.

        Raises:
            UnauthorizedError: No caller
            BadRequestError: Blank name
            ForbiddenError: Caller has no workspace membership
            NotFoundError: avatar_id is not a file the caller uploaded
        """
        if user_id is None:
            raise UnauthorizedError("Not authenticated")

        name = name.strip()
        if not name:
            raise BadRequestError("Name is required")

        await self.tenancy.require_membership(user_id)

        avatar_oid = None
        if avatar_id:
            avatar_oid = parse_storage_id(avatar_id)
            stored = await self.blob_store.get(avatar_oid) if avatar_oid is not None else None
            # Only the caller's own uploads; other users' files look missing
            if stored is None or stored.uploaded_by != user_id:
                raise NotFoundError("File not found")

        await self.upsert_profile(user_id, name, avatar_oid, keep_avatar=avatar_oid is None)

        logger.info("profile_updated", user_id=str(user_id), avatar_changed=avatar_oid is not None)
        return await self.get_profile(user_id)

    async def upsert_profile(
        self,
        user_id: PydanticObjectId,
        name: str,
        avatar_id: Optional[PydanticObjectId] = None,
        keep_avatar: bool = True
    ) -> Profile:
        """
        Insert or update the profile row for a user (also used by the seed).

        keep_avatar=True leaves an existing avatar untouched when avatar_id is None.
        """
        profile = await Profile.find_one(Profile.user_id == user_id)
        if profile is None:
            profile = Profile(user_id=user_id, name=name, avatar_id=avatar_id)
            try:
                await profile.insert()
                return profile
            except DuplicateKeyError:
                profile = await Profile.find_one(Profile.user_id == user_id)
                if profile is None:
                    raise

        profile.name = name
        if avatar_id is not None or not keep_avatar:
            profile.avatar_id = avatar_id
        profile.updated_at = datetime.now(timezone.utc)
        await profile.save()
        return profile

    def generate_upload_url(self, user_id: Optional[PydanticObjectId]) -> str:
        if user_id is None:
            raise UnauthorizedError("Not authenticated")
        return self.blob_store.generate_upload_url(user_id)

    async def resolve_authors(
        self,
        author_ids: Iterable[PydanticObjectId]
    ) -> Dict[PydanticObjectId, AuthorInfo]:
        """Display data for a set of authors, two queries regardless of count."""
        ids = list(set(author_ids))
        if not ids:
            return {}

        profiles = {
            p.user_id: p for p in await Profile.find(In(Profile.user_id, ids)).to_list()
        }
        users = {u.id: u for u in await User.find(In(User.id, ids)).to_list()}

        authors = {}
        for author_id in ids:
            profile = profiles.get(author_id)
            user = users.get(author_id)
            name = (
                (profile.name if profile else None)
                or (user.name if user else None)
                or (user.email if user else None)
                or UNKNOWN_AUTHOR
            )
            authors[author_id] = AuthorInfo(
                name=name,
                avatar_url=self.blob_store.get_url(profile.avatar_id if profile else None),
            )
        return authors


def get_profile_service() -> ProfileService:
    return ProfileService(get_tenancy_service(), get_blob_store())
