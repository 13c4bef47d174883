from typing import Optional

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, status

from app.core.logging_config import get_logger
from app.dependencies import get_optional_user_id
from app.schemas.profile import ProfileResponse, ProfileUpdate, UploadUrlResponse
from app.services.profile_service import ProfileService, get_profile_service

router = APIRouter()
logger = get_logger(__name__)


@router.get(
    "/profile",
    response_model=Optional[ProfileResponse],
    status_code=status.HTTP_200_OK
)
async def get_profile(
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """The caller's profile, or null when unauthenticated or without a workspace."""
    return await profile_service.get_profile(user_id)


@router.put(
    "/profile",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK
)
async def update_profile(
    payload: ProfileUpdate,
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Set the display name and, optionally, an uploaded avatar (by storage id)."""
    return await profile_service.update_profile(user_id, payload.name, payload.avatar_id)


@router.post(
    "/profile/upload-url",
    response_model=UploadUrlResponse,
    status_code=status.HTTP_200_OK
)
async def generate_upload_url(
    user_id: Optional[PydanticObjectId] = Depends(get_optional_user_id),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Signed URL for uploading an avatar image (valid for UPLOAD_URL_EXPIRE_SECONDS)."""
    return UploadUrlResponse(upload_url=profile_service.generate_upload_url(user_id))
