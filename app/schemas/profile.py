from pydantic import BaseModel, Field
from typing import Optional


class ProfileUpdate(BaseModel):
    """Schema for updating the caller's profile."""
    name: str = Field(..., max_length=100)
    avatar_id: Optional[str] = None


class ProfileResponse(BaseModel):
    """
    The caller's profile.

    ``name`` falls back to the account name or email local-part when no
    profile document has been saved yet.
    """
    user_id: str
    name: str
    email: Optional[str] = None
    avatar_id: Optional[str] = None
    avatar_url: Optional[str] = None


class UploadUrlResponse(BaseModel):
    """Signed, short-lived URL the client POSTs the file body to."""
    upload_url: str


class StoredFileResponse(BaseModel):
    """Returned by the upload endpoint; pass storage_id as avatar_id."""
    storage_id: str
