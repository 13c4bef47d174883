from beanie import Document, PydanticObjectId
from pydantic import Field
from datetime import datetime, timezone


class StoredFile(Document):
    """
    Blob Store backing document.

    Files are small (avatars), capped by MAX_UPLOAD_BYTES, so the bytes live
    inline in the document.
    """
    content_type: str
    size: int
    data: bytes
    uploaded_by: PydanticObjectId
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "stored_files"
