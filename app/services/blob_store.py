"""
BlobStore - small file storage for avatars.

Upload flow:
1. Authenticated client asks for an upload URL (signed, one hour)
2. Client POSTs the raw file body to that URL with its Content-Type
3. Response carries a storage_id the client passes as avatar_id

Download URLs are stable: {PUBLIC_BASE_URL}{API_PREFIX}/files/{storage_id}
"""

from typing import AsyncIterator, Optional, Tuple

import jwt
from beanie import PydanticObjectId
from bson.errors import InvalidId

from app.config import settings
from app.core import metrics
from app.core.exceptions import BadRequestError, UnauthorizedError
from app.core.logging_config import get_logger
from app.core.security import create_upload_token, decode_upload_token
from app.models.stored_file import StoredFile

logger = get_logger(__name__)


def _base_url() -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{settings.API_PREFIX}"


def too_large_detail() -> str:
    return f"File exceeds the {settings.MAX_UPLOAD_BYTES} byte limit"


def parse_storage_id(storage_id: str) -> Optional[PydanticObjectId]:
    try:
        return PydanticObjectId(storage_id)
    except (InvalidId, TypeError):
        return None


class BlobStore:
    """Stores uploaded files and resolves their download URLs."""

    def generate_upload_url(self, user_id: PydanticObjectId) -> str:
        token = create_upload_token(str(user_id))
        return f"{_base_url()}/files/upload?token={token}"

    def authorize_upload(self, token: str, content_type: Optional[str]) -> Tuple[str, str]:
        """
        Check an upload before its body is read.

        Returns:
            (uploader user id, normalized content type)

        Raises:
            UnauthorizedError: Missing, invalid or expired upload token
            BadRequestError: Not an image
        """
        try:
            uploader = decode_upload_token(token)
        except jwt.InvalidTokenError as e:
            logger.warning("upload_token_rejected", error=str(e))
            raise UnauthorizedError("Invalid or expired upload URL")

        content_type = (content_type or "").split(";")[0].strip().lower()
        if not content_type.startswith("image/"):
            raise BadRequestError("Only image uploads are supported")
        return uploader, content_type

    async def read_body(self, chunks: AsyncIterator[bytes], declared_length: Optional[str] = None) -> bytes:
        """
        Collect an upload body, stopping as soon as it passes MAX_UPLOAD_BYTES.

        Raises:
            BadRequestError: Declared or actual size over the limit
        """
        limit = settings.MAX_UPLOAD_BYTES
        if declared_length and declared_length.isdigit() and int(declared_length) > limit:
            raise BadRequestError(too_large_detail())

        body = bytearray()
        async for chunk in chunks:
            body.extend(chunk)
            if len(body) > limit:
                raise BadRequestError(too_large_detail())
        return bytes(body)

    async def store(self, uploader: str, content_type: str, data: bytes) -> StoredFile:
        """
        Store an authorized upload.

        Raises:
            BadRequestError: Empty, or larger than MAX_UPLOAD_BYTES
        """
        if not data:
            raise BadRequestError("Upload body is empty")
        if len(data) > settings.MAX_UPLOAD_BYTES:
            raise BadRequestError(too_large_detail())

        stored = StoredFile(
            content_type=content_type,
            size=len(data),
            data=data,
            uploaded_by=PydanticObjectId(uploader),
        )
        await stored.insert()

        metrics.files_uploaded_total.inc()
        logger.info(
            "file_stored",
            storage_id=str(stored.id),
            content_type=content_type,
            size=len(data),
            uploaded_by=uploader
        )
        return stored

    async def get(self, storage_id: PydanticObjectId) -> Optional[StoredFile]:
        return await StoredFile.get(storage_id)

    def get_url(self, storage_id: Optional[PydanticObjectId]) -> Optional[str]:
        """Download URL for a storage id (None passes through)."""
        if storage_id is None:
            return None
        return f"{_base_url()}/files/{storage_id}"


_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """Get singleton BlobStore instance."""
    global _blob_store
    if _blob_store is None:
        _blob_store = BlobStore()
    return _blob_store
