from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.core.exceptions import NotFoundError
from app.core.logging_config import get_logger
from app.schemas.profile import StoredFileResponse
from app.services.blob_store import BlobStore, get_blob_store

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/files/upload",
    response_model=StoredFileResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_file(
    request: Request,
    token: str = Query(..., description="Signed upload token from /profile/upload-url"),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """
    Store the raw request body.

    The body is the file itself (not multipart); Content-Type must be image/*.
    Token and content type are checked before any of the body is read, and
    reading stops once the body passes MAX_UPLOAD_BYTES.
    """
    uploader, content_type = blob_store.authorize_upload(token, request.headers.get("content-type"))
    data = await blob_store.read_body(request.stream(), request.headers.get("content-length"))
    stored = await blob_store.store(uploader, content_type, data)
    return StoredFileResponse(storage_id=str(stored.id))


@router.get("/files/{storage_id}")
async def download_file(
    storage_id: PydanticObjectId,
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Serve a stored file by id."""
    stored = await blob_store.get(storage_id)
    if stored is None:
        raise NotFoundError("File not found")

    return Response(
        content=stored.data,
        media_type=stored.content_type,
        headers={"Cache-Control": "public, max-age=31536000, immutable"}
    )
