"""
File Download Endpoint.

Serves blobs from local storage through the signed, expiring URLs issued
by ``LocalBlobStorageService.signed_url``. With S3 storage, clients use
presigned S3 URLs instead and this route answers 404.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from ....core.exceptions import ForbiddenError, NotFoundError
from ....services.blob_storage_service import (
    BlobStorageError,
    LocalBlobStorageService,
    StorageBackend,
    detect_mime_type,
    get_blob_storage_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files")


@router.get(
    "/{key:path}",
    summary="Download a stored file",
    responses={
        200: {"description": "File content"},
        403: {"description": "Invalid or expired signature"},
        404: {"description": "File not found"},
    },
)
async def download_file(
    key: str,
    storage: Annotated[StorageBackend, Depends(get_blob_storage_service)],
    expires: int = Query(..., description="Expiry as a Unix timestamp"),
    signature: str = Query(..., min_length=1),
) -> FileResponse:
    if not isinstance(storage, LocalBlobStorageService):
        raise NotFoundError(message="File not found", resource_type="file")

    try:
        valid = storage.verify_signature(key, expires, signature)
        path = storage.path_for(key)
    except BlobStorageError as exc:
        raise NotFoundError(message="File not found", resource_type="file") from exc

    if not valid:
        logger.warning("Rejected file download: key=%s", key)
        raise ForbiddenError(message="Invalid or expired download link", error_code="INVALID_SIGNATURE")
    if not path.is_file():
        raise NotFoundError(message="File not found", resource_type="file", resource_id=key)

    return FileResponse(path=path, media_type=detect_mime_type(path.name), filename=path.name)
