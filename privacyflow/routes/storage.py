"""
Signed download route for export files.

Serves a stored object only when the URL carries a valid, unexpired
signature minted by the blob storage gateway.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from privacyflow.exceptions import StorageError
from privacyflow.storage import EXPORT_CONTENT_TYPE, BlobStorage, get_blob_storage

router = APIRouter(prefix="/storage", tags=["Storage"])

logger = logging.getLogger(__name__)


@router.get("/{path:path}")
async def download_object(
    path: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage: BlobStorage = Depends(get_blob_storage),
):
    verify = getattr(storage, "verify_signed_path", None)
    if verify is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    try:
        valid = verify(path, expires, signature)
    except (OverflowError, OSError, ValueError):
        valid = False
    if not valid:
        logger.warning(f"Rejected download of {path}: invalid or expired signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")

    try:
        file_path = storage.open_path(path)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    return FileResponse(file_path, media_type=EXPORT_CONTENT_TYPE, filename=file_path.name)
