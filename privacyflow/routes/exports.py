"""
Data Export Routes (right to data portability)

Requesting an export needs a fresh re-authentication passed in the
``X-Reauth-Token`` header. The export itself is built by the job processor.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.auth import get_active_user, get_reauth_token
from privacyflow.config import settings
from privacyflow.database import get_db
from privacyflow.models.user import User
from privacyflow.schemas import DownloadResponse, ExportResponse, ExportStatusResponse
from privacyflow.services import export_service
from privacyflow.storage import BlobStorage, get_blob_storage

router = APIRouter(prefix="/data/export", tags=["Data Export"])

logger = logging.getLogger(__name__)


@router.post("/request", response_model=ExportResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_data_export(
    reauth_token: Optional[str] = Depends(get_reauth_token),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    """
    Queue an export of all the user's data.

    One export per 24 hours, counted from when the previous one was requested.
    """
    return await export_service.request_export(current_user.id, db, reauth_token)


@router.get("/status", response_model=ExportStatusResponse)
async def export_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    export = await export_service.get_export_status(current_user.id, db)
    return ExportStatusResponse(export=export)


@router.get("/download", response_model=DownloadResponse)
async def download_export(
    export_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    current_user: User = Depends(get_active_user),
):
    url = await export_service.get_download_url(current_user.id, export_id, db, storage)
    return DownloadResponse(url=url, expires_in=settings.signed_url_ttl_seconds)
