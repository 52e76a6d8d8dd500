"""
Cron Routes

Entry points for an external scheduler. When ``CRON_SECRET`` is set the
caller must send it as a bearer token.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from privacyflow.config import settings
from privacyflow.identity import IdentityProvider, get_identity_provider
from privacyflow.jobs.retention import enforce_data_retention
from privacyflow.jobs.runner import process_pending_jobs
from privacyflow.storage import BlobStorage, get_blob_storage
from privacyflow.utils.clock import isoformat, utcnow

router = APIRouter(prefix="/cron", tags=["Cron"])

logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not settings.cron_secret:
        return
    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        logger.warning("[Cron] Rejected call with a missing or wrong secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/process-jobs", dependencies=[Depends(verify_cron_secret)])
async def run_pending_jobs(
    storage: BlobStorage = Depends(get_blob_storage),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    summary = await process_pending_jobs(storage=storage, identity=identity)
    return {
        "ok": True,
        "message": "Jobs processed successfully",
        "results": summary,
        "timestamp": isoformat(utcnow()),
    }


@router.get("/process-jobs")
async def cron_health():
    return {"ok": True, "message": "Cron endpoint is healthy", "timestamp": isoformat(utcnow())}


@router.post("/retention", dependencies=[Depends(verify_cron_secret)])
async def run_retention(storage: BlobStorage = Depends(get_blob_storage)):
    outcome = await enforce_data_retention(storage=storage)
    return {
        "ok": True,
        "expired_exports": outcome.expired_exports,
        "sessions_deleted": outcome.sessions_deleted,
        "timestamp": isoformat(utcnow()),
    }
