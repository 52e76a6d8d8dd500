"""
Data Export Requests

User-facing half of the export workflow: request an export, check the
latest export's status and turn a ready export into a signed download URL.
The heavy lifting happens in ``privacyflow.jobs.exports``.
"""

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.config import settings
from privacyflow.exceptions import (
    AccountPendingDeletionError,
    ConsentRequiredError,
    ExpiredError,
    ExportNotAllowedError,
    NoFileError,
    NotFoundError,
    NotReadyError,
    PersistenceError,
    PrivacyError,
    RateLimitedError,
    StorageError,
)
from privacyflow.models.data_export import DataExport, ExportStatus
from privacyflow.services.audit_service import log_export_downloaded, log_export_requested
from privacyflow.services.reauth_service import ReauthToken, require_fresh_auth
from privacyflow.services.settings_service import get_user_settings
from privacyflow.storage import BlobStorage, get_export_download_url
from privacyflow.utils.clock import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


def export_cooldown() -> timedelta:
    return timedelta(hours=settings.export_cooldown_hours)


def hours_until(remaining: timedelta) -> int:
    """Whole hours left, rounded up."""
    return math.ceil(remaining.total_seconds() / 3600)


async def _latest_export(user_id: str, db: AsyncSession) -> DataExport | None:
    result = await db.execute(
        select(DataExport).where(DataExport.user_id == user_id).order_by(DataExport.created_at.desc()).limit(1)
    )
    return result.scalars().first()


async def request_export(
    user_id: str | None,
    db: AsyncSession,
    reauth_token: ReauthToken | str | None,
    now: datetime | None = None,
) -> DataExport:
    """
    Queue a new export for the user.

    Checks run in a fixed order: fresh re-authentication, active consent,
    export permission, then the cool-down since the latest export.

    Raises:
        ReauthRequiredError, ConsentRequiredError, ExportNotAllowedError,
        RateLimitedError, PersistenceError
    """
    now = as_naive_utc(now or utcnow())
    require_fresh_auth(user_id, reauth_token, now=now)

    user_settings = await get_user_settings(user_id, db)
    if not user_settings.has_active_consent:
        raise ConsentRequiredError("Active consent required to export data")
    if not user_settings.allow_data_export:
        raise ExportNotAllowedError()
    if user_settings.pending_deletion:
        raise AccountPendingDeletionError()

    try:
        latest = await _latest_export(user_id, db)
    except SQLAlchemyError as e:
        logger.error(f"Failed to check export history for user {user_id}: {e}")
        raise PersistenceError("Failed to check export eligibility", operation="request_export") from e

    if latest is not None:
        elapsed = now - latest.created_at
        if elapsed < export_cooldown():
            raise RateLimitedError(hours_until(export_cooldown() - elapsed))

    export = DataExport(
        user_id=user_id,
        status=ExportStatus.QUEUED,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(export)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create export request for user {user_id}: {e}")
        raise PersistenceError("Failed to create export request", operation="request_export") from e

    logger.info(f"Export {export.id} queued for user {user_id}")
    await log_export_requested(user_id, export.id)
    return export


async def get_export_status(user_id: str, db: AsyncSession) -> DataExport | None:
    """Return the user's most recent export request, if any."""
    try:
        return await _latest_export(user_id, db)
    except SQLAlchemyError as e:
        logger.error(f"Failed to read export status for user {user_id}: {e}")
        raise PersistenceError("Failed to get export status", operation="get_export_status") from e


async def get_download_url(
    user_id: str,
    export_id: str,
    db: AsyncSession,
    storage: BlobStorage,
    now: datetime | None = None,
) -> str:
    """
    Mint a signed download URL for a ready, unexpired export owned by the user.

    Raises:
        NotFoundError: no such export, or it belongs to someone else
        NotReadyError: the export is not ready yet
        ExpiredError: the export's download window has passed
        NoFileError: the export has no stored file
        StorageError: the storage gateway could not sign a URL
    """
    now = as_naive_utc(now or utcnow())

    result = await db.execute(select(DataExport).where(DataExport.id == export_id, DataExport.user_id == user_id))
    export = result.scalars().first()
    if export is None:
        raise NotFoundError("Export")

    if export.status != ExportStatus.READY:
        raise NotReadyError(export.status.value)

    if export.is_expired(now):
        raise ExpiredError()

    if not export.file_path:
        raise NoFileError()

    try:
        url = await get_export_download_url(storage, export.file_path)
    except PrivacyError:
        raise
    except Exception as e:
        logger.error(f"Failed to sign download URL for export {export_id}: {e}")
        raise StorageError("Failed to generate download link") from e

    await log_export_downloaded(user_id, export.id)
    return url
