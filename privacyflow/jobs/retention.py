"""
Data Retention Job

Runs daily. Removes export files whose download window has passed and
deletes conversations older than each user's retention window, together
with their summaries and action items.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow import database
from privacyflow.models.data_export import DataExport, ExportStatus
from privacyflow.models.therapy import ActionItem, SessionSummary, TherapySession
from privacyflow.models.user_settings import DEFAULT_RETENTION_DAYS, UserSettings
from privacyflow.storage import BlobStorage, delete_export_file, get_blob_storage
from privacyflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class RetentionResult:
    expired_exports: int = 0
    sessions_deleted: int = 0


async def purge_expired_exports(session: AsyncSession, storage: BlobStorage, now: datetime) -> int:
    """
    Delete expired export files and clear their paths.

    The request rows stay; downloads already fail as expired.
    """
    result = await session.execute(
        select(DataExport).where(
            DataExport.status == ExportStatus.READY,
            DataExport.expires_at < now,
            DataExport.file_path.is_not(None),
        )
    )

    purged = 0
    for export in result.scalars().all():
        try:
            await delete_export_file(storage, export.file_path)
        except Exception as e:
            logger.error(f"[Retention] Failed to remove export file {export.file_path}: {e}")
            continue

        await session.execute(
            update(DataExport)
            .where(DataExport.id == export.id)
            .values(file_path=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        purged += 1

    return purged


async def purge_old_conversations(session: AsyncSession, now: datetime) -> int:
    """Delete each user's conversations older than their retention window."""
    rows = await session.execute(
        select(TherapySession.user_id, UserSettings.data_retention_days)
        .outerjoin(UserSettings, UserSettings.user_id == TherapySession.user_id)
        .distinct()
    )

    total = 0
    for user_id, retention_days in rows.all():
        cutoff = now - timedelta(days=retention_days or DEFAULT_RETENTION_DAYS)
        old_sessions = select(TherapySession.id).where(
            TherapySession.user_id == user_id,
            TherapySession.started_at < cutoff,
        )

        await session.execute(
            delete(ActionItem).where(ActionItem.session_id.in_(old_sessions)).execution_options(synchronize_session=False)
        )
        await session.execute(
            delete(SessionSummary)
            .where(SessionSummary.session_id.in_(old_sessions))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            delete(TherapySession)
            .where(TherapySession.user_id == user_id, TherapySession.started_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        if result.rowcount:
            logger.info(f"[Retention] Deleted {result.rowcount} conversation(s) for user {user_id}")
            total += result.rowcount

    return total


async def enforce_data_retention(storage: BlobStorage | None = None, now: datetime | None = None) -> RetentionResult:
    storage = storage or get_blob_storage()
    now = now or utcnow()
    outcome = RetentionResult()

    async with database.AsyncSessionLocal() as session:
        outcome.expired_exports = await purge_expired_exports(session, storage, now)
        outcome.sessions_deleted = await purge_old_conversations(session, now)

    logger.info(
        "[Retention] Removed %d expired export file(s) and %d conversation(s)",
        outcome.expired_exports,
        outcome.sessions_deleted,
    )
    return outcome
