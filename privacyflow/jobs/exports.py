"""
Background Job: Process Export Requests

Builds the JSON export of everything a user has stored, uploads it to blob
storage and marks the request ready with a 24 hour download window.
Failed exports are never retried; the user has to request a new one.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from privacyflow import database
from privacyflow.config import settings
from privacyflow.identity import IdentityProvider, get_identity_provider
from privacyflow.jobs.claims import BatchResult, claim, claimable
from privacyflow.models.consent import UserConsent
from privacyflow.models.data_export import DataExport, ExportStatus
from privacyflow.models.therapy import TherapySession
from privacyflow.models.user import User
from privacyflow.services.audit_service import log_export_failed, log_export_ready
from privacyflow.services.settings_service import get_user_settings
from privacyflow.storage import BlobStorage, export_expiry, get_blob_storage, upload_export_data
from privacyflow.utils.clock import isoformat, utcnow

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"


async def build_user_export(session: AsyncSession, user: User, now: datetime | None = None) -> dict[str, Any]:
    """
    Assemble the full export for a user.

    Only public fields are included; internal columns such as agent context
    or model metadata are left out.
    """
    user_settings = await get_user_settings(user.id, session)

    consents = await session.execute(
        select(UserConsent).where(UserConsent.user_id == user.id).order_by(UserConsent.created_at.desc())
    )

    sessions = await session.execute(
        select(TherapySession)
        .where(TherapySession.user_id == user.id)
        .options(selectinload(TherapySession.summaries), selectinload(TherapySession.action_items))
        .order_by(TherapySession.started_at.desc())
    )

    conversations = []
    for conversation in sessions.scalars().all():
        started = isoformat(conversation.started_at)
        conversations.append(
            {
                "id": conversation.id,
                "created_at": started,
                "status": conversation.status,
                "duration_minutes": conversation.duration_minutes,
                "messages": [
                    {
                        "id": f"{conversation.id}-{index}",
                        "role": message.get("role"),
                        "content": message.get("content"),
                        "created_at": message.get("timestamp") or started,
                    }
                    for index, message in enumerate(conversation.transcript or [])
                ],
                "summaries": [
                    {
                        "id": summary.id,
                        "text": summary.summary,
                        "key_topics": summary.key_topics,
                        "created_at": isoformat(summary.created_at),
                    }
                    for summary in conversation.summaries
                ],
                "action_items": [
                    {
                        "id": item.id,
                        "text": item.item,
                        "due_date": item.due_date.isoformat() if item.due_date else None,
                        "completed": item.completed,
                        "created_at": isoformat(item.created_at),
                    }
                    for item in conversation.action_items
                ],
            }
        )

    return {
        "version": EXPORT_FORMAT_VERSION,
        "generated_at": isoformat(now or utcnow()),
        "user": {
            "id": user.id,
            "email": user.email or "",
            "created_at": isoformat(user.created_at),
        },
        "settings": {
            "data_retention_days": user_settings.data_retention_days,
            "has_active_consent": bool(user_settings.has_active_consent),
            "consent_version": user_settings.consent_version,
        },
        "consents": [
            {
                "created_at": isoformat(consent.created_at),
                "version": consent.consent_version,
                "locale": consent.locale,
            }
            for consent in consents.scalars().all()
        ],
        "conversations": conversations,
    }


async def _generate_export(
    session: AsyncSession,
    export: DataExport,
    storage: BlobStorage,
    identity: IdentityProvider,
    now: datetime,
) -> None:
    user = await identity.get_user(export.user_id)
    if user is None:
        raise LookupError("User not found")

    data = await build_user_export(session, user, now)
    file_path = await upload_export_data(storage, export.user_id, export.id, data)

    await session.execute(
        update(DataExport)
        .where(DataExport.id == export.id)
        .values(
            status=ExportStatus.READY,
            file_path=file_path,
            expires_at=export_expiry(now),
            error=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def _mark_failed(session: AsyncSession, export: DataExport, message: str, now: datetime) -> None:
    try:
        await session.execute(
            update(DataExport)
            .where(DataExport.id == export.id)
            .values(status=ExportStatus.FAILED, error=message, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"[Export Job] Could not mark export {export.id} as failed: {e}")


async def process_export_requests(
    storage: BlobStorage | None = None,
    identity: IdentityProvider | None = None,
    now: datetime | None = None,
) -> BatchResult:
    """
    Process one batch of queued exports, oldest first.

    A failure is recorded on that request and the batch moves on.
    """
    storage = storage or get_blob_storage()
    identity = identity or get_identity_provider()
    now = now or utcnow()
    result = BatchResult()

    logger.info("[Export Job] Starting export processing...")

    async with database.AsyncSessionLocal() as session:
        candidates = await session.execute(
            select(DataExport)
            .where(claimable(DataExport, ExportStatus.QUEUED, ExportStatus.PROCESSING, now))
            .order_by(DataExport.created_at.asc())
            .limit(settings.export_batch_size)
        )
        exports = list(candidates.scalars().all())

        if not exports:
            logger.info("[Export Job] No queued exports found")
            return result

        logger.info(f"[Export Job] Processing {len(exports)} export(s)")

        for export in exports:
            try:
                if not await claim(session, DataExport, export, ExportStatus.PROCESSING, now):
                    result.skipped.append(export.id)
                    continue
            except Exception as e:
                await session.rollback()
                logger.error(f"[Export Job] Failed to claim export {export.id}: {e}")
                result.skipped.append(export.id)
                continue

            result.processed += 1
            logger.info(f"[Export Job] Processing export {export.id} for user {export.user_id}")

            try:
                await _generate_export(session, export, storage, identity, now)
            except Exception as e:
                await session.rollback()
                message = str(e) or "Unknown error"
                logger.error(f"[Export Job] Failed to process export {export.id}: {message}")
                await _mark_failed(session, export, message, now)
                await log_export_failed(export.user_id, export.id, message)
                result.failed.append(export.id)
                continue

            await log_export_ready(export.user_id, export.id)
            result.succeeded.append(export.id)
            logger.info(f"[Export Job] Export {export.id} completed successfully")

    logger.info("[Export Job] Export processing complete")
    return result
