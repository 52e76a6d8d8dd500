"""
Background Job: Process Deletion Requests

Permanently erases user accounts and everything attached to them.
CAUTION: this cannot be undone.

Erasure runs child rows before parents. Every step except the last is
best-effort: a failure is logged and the next step still runs. Removing the
identity record is the final step and the only one that aborts the request,
since a login left behind without its data is worse than a delayed retry.
A failed request is not retried and stays flagged for an operator.
"""

import logging
from datetime import datetime
from functools import partial

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow import database
from privacyflow.config import settings
from privacyflow.exceptions import FatalError
from privacyflow.identity import IdentityProvider, get_identity_provider
from privacyflow.jobs.claims import BatchResult, claim, claimable
from privacyflow.models.consent import UserConsent
from privacyflow.models.data_export import DataExport
from privacyflow.models.deletion_request import DeletionRequest, DeletionStatus
from privacyflow.models.privacy_audit import PrivacyAuditLog
from privacyflow.models.therapy import ActionItem, SessionSummary, TherapySession
from privacyflow.models.user_settings import UserSettings
from privacyflow.services.audit_service import log_delete_completed, log_delete_failed, log_delete_processing
from privacyflow.services.settings_service import stage_settings_upsert
from privacyflow.storage import BlobStorage, delete_all_user_exports, get_blob_storage
from privacyflow.utils.best_effort import StepResult, best_effort
from privacyflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


async def _delete_rows(session: AsyncSession, statement) -> int:
    try:
        result = await session.execute(statement.execution_options(synchronize_session=False))
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise
    return result.rowcount


async def erase_user_data(
    session: AsyncSession,
    user_id: str,
    request_id: str,
    storage: BlobStorage,
    identity: IdentityProvider,
) -> list[StepResult]:
    """
    Delete all data held for a user, then the user's account.

    Returns the outcome of each best-effort step.

    Raises:
        FatalError: the identity record could not be removed
    """
    logger.info(f"[Deletion] Starting data deletion for user {user_id}")

    user_sessions = select(TherapySession.id).where(TherapySession.user_id == user_id)
    steps = [
        ("action_items", partial(_delete_rows, session, delete(ActionItem).where(ActionItem.user_id == user_id))),
        (
            "session_summaries",
            partial(_delete_rows, session, delete(SessionSummary).where(SessionSummary.session_id.in_(user_sessions))),
        ),
        (
            "therapy_sessions",
            partial(_delete_rows, session, delete(TherapySession).where(TherapySession.user_id == user_id)),
        ),
        ("export_files", partial(delete_all_user_exports, storage, user_id)),
        ("data_exports", partial(_delete_rows, session, delete(DataExport).where(DataExport.user_id == user_id))),
        ("user_settings", partial(_delete_rows, session, delete(UserSettings).where(UserSettings.user_id == user_id))),
        ("user_consents", partial(_delete_rows, session, delete(UserConsent).where(UserConsent.user_id == user_id))),
        (
            "privacy_audit",
            partial(_delete_rows, session, delete(PrivacyAuditLog).where(PrivacyAuditLog.user_id == user_id)),
        ),
        (
            "deletion_requests",
            partial(
                _delete_rows,
                session,
                delete(DeletionRequest).where(DeletionRequest.user_id == user_id, DeletionRequest.id != request_id),
            ),
        ),
    ]

    results = []
    for name, action in steps:
        step = await best_effort(name, action)
        if not step.ok:
            logger.error(f"[Deletion] Failed to delete {name} for user {user_id}: {step.error}")
        results.append(step)

    try:
        await identity.delete_account(user_id)
    except Exception as e:
        logger.error(f"[Deletion] Failed to delete auth user {user_id}: {e}")
        raise FatalError(str(e) or "Failed to delete user account") from e

    logger.info(f"[Deletion] Data deletion completed for user {user_id}")
    return results


async def _set_status(session: AsyncSession, request_id: str, **values) -> None:
    await session.execute(
        update(DeletionRequest)
        .where(DeletionRequest.id == request_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def _mark_failed(
    session: AsyncSession,
    request_id: str,
    user_id: str,
    requested_at: datetime,
    message: str,
) -> None:
    """
    Record a failed erasure and keep the account blocked.

    The settings row may already be gone when the identity step fails, so
    the pending-deletion flag is written again in the same commit as the
    failed status. A partially erased account never becomes usable.
    """
    await stage_settings_upsert(user_id, session, pending_deletion=True, deletion_requested_at=requested_at)
    await session.execute(
        update(DeletionRequest)
        .where(DeletionRequest.id == request_id)
        .values(status=DeletionStatus.FAILED, reason=message, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def process_deletion_requests(
    storage: BlobStorage | None = None,
    identity: IdentityProvider | None = None,
    now: datetime | None = None,
) -> BatchResult:
    """
    Process one batch of deletion requests, oldest first.

    Picks up queued requests and expedited ones the user already moved to
    processing. One failing request never stops the batch.
    """
    storage = storage or get_blob_storage()
    identity = identity or get_identity_provider()
    now = now or utcnow()
    result = BatchResult()

    logger.info("[Deletion Job] Starting deletion processing...")

    async with database.AsyncSessionLocal() as session:
        candidates = await session.execute(
            select(DeletionRequest)
            .where(
                claimable(
                    DeletionRequest,
                    DeletionStatus.QUEUED,
                    DeletionStatus.PROCESSING,
                    now,
                    include_unstarted=True,
                )
            )
            .order_by(DeletionRequest.created_at.asc())
            .limit(settings.deletion_batch_size)
        )
        requests = list(candidates.scalars().all())

        if not requests:
            logger.info("[Deletion Job] No queued deletions found")
            return result

        logger.info(f"[Deletion Job] Processing {len(requests)} deletion(s)")

        for request in requests:
            # Plain values; the row may be gone from the session's view after erasure
            request_id, user_id, requested_at = request.id, request.user_id, request.created_at

            try:
                if not await claim(session, DeletionRequest, request, DeletionStatus.PROCESSING, now):
                    result.skipped.append(request_id)
                    continue
            except Exception as e:
                await session.rollback()
                logger.error(f"[Deletion Job] Failed to claim deletion {request_id}: {e}")
                result.skipped.append(request_id)
                continue

            result.processed += 1
            logger.info(f"[Deletion Job] Processing deletion {request_id} for user {user_id}")
            await log_delete_processing(user_id, request_id)

            try:
                await erase_user_data(session, user_id, request_id, storage, identity)
                await _set_status(
                    session,
                    request_id,
                    status=DeletionStatus.COMPLETED,
                    completed_at=utcnow(),
                    updated_at=utcnow(),
                )
            except Exception as e:
                await session.rollback()
                message = str(e) or "Unknown error"
                logger.error(f"[Deletion Job] Failed to process deletion {request_id}: {message}")
                try:
                    await _mark_failed(session, request_id, user_id, requested_at, message)
                except Exception as mark_error:
                    await session.rollback()
                    logger.error(f"[Deletion Job] Could not mark deletion {request_id} as failed: {mark_error}")
                await log_delete_failed(user_id, request_id, message)
                result.failed.append(request_id)
                continue

            # The user no longer exists; only the request id links this event
            await log_delete_completed(request_id)
            result.succeeded.append(request_id)
            logger.info(f"[Deletion Job] Deletion {request_id} completed successfully")

    logger.info("[Deletion Job] Deletion processing complete")
    return result
