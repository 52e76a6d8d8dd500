"""
Account Deletion Requests

User-facing half of the erasure workflow. A request starts ``queued``; the
user may expedite it (``processing``) or cancel it while it is still queued.
The erasure itself runs in ``privacyflow.jobs.deletions``.

Creating a request flags the account ``pending_deletion`` in the same
transaction, so the account is blocked from the moment the request exists.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    UnauthenticatedError,
    ValidationError,
)
from privacyflow.identity import IdentityProvider
from privacyflow.models.deletion_request import IN_FLIGHT_STATUSES, DeletionRequest, DeletionStatus
from privacyflow.services.audit_service import log_delete_canceled, log_delete_requested
from privacyflow.services.reauth_service import ReauthToken, require_fresh_auth
from privacyflow.services.settings_service import stage_settings_upsert
from privacyflow.utils.best_effort import best_effort
from privacyflow.utils.clock import as_naive_utc, utcnow

logger = logging.getLogger(__name__)

CONFIRMATION_PHRASE = "DELETE"


async def get_in_flight_request(user_id: str, db: AsyncSession, exclude_id: str | None = None) -> DeletionRequest | None:
    query = select(DeletionRequest).where(
        DeletionRequest.user_id == user_id,
        DeletionRequest.status.in_(IN_FLIGHT_STATUSES),
    )
    if exclude_id:
        query = query.where(DeletionRequest.id != exclude_id)
    result = await db.execute(query.order_by(DeletionRequest.created_at.desc()).limit(1))
    return result.scalars().first()


async def _get_owned_request(user_id: str, request_id: str, db: AsyncSession) -> DeletionRequest:
    result = await db.execute(
        select(DeletionRequest)
        .where(DeletionRequest.id == request_id, DeletionRequest.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    request = result.scalars().first()
    if request is None:
        raise NotFoundError("Deletion request")
    return request


async def request_deletion(
    user_id: str | None,
    db: AsyncSession,
    identity: IdentityProvider,
    reauth_token: ReauthToken | str | None,
    confirmation_phrase: str | None,
    reason: str | None = None,
    now: datetime | None = None,
) -> DeletionRequest:
    """
    Create a deletion request and block the account.

    After the request is stored, every login session of the user is dropped.
    That step is best-effort: a failure is logged and the request stands.

    Raises:
        ReauthRequiredError: no fresh re-authentication
        ValidationError: the confirmation phrase is not exactly "DELETE"
        ConflictError: a queued or processing request already exists
        PersistenceError: the store write failed
    """
    now = as_naive_utc(now or utcnow())
    require_fresh_auth(user_id, reauth_token, now=now)

    if confirmation_phrase != CONFIRMATION_PHRASE:
        raise ValidationError(f'You must type "{CONFIRMATION_PHRASE}" to confirm', field="confirmation_phrase")

    existing = await get_in_flight_request(user_id, db)
    if existing is not None:
        raise ConflictError("You already have a pending deletion request", request_id=existing.id)

    request = DeletionRequest(
        user_id=user_id,
        status=DeletionStatus.QUEUED,
        reason=reason,
        confirmation_phrase=confirmation_phrase,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(request)
        await stage_settings_upsert(user_id, db, pending_deletion=True, deletion_requested_at=now)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create deletion request for user {user_id}: {e}")
        raise PersistenceError("Failed to create deletion request", operation="request_deletion") from e

    logger.info(f"Deletion request {request.id} queued for user {user_id}")
    await log_delete_requested(user_id, request.id, reason)

    step = await best_effort("invalidate_sessions", identity.invalidate_sessions, user_id)
    if not step.ok:
        logger.warning(f"Sessions for user {user_id} were not invalidated; account remains blocked")
    return request


async def confirm_deletion(
    user_id: str | None,
    request_id: str,
    db: AsyncSession,
    reauth_token: ReauthToken | str | None,
    now: datetime | None = None,
) -> DeletionRequest:
    """
    Expedite a queued request by moving it straight to ``processing``.

    Raises:
        ReauthRequiredError: no fresh re-authentication
        NotFoundError: no such request for this user
        InvalidStateError: the request is not queued
    """
    now = as_naive_utc(now or utcnow())
    require_fresh_auth(user_id, reauth_token, now=now)

    request = await _get_owned_request(user_id, request_id, db)
    if request.status != DeletionStatus.QUEUED:
        raise InvalidStateError(
            f"Cannot confirm deletion in status: {request.status.value}",
            current_status=request.status.value,
        )

    try:
        result = await db.execute(
            update(DeletionRequest)
            .where(DeletionRequest.id == request_id, DeletionRequest.status == DeletionStatus.QUEUED)
            .values(status=DeletionStatus.PROCESSING, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to confirm deletion request {request_id}: {e}")
        raise PersistenceError("Failed to confirm deletion", operation="confirm_deletion") from e

    request = await _get_owned_request(user_id, request_id, db)
    if result.rowcount == 0:
        # Picked up or canceled between the read and the update
        raise InvalidStateError(
            f"Cannot confirm deletion in status: {request.status.value}",
            current_status=request.status.value,
        )

    logger.info(f"Deletion request {request_id} expedited by user {user_id}")
    return request


async def get_deletion_status(user_id: str, db: AsyncSession) -> DeletionRequest | None:
    """Return the user's most recent deletion request, if any."""
    try:
        result = await db.execute(
            select(DeletionRequest)
            .where(DeletionRequest.user_id == user_id)
            .order_by(DeletionRequest.created_at.desc())
            .limit(1)
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to read deletion status for user {user_id}: {e}")
        raise PersistenceError("Failed to get deletion status", operation="get_deletion_status") from e
    return result.scalars().first()


async def cancel_deletion(
    user_id: str | None,
    request_id: str,
    db: AsyncSession,
    now: datetime | None = None,
) -> DeletionRequest:
    """
    Cancel a request that is still queued and unblock the account.

    A request that is processing, finished or not owned by the user is
    reported as not found.
    """
    now = as_naive_utc(now or utcnow())
    if not user_id:
        raise UnauthenticatedError()

    try:
        result = await db.execute(
            update(DeletionRequest)
            .where(
                DeletionRequest.id == request_id,
                DeletionRequest.user_id == user_id,
                DeletionRequest.status == DeletionStatus.QUEUED,
            )
            .values(status=DeletionStatus.CANCELED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFoundError("Deletion request")

        if await get_in_flight_request(user_id, db, exclude_id=request_id) is None:
            await stage_settings_upsert(user_id, db, pending_deletion=False, deletion_requested_at=None)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to cancel deletion request {request_id}: {e}")
        raise PersistenceError("Failed to cancel deletion", operation="cancel_deletion") from e

    logger.info(f"Deletion request {request_id} canceled by user {user_id}")
    await log_delete_canceled(user_id, request_id)
    return await _get_owned_request(user_id, request_id, db)
