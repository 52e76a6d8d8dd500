"""
User Settings Service

One settings row per user. Reads synthesize defaults when no row exists;
writes upsert.
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.exceptions import PersistenceError
from privacyflow.models.privacy_audit import AuditEvent
from privacyflow.models.user_settings import UserSettings
from privacyflow.services.audit_service import log_audit_event
from privacyflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "has_active_consent",
        "consent_version",
        "data_retention_days",
        "allow_data_export",
        "pending_deletion",
        "deletion_requested_at",
    }
)


async def get_user_settings(user_id: str, db: AsyncSession) -> UserSettings:
    """Return the stored settings row, or an unsaved default row."""
    settings_row = await db.get(UserSettings, user_id, populate_existing=True)
    if settings_row is None:
        return UserSettings.defaults(user_id)
    return settings_row


async def stage_settings_upsert(user_id: str, db: AsyncSession, **changes: Any) -> UserSettings:
    """
    Apply changes to the user's settings row inside the current transaction.

    The caller owns the commit, so the upsert can share a transaction with
    other writes.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown settings fields: {sorted(unknown)}")

    settings_row = await db.get(UserSettings, user_id)
    if settings_row is None:
        settings_row = UserSettings.defaults(user_id)
        db.add(settings_row)

    for field, value in changes.items():
        setattr(settings_row, field, value)
    settings_row.updated_at = utcnow()
    return settings_row


async def upsert_user_settings(user_id: str, db: AsyncSession, **changes: Any) -> UserSettings:
    """Create or update the settings row and commit."""
    try:
        settings_row = await stage_settings_upsert(user_id, db, **changes)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to upsert settings for user {user_id}: {e}")
        raise PersistenceError("Failed to update settings", operation="upsert_user_settings") from e
    return settings_row


async def update_retention_window(user_id: str, data_retention_days: int, db: AsyncSession) -> UserSettings:
    """Change the conversation retention window and record it."""
    settings_row = await upsert_user_settings(user_id, db, data_retention_days=data_retention_days)
    logger.info(f"User {user_id} set data retention to {data_retention_days} days")
    await log_audit_event(user_id, AuditEvent.SETTINGS_UPDATED, {"data_retention_days": data_retention_days})
    return settings_row


async def is_pending_deletion(user_id: str, db: AsyncSession) -> bool:
    settings_row = await get_user_settings(user_id, db)
    return bool(settings_row.pending_deletion)
