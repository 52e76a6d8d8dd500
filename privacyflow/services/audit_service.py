"""
Privacy Audit Logging

Records privacy-sensitive actions without storing any user content.
Writes go through their own session so that an audit failure can never
roll back or break the operation being recorded.
"""

import logging
from typing import Any

from sqlalchemy import select

from privacyflow import database
from privacyflow.models.privacy_audit import AuditEvent, PrivacyAuditLog

logger = logging.getLogger(__name__)

# Metadata keys that may be stored alongside an event
ALLOWED_DETAIL_KEYS = frozenset(
    {
        "consent_version",
        "previous_version",
        "locale",
        "export_id",
        "request_id",
        "reason",
        "error",
        "method",
        "data_retention_days",
        "allow_data_export",
    }
)

_SCALAR_TYPES = (str, int, float, bool)


def sanitize_details(details: dict[str, Any] | None) -> dict[str, Any] | None:
    """Keep only allow-listed keys whose values are scalars or None."""
    if not details:
        return None

    clean: dict[str, Any] = {}
    for key, value in details.items():
        if key not in ALLOWED_DETAIL_KEYS:
            logger.warning(f"Dropping audit detail with unknown key '{key}'")
            continue
        if value is not None and not isinstance(value, _SCALAR_TYPES):
            logger.warning(f"Dropping non-scalar audit detail '{key}'")
            continue
        clean[key] = value
    return clean or None


async def log_audit_event(
    user_id: str | None,
    event: AuditEvent,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Append an audit event.

    Args:
        user_id: Subject of the event, None for events recorded after erasure
        event: Event tag
        details: Event metadata (ids, versions, locale, reason, error, method)
    """
    try:
        async with database.AsyncSessionLocal() as session:
            session.add(
                PrivacyAuditLog(
                    user_id=user_id,
                    event=AuditEvent(event).value,
                    details=sanitize_details(details),
                )
            )
            await session.commit()
    except Exception as e:
        logger.error(f"Failed to log audit event {event}: {str(e)}")


async def log_consent_accepted(user_id: str, version: str, locale: str) -> None:
    await log_audit_event(user_id, AuditEvent.CONSENT_ACCEPTED, {"consent_version": version, "locale": locale})


async def log_consent_viewed(user_id: str, version: str, locale: str) -> None:
    await log_audit_event(user_id, AuditEvent.CONSENT_VIEWED, {"consent_version": version, "locale": locale})


async def log_consent_revoked(user_id: str, previous_version: str) -> None:
    await log_audit_event(user_id, AuditEvent.CONSENT_REVOKED, {"consent_version": previous_version})


async def log_export_requested(user_id: str, export_id: str) -> None:
    await log_audit_event(user_id, AuditEvent.EXPORT_REQUESTED, {"export_id": export_id})


async def log_export_ready(user_id: str, export_id: str) -> None:
    await log_audit_event(user_id, AuditEvent.EXPORT_READY, {"export_id": export_id})


async def log_export_downloaded(user_id: str, export_id: str) -> None:
    await log_audit_event(user_id, AuditEvent.EXPORT_DOWNLOADED, {"export_id": export_id})


async def log_export_failed(user_id: str, export_id: str, error: str) -> None:
    await log_audit_event(user_id, AuditEvent.EXPORT_FAILED, {"export_id": export_id, "error": error})


async def log_delete_requested(user_id: str, request_id: str, reason: str | None = None) -> None:
    await log_audit_event(
        user_id,
        AuditEvent.DELETE_REQUESTED,
        {"request_id": request_id, "reason": reason or "Not specified"},
    )


async def log_delete_processing(user_id: str, request_id: str) -> None:
    await log_audit_event(user_id, AuditEvent.DELETE_PROCESSING, {"request_id": request_id})


async def log_delete_completed(request_id: str) -> None:
    # The user no longer exists; the request id is the only link
    await log_audit_event(None, AuditEvent.DELETE_COMPLETED, {"request_id": request_id})


async def log_delete_failed(user_id: str, request_id: str, error: str) -> None:
    await log_audit_event(user_id, AuditEvent.DELETE_FAILED, {"request_id": request_id, "error": error})


async def log_delete_canceled(user_id: str, request_id: str) -> None:
    await log_audit_event(user_id, AuditEvent.DELETE_CANCELED, {"request_id": request_id})


async def log_reauth(user_id: str, success: bool, method: str = "password") -> None:
    event = AuditEvent.REAUTH_SUCCESS if success else AuditEvent.REAUTH_FAILED
    await log_audit_event(user_id, event, {"method": method})


async def get_user_audit_logs(user_id: str, limit: int = 100) -> list[PrivacyAuditLog]:
    """Return the user's audit events, newest first."""
    async with database.AsyncSessionLocal() as session:
        result = await session.execute(
            select(PrivacyAuditLog)
            .where(PrivacyAuditLog.user_id == user_id)
            .order_by(PrivacyAuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
