"""
PrivacyAuditLog model.

Append-only record of privacy-relevant events. Normal flows never update
or delete rows; the only deletion path is full account erasure.
"""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Index, String

from privacyflow.database import Base
from privacyflow.utils.clock import new_id, utcnow


class AuditEvent(str, Enum):
    """Closed set of audit event tags, in ``domain.action`` form."""

    CONSENT_ACCEPTED = "consent.accepted"
    CONSENT_REVOKED = "consent.revoked"
    CONSENT_VIEWED = "consent.viewed"
    EXPORT_REQUESTED = "export.requested"
    EXPORT_READY = "export.ready"
    EXPORT_DOWNLOADED = "export.downloaded"
    EXPORT_FAILED = "export.failed"
    DELETE_REQUESTED = "delete.requested"
    DELETE_PROCESSING = "delete.processing"
    DELETE_COMPLETED = "delete.completed"
    DELETE_FAILED = "delete.failed"
    DELETE_CANCELED = "delete.canceled"
    REAUTH_SUCCESS = "reauth.success"
    REAUTH_FAILED = "reauth.failed"
    SETTINGS_UPDATED = "settings.updated"


class PrivacyAuditLog(Base):
    __tablename__ = "privacy_audit"

    id = Column(String(36), primary_key=True, default=new_id)
    # Null for events recorded after the user no longer exists
    user_id = Column(String(36), nullable=True, index=True)
    event = Column(String(50), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_privacy_audit_user_created", "user_id", "created_at"),)
