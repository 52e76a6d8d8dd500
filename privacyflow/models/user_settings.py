from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from privacyflow.database import Base
from privacyflow.utils.clock import utcnow

DEFAULT_RETENTION_DAYS = 365


class UserSettings(Base):
    """
    Per-user privacy settings, one row per user.

    ``pending_deletion`` is the single source of truth for whether the
    account may still be used.
    """

    __tablename__ = "user_settings"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    has_active_consent = Column(Boolean, nullable=False, default=False)
    consent_version = Column(String(20), nullable=True)
    data_retention_days = Column(Integer, nullable=False, default=DEFAULT_RETENTION_DAYS)
    allow_data_export = Column(Boolean, nullable=False, default=True)
    pending_deletion = Column(Boolean, nullable=False, default=False)
    deletion_requested_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @classmethod
    def defaults(cls, user_id: str) -> "UserSettings":
        """Transient settings for a user that has no row yet."""
        now = utcnow()
        return cls(
            user_id=user_id,
            has_active_consent=False,
            consent_version=None,
            data_retention_days=DEFAULT_RETENTION_DAYS,
            allow_data_export=True,
            pending_deletion=False,
            deletion_requested_at=None,
            created_at=now,
            updated_at=now,
        )
