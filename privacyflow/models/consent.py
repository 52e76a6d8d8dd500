"""
UserConsent model.

Records each acceptance of the consent text. Rows are immutable once
written: re-acceptance inserts a new row and revocation only flips the
active-consent flag on the user's settings.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String

from privacyflow.database import Base
from privacyflow.utils.clock import new_id, utcnow


class UserConsent(Base):
    __tablename__ = "user_consents"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    consent_version = Column(String(20), nullable=False)
    # "sha256-" + 64 hex chars
    consent_text_hash = Column(String(71), nullable=False)

    acknowledged_ai_limitations = Column(Boolean, nullable=False)
    confirmed_not_emergency = Column(Boolean, nullable=False)
    confirmed_age_over_18 = Column(Boolean, nullable=False)
    accepted_terms_privacy = Column(Boolean, nullable=False)

    locale = Column(String(10), nullable=False, default="en-GB")
    # IPv6 addresses can be up to 39 chars; 45 allows for mapped IPv4 addresses
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_user_consents_user_created", "user_id", "created_at"),)
