"""
DeletionRequest model.

State machine: queued -> processing -> completed | failed, plus
queued -> canceled by the user. At most one request per user may be
queued or processing.
"""

from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Index, String, Text

from privacyflow.database import Base
from privacyflow.utils.clock import new_id, utcnow


class DeletionStatus(str, Enum):
    """Deletion request status enumeration."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


IN_FLIGHT_STATUSES = (DeletionStatus.QUEUED, DeletionStatus.PROCESSING)


class DeletionRequest(Base):
    __tablename__ = "deletion_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    # No foreign key: the row outlives the identity record it refers to
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(
        SQLEnum(DeletionStatus, name="deletion_status", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=DeletionStatus.QUEUED,
        nullable=False,
    )
    # User-supplied reason on creation, replaced by the error message on failure
    reason = Column(Text, nullable=True)
    confirmation_phrase = Column(String(20), nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_deletion_requests_user_created", "user_id", "created_at"),
        Index("idx_deletion_requests_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DeletionRequest(id={self.id}, user_id={self.user_id}, status={self.status.value})>"
