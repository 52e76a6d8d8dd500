"""
DataExport model.

State machine: queued -> processing -> ready | failed.
Only the export job processor moves a request past ``queued``.
"""

from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Index, String, Text

from privacyflow.database import Base
from privacyflow.utils.clock import new_id, utcnow


class ExportStatus(str, Enum):
    """Export request status enumeration."""

    QUEUED = "queued"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class DataExport(Base):
    __tablename__ = "data_exports"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        SQLEnum(ExportStatus, name="export_status", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=ExportStatus.QUEUED,
        nullable=False,
    )
    file_path = Column(String(500), nullable=True)
    error = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_data_exports_user_created", "user_id", "created_at"),
        Index("idx_data_exports_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DataExport(id={self.id}, user_id={self.user_id}, status={self.status.value})>"

    def is_expired(self, now) -> bool:
        return self.expires_at is not None and now > self.expires_at
