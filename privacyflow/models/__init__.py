from .user import User
from .consent import UserConsent
from .user_settings import UserSettings
from .data_export import DataExport, ExportStatus
from .deletion_request import DeletionRequest, DeletionStatus
from .privacy_audit import AuditEvent, PrivacyAuditLog
from .therapy import ActionItem, SessionSummary, TherapySession

__all__ = [
    "User",
    "UserConsent",
    "UserSettings",
    "DataExport",
    "ExportStatus",
    "DeletionRequest",
    "DeletionStatus",
    "AuditEvent",
    "PrivacyAuditLog",
    "ActionItem",
    "SessionSummary",
    "TherapySession",
]
