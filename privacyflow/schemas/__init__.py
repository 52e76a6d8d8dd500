from .token import ReauthRequest, ReauthResponse, Token
from .user import UserCreate, UserResponse
from .consent import ConsentAcceptRequest, ConsentRecordResponse, ConsentRevokeResponse, ConsentTextResponse
from .data_requests import (
    DeletionCancel,
    DeletionConfirm,
    DeletionCreate,
    DeletionResponse,
    DeletionStatusResponse,
    DownloadResponse,
    ExportResponse,
    ExportStatusResponse,
)
from .settings import UserSettingsResponse, UserSettingsUpdate
from .audit import AuditEventResponse, AuditLogResponse

# Define the public API of this module
__all__ = [
    "Token",
    "ReauthRequest",
    "ReauthResponse",
    "UserCreate",
    "UserResponse",
    "ConsentAcceptRequest",
    "ConsentRecordResponse",
    "ConsentRevokeResponse",
    "ConsentTextResponse",
    "DeletionCancel",
    "DeletionConfirm",
    "DeletionCreate",
    "DeletionResponse",
    "DeletionStatusResponse",
    "DownloadResponse",
    "ExportResponse",
    "ExportStatusResponse",
    "UserSettingsResponse",
    "UserSettingsUpdate",
    "AuditEventResponse",
    "AuditLogResponse",
]
