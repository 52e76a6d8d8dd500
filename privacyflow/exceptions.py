"""
Custom Exception Classes for the privacy workflow engine

Every failure a user-facing operation can produce is a member of this
taxonomy. Each carries a stable machine-readable ``error_code`` and a
human-readable message that is safe to show to the client.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to clients."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    REAUTH_REQUIRED = "REAUTH_REQUIRED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONSENT_REQUIRED = "CONSENT_REQUIRED"
    EXPORT_NOT_ALLOWED = "EXPORT_NOT_ALLOWED"
    ACCOUNT_PENDING_DELETION = "ACCOUNT_PENDING_DELETION"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    NO_FILE = "NO_FILE"
    INVALID_STATE = "INVALID_STATE"
    NOT_READY = "NOT_READY"
    EXPIRED = "EXPIRED"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    FATAL = "FATAL"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class PrivacyError(Exception):
    """Base exception class for all privacy workflow exceptions"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Authentication Exceptions
# ============================================================================


class UnauthenticatedError(PrivacyError):
    """Raised when there is no current user"""

    error_code = ErrorCode.UNAUTHENTICATED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class ReauthRequiredError(PrivacyError):
    """Raised when a sensitive action lacks a fresh re-authentication token"""

    error_code = ErrorCode.REAUTH_REQUIRED

    def __init__(self, message: str = "Re-authentication required"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class AccountPendingDeletionError(PrivacyError):
    """Raised when an account flagged for deletion tries to use the app"""

    error_code = ErrorCode.ACCOUNT_PENDING_DELETION

    def __init__(self, message: str = "This account is scheduled for deletion"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


# ============================================================================
# Validation & Precondition Exceptions
# ============================================================================


class ValidationError(PrivacyError):
    """Raised when input validation fails"""

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, errors: list[str] | None = None, field: str | None = None):
        details: dict[str, Any] = {}
        if errors:
            details["errors"] = errors
        if field:
            details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ConsentRequiredError(PrivacyError):
    """Raised when an action needs an active consent the user does not have"""

    error_code = ErrorCode.CONSENT_REQUIRED

    def __init__(self, message: str = "Active consent required"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


class ExportNotAllowedError(PrivacyError):
    """Raised when data export is disabled for the account"""

    error_code = ErrorCode.EXPORT_NOT_ALLOWED

    def __init__(self, message: str = "Data export is not enabled for your account"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


class ConflictError(PrivacyError):
    """Raised when an in-flight request already exists"""

    error_code = ErrorCode.CONFLICT

    def __init__(self, message: str, request_id: str | None = None):
        details = {"request_id": request_id} if request_id else {}
        super().__init__(message=message, status_code=status.HTTP_409_CONFLICT, details=details)

    @property
    def request_id(self) -> str | None:
        return self.details.get("request_id")


class RateLimitedError(PrivacyError):
    """Raised when the export cool-down has not elapsed"""

    error_code = ErrorCode.RATE_LIMITED

    def __init__(self, hours_remaining: int):
        super().__init__(
            message=f"Please wait {hours_remaining} hours before requesting another export",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"hours_remaining": hours_remaining},
        )

    @property
    def hours_remaining(self) -> int:
        return self.details["hours_remaining"]


# ============================================================================
# Resource & State Exceptions
# ============================================================================


class NotFoundError(PrivacyError):
    """Raised when a resource is missing or not owned by the requesting user"""

    error_code = ErrorCode.NOT_FOUND

    def __init__(self, resource_type: str):
        super().__init__(
            message=f"{resource_type} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type},
        )


class NoFileError(PrivacyError):
    """Raised when a ready export has no stored file"""

    error_code = ErrorCode.NO_FILE

    def __init__(self, message: str = "Export file not found"):
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND)


class InvalidStateError(PrivacyError):
    """Raised when an operation is attempted from a state that forbids it"""

    error_code = ErrorCode.INVALID_STATE

    def __init__(self, message: str, current_status: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"current_status": current_status},
        )

    @property
    def current_status(self) -> str:
        return self.details["current_status"]


class NotReadyError(InvalidStateError):
    """Raised when downloading an export that is not ready yet"""

    error_code = ErrorCode.NOT_READY

    def __init__(self, current_status: str):
        super().__init__(
            message=f"Export is {current_status}. Please wait for it to be ready.",
            current_status=current_status,
        )


class ExpiredError(PrivacyError):
    """Raised when an export is past its download window"""

    error_code = ErrorCode.EXPIRED

    def __init__(self, message: str = "Export has expired. Please request a new export."):
        super().__init__(message=message, status_code=status.HTTP_410_GONE)


# ============================================================================
# Infrastructure Exceptions
# ============================================================================


class PersistenceError(PrivacyError):
    """Raised when a store write fails. Never carries the driver message."""

    error_code = ErrorCode.PERSISTENCE_ERROR

    def __init__(self, message: str = "A storage error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


class StorageError(PrivacyError):
    """Raised when a blob storage operation fails"""

    error_code = ErrorCode.STORAGE_ERROR

    def __init__(self, message: str = "File storage operation failed"):
        super().__init__(message=message, status_code=status.HTTP_502_BAD_GATEWAY)


class FatalError(PrivacyError):
    """Raised when the identity record cannot be removed during erasure"""

    error_code = ErrorCode.FATAL

    def __init__(self, message: str):
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
