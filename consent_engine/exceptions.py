"""
Custom Exception Classes for the Regional Consent Engine

Core components never raise across their public operations; they report
validation failures as None/False. These exceptions are raised at the HTTP
boundary so every error reaches the client in one consistent format.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes included in error responses"""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CONSENT_NOT_FOUND = "CONSENT_NOT_FOUND"
    CONSENT_LOG_NOT_FOUND = "CONSENT_LOG_NOT_FOUND"
    WITHDRAWAL_FAILED = "WITHDRAWAL_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ConsentEngineError(Exception):
    """Base exception class for all consent engine exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ConsentEngineError):
    """Raised when submitted consent data is rejected"""

    def __init__(self, message: str = "Invalid consent data", field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=details,
        )


class ConsentNotFoundError(ConsentEngineError):
    """Raised when no consent record matches the request"""

    def __init__(self, message: str = "No consent record found", record_id: int | None = None):
        error_code = ErrorCode.CONSENT_LOG_NOT_FOUND if record_id is not None else ErrorCode.CONSENT_NOT_FOUND
        details = {"record_id": record_id} if record_id is not None else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            details=details,
        )


class WithdrawalError(ConsentEngineError):
    """Raised when consent cannot be withdrawn"""

    def __init__(self, message: str = "Consent could not be withdrawn", categories: list[str] | None = None):
        details = {"categories": categories} if categories else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.WITHDRAWAL_FAILED,
            details=details,
        )


class AuthenticationError(ConsentEngineError):
    """Raised when an administrative request carries no credentials"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=ErrorCode.AUTHENTICATION_REQUIRED,
        )


class AuthorizationError(ConsentEngineError):
    """Raised when credentials are present but not accepted"""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.PERMISSION_DENIED,
        )
