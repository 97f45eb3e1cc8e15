"""
Tests for custom exception classes and the error response format.
"""

import json

from fastapi import status

from consent_engine.exception_handlers import create_error_response, get_error_type, get_http_error_code
from consent_engine.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConsentEngineError,
    ConsentNotFoundError,
    ErrorCode,
    ValidationError,
    WithdrawalError,
)


class TestConsentEngineError:
    """Test base ConsentEngineError class"""

    def test_defaults(self):
        exc = ConsentEngineError("Test error")

        assert str(exc) == "Test error"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.error_code == ErrorCode.INTERNAL_ERROR
        assert exc.details == {}

    def test_custom_values(self):
        exc = ConsentEngineError("Boom", status_code=503, error_code=ErrorCode.SERVICE_UNAVAILABLE, details={"a": 1})

        assert exc.status_code == 503
        assert exc.details == {"a": 1}


class TestSpecificErrors:
    def test_validation_error(self):
        exc = ValidationError("Bad categories", field="categories")

        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.error_code == ErrorCode.VALIDATION_FAILED
        assert exc.details == {"field": "categories"}

    def test_consent_not_found(self):
        assert ConsentNotFoundError().error_code == ErrorCode.CONSENT_NOT_FOUND
        assert ConsentNotFoundError().details == {}

    def test_consent_log_not_found(self):
        exc = ConsentNotFoundError("Missing", record_id=7)

        assert exc.status_code == status.HTTP_404_NOT_FOUND
        assert exc.error_code == ErrorCode.CONSENT_LOG_NOT_FOUND
        assert exc.details == {"record_id": 7}

    def test_withdrawal_error(self):
        exc = WithdrawalError(categories=["marketing"])

        assert exc.status_code == status.HTTP_409_CONFLICT
        assert exc.details == {"categories": ["marketing"]}

    def test_authentication_error(self):
        exc = AuthenticationError()

        assert exc.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc.error_code == ErrorCode.AUTHENTICATION_REQUIRED

    def test_authorization_error(self):
        exc = AuthorizationError("Invalid API key")

        assert exc.status_code == status.HTTP_403_FORBIDDEN
        assert exc.error_code == ErrorCode.PERMISSION_DENIED
        assert exc.message == "Invalid API key"
        assert isinstance(exc, ConsentEngineError)


class TestErrorResponse:
    def test_error_response_format(self):
        response = create_error_response(
            status_code=404,
            message="No active consent",
            error_code=ErrorCode.CONSENT_NOT_FOUND,
            path="/consent/status",
        )

        assert response.status_code == 404
        assert json.loads(response.body) == {
            "error": {
                "status_code": 404,
                "message": "No active consent",
                "type": "Not Found",
                "error_code": "CONSENT_NOT_FOUND",
                "path": "/consent/status",
            }
        }

    def test_error_types_and_codes(self):
        assert get_error_type(409) == "Conflict"
        assert get_error_type(418) == "Error"
        assert get_http_error_code(404) == "RESOURCE_NOT_FOUND"
        assert get_error_type(401) == "Unauthorized"
        assert get_http_error_code(403) == "PERMISSION_DENIED"
        assert get_http_error_code(418) == "UNKNOWN_ERROR"
