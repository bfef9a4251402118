"""Custom exceptions for the application."""

from datetime import datetime
from typing import Any


class QuizGateException(Exception):
    """Base class for application exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code and error_code for consistent HTTP
    response handling.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_response(self) -> dict[str, Any]:
        """Convert to the JSON body returned to the caller."""
        return {"error": self.error_code, "message": self.message}


class InputValidationError(QuizGateException):
    """Raised for malformed request input.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class AccessCodeRejectedError(QuizGateException):
    """Raised when a code is absent, exhausted or expired.

    ``reason`` is informational only: one of ``invalid``, ``exhausted``
    or ``expired``. Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    error_code = "invalid_code"

    MESSAGES = {
        "invalid": "Invalid access code",
        "exhausted": "Access code usage limit reached",
        "expired": "Access code has expired",
    }

    def __init__(self, reason: str = "invalid"):
        self.reason = reason
        super().__init__(self.MESSAGES.get(reason, self.MESSAGES["invalid"]))

    def to_response(self) -> dict[str, Any]:
        return {"error": self.error_code, "reason": self.reason, "message": self.message}


class AccessCodeExistsError(QuizGateException):
    """Raised when creating a code whose identifier is already taken.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    error_code = "code_exists"

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Access code {code} already exists")


class AccessCodeNotFoundError(QuizGateException):
    """Raised by management operations on an unknown code.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404
    error_code = "code_not_found"

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Access code {code} not found")


class ClientNotFoundError(QuizGateException):
    """Raised when no security record exists for a client identity.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404
    error_code = "client_not_found"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"No security record for {client_id}")


class ForbiddenError(QuizGateException):
    """Raised when the admin secret is missing or wrong.

    Maps to HTTP 403 Forbidden.
    """
    status_code = 403
    error_code = "forbidden"

    def __init__(self, message: str = "Invalid or missing admin key"):
        super().__init__(message)


class RateLimitedError(QuizGateException):
    """Raised when a client retries faster than the per-client throttle.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error_code = "rate_limited"

    def __init__(self, retry_after: int = 1):
        self.retry_after = max(1, retry_after)
        super().__init__("Requests too frequent, please try again later")

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class ClientBlockedError(QuizGateException):
    """Raised when a client is temporarily blocked after repeated failures.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error_code = "blocked"

    def __init__(self, block_until: datetime | None = None, retry_after: int = 1):
        self.block_until = block_until
        self.retry_after = max(1, retry_after)
        super().__init__("Too many failed attempts, please try again later")

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        if self.block_until is not None:
            body["blockedUntil"] = self.block_until.isoformat()
        return body


class StoreUnavailableError(QuizGateException):
    """Raised when the backing store cannot be reached.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503
    error_code = "store_unavailable"

    def __init__(self, message: str = "Access code store unavailable"):
        super().__init__(message)
