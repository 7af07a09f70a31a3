"""Custom exceptions and helpers for consistent error responses."""

import json
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def payload(self) -> Dict[str, Any]:
        """Body returned to the caller."""
        return {"success": False, "error": self.message}


class InvalidRequest(AppError):
    """Raised when required fields are missing or malformed."""

    def __init__(self, message: str = "Missing required data"):
        super().__init__(message, status_code=400)


class PayloadTooLarge(AppError):
    """Raised when an uploaded file exceeds the configured limit."""

    def __init__(self, message: str = "File too large"):
        super().__init__(message, status_code=413)


class NotFoundError(AppError):
    """Raised when a requested resource is missing."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class DuplicatePayment(AppError):
    """A validated payment already uses this bank reference."""

    def __init__(self, reference: str):
        super().__init__(
            "Duplicate payment: this reference has already been registered.",
            status_code=200,
        )
        self.reference = reference


class ValidationRejected(AppError):
    """The payment proof did not pass validation."""

    def __init__(self, message: str, verdict: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=200)
        self.verdict = verdict

    def payload(self) -> Dict[str, Any]:
        body = super().payload()
        if self.verdict is not None:
            body["aiResult"] = self.verdict
        return body


class TicketsExhausted(AppError):
    """Not enough tickets left in the raffle for the requested quantity."""

    def __init__(self, remaining: int):
        super().__init__(
            f"Not enough tickets available ({remaining} remaining).",
            status_code=200,
        )
        self.remaining = remaining


class InternalError(AppError):
    """Store, storage or provider failure. The message never carries details."""

    def __init__(self, message: str = "Internal error. Please try again."):
        super().__init__(message, status_code=500)


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""


class PersistenceError(Exception):
    """Base class for persistence gateway failures."""


class GatewayConnectionError(PersistenceError):
    """The database could not be reached. Retryable by caller policy."""


class ConstraintViolation(PersistenceError):
    """A uniqueness or integrity constraint rejected the statement."""

    def __init__(self, message: str, constraint: str = ""):
        super().__init__(message)
        self.constraint = constraint

    def touches(self, name: str) -> bool:
        """True when the violated constraint (or its message) mentions ``name``."""
        return name in self.constraint or name in str(self)


def to_response(error: AppError, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    return {
        "statusCode": error.status_code,
        "headers": headers or {"Content-Type": "application/json"},
        "body": json.dumps(error.payload()),
    }
