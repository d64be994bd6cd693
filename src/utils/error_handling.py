"""Custom exceptions and helpers for consistent error responses."""

import json
from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for application errors."""

    code = "error"
    retryable = False

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "status": "error",
            "code": self.code,
            "message": self.message,
        }
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(AppError):
    """Raised when input validation fails; carries per-field messages."""

    code = "validation_error"

    def __init__(
        self,
        message: str = "Invalid input",
        errors: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(message, status_code=400)
        self.errors = errors or {}

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


class RateLimitedError(AppError):
    """Too many submissions from one source inside the rate window."""

    code = "rate_limited"
    retryable = True

    def __init__(self, message: str = "Too many requests, please try again shortly"):
        super().__init__(message, status_code=429)


class DuplicateSubmissionError(AppError):
    """Identical submission already admitted inside the duplicate window."""

    code = "duplicate"
    retryable = True

    def __init__(self, message: str = "This report was already submitted"):
        super().__init__(message, status_code=409)


class NotFoundError(AppError):
    """Raised when a requested resource is missing."""

    code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class UnauthorizedError(AppError):
    """Raised when a privileged route is called without a principal."""

    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class ConcurrentUpdateError(AppError):
    """Another request changed the ticket between read and write."""

    code = "conflict"
    retryable = True

    def __init__(self, message: str = "Ticket was modified concurrently"):
        super().__init__(message, status_code=409)


class InvalidTransitionError(AppError):
    """Status change refused by the transition policy."""

    code = "invalid_transition"

    def __init__(self, message: str = "Status transition not allowed"):
        super().__init__(message, status_code=409)


class SurveyNotAllowedError(AppError):
    code = "survey_not_allowed"

    def __init__(self, message: str = "Survey is only accepted for resolved or closed tickets"):
        super().__init__(message, status_code=409)


class SurveyExistsError(AppError):
    code = "survey_exists"

    def __init__(self, message: str = "Survey already submitted"):
        super().__init__(message, status_code=409)


class CodeGenerationError(AppError):
    """No free ticket code found within the attempt bound."""

    code = "internal_error"
    retryable = True

    def __init__(self, message: str = "Could not allocate a ticket code, please retry"):
        super().__init__(message, status_code=500)


def to_response(error: AppError, correlation_id: Optional[str] = None) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    body = error.to_dict()
    if correlation_id:
        body["correlation_id"] = correlation_id
    return {
        "statusCode": error.status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, ensure_ascii=False),
    }
