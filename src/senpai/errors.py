"""Typed domain errors.

Every service-level failure is one of these kinds. The HTTP layer maps the kind
to a status code; callers never see an opaque exception for a business rule.
Only ``unavailable`` is safe to retry.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_STATE = "invalid_state"
    ALREADY_EXISTS = "already_exists"
    VALIDATION_ERROR = "validation_error"
    UNAVAILABLE = "unavailable"


class DomainError(Exception):
    """Base class for business-rule and persistence failures."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(DomainError):
    kind = ErrorKind.FORBIDDEN


class InvalidStateError(DomainError):
    kind = ErrorKind.INVALID_STATE


class AlreadyExistsError(DomainError):
    kind = ErrorKind.ALREADY_EXISTS


class ValidationError(DomainError):
    kind = ErrorKind.VALIDATION_ERROR


class UnavailableError(DomainError):
    kind = ErrorKind.UNAVAILABLE
    retryable = True


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.UNAVAILABLE: 503,
}
