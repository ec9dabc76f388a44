# Overview: Error taxonomy shared by services and routes.

"""
Every error a service raises on purpose derives from LendtrackError.

Routes never inspect messages to decide a status code: `kind` becomes the
`errorKind` field of the response body and `status_code` the HTTP status.
"""

from __future__ import annotations


class LendtrackError(Exception):
    kind = "ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LendtrackError, ValueError):
    """400-level input problem (shape, range, date ordering, loan period)."""
    kind = "VALIDATION"
    status_code = 400


class NotFoundError(LendtrackError):
    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(LendtrackError):
    """Business rule conflict detected against current state."""
    kind = "CONFLICT"
    status_code = 400


class InsufficientStockError(ConflictError):
    kind = "INSUFFICIENT_STOCK"


class NotAvailableError(ConflictError):
    kind = "NOT_AVAILABLE"


class InvalidTransitionError(ConflictError):
    kind = "INVALID_TRANSITION"

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status


class DuplicateError(ConflictError):
    """Unique field already taken (username, email, number, inventory code)."""
    kind = "ALREADY_EXISTS"
    status_code = 409


class DependencyError(LendtrackError):
    """Delete refused because dependent rows still reference the entity."""
    kind = "DEPENDENCY"
    status_code = 400

    def __init__(self, message: str, dependent_count: int):
        super().__init__(message)
        self.dependent_count = dependent_count


class ServerError(LendtrackError):
    """Persistence or transaction failure; `detail` keeps the underlying message."""
    kind = "SERVER"
    status_code = 500

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail


class AuthError(LendtrackError):
    kind = "UNAUTHORIZED"
    status_code = 401


class PermissionDenied(LendtrackError):
    kind = "FORBIDDEN"
    status_code = 403


class InvalidTokenError(LendtrackError):
    """Password reset code unknown, already used or expired."""
    kind = "INVALID_TOKEN"
    status_code = 400
