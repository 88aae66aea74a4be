"""
core/errors.py -- Error taxonomy shared by every Surveyor layer.

Components raise these; only the HTTP layer (api/main.py) turns them into
responses. Each class carries the status code the HTTP layer must use, so the
mapping lives in one place instead of being repeated per route.

InvariantViolation is deliberately outside the AppError hierarchy: it marks a
programming error (e.g. persisting a user without a password hash) and must
surface as an unhandled 500 with a traceback, not as a client error.

Layer rule: core/ is the kernel. No imports from api/, auth/, or survey/.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for all expected Surveyor errors."""

    status_code: int = 500
    default_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to the API error envelope payload."""
        return {
            "code": self.code,
            "message": self.message,
            "detail": self.details or None,
        }


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------


class ValidationError(AppError):
    """Bad client input. details maps field name -> problem."""

    status_code = 400
    default_code = "invalid_payload"


class InvalidSort(ValidationError):
    default_code = "invalid_sort"


class MalformedToken(ValidationError):
    """Token plaintext has the wrong length or alphabet. Raised before any lookup."""

    default_code = "malformed_token"


class DuplicateEmail(ValidationError):
    default_code = "duplicate_email"


# ---------------------------------------------------------------------------
# 401 / 403 / 404 / 409
# ---------------------------------------------------------------------------


class Unauthorized(AppError):
    status_code = 401
    default_code = "unauthorized"


class MalformedHeader(Unauthorized):
    default_code = "malformed_header"


class TokenExpired(AppError):
    status_code = 401
    default_code = "token_expired"


class ScopeMismatch(AppError):
    status_code = 401
    default_code = "scope_mismatch"


class Forbidden(AppError):
    status_code = 403
    default_code = "forbidden"


class NotFound(AppError):
    status_code = 404
    default_code = "not_found"


class TokenNotFound(NotFound):
    default_code = "token_not_found"


class EditConflict(AppError):
    """The record changed since the caller read it. Safe to re-fetch and retry."""

    status_code = 409
    default_code = "edit_conflict"


# ---------------------------------------------------------------------------
# 500
# ---------------------------------------------------------------------------


class StoreError(AppError):
    status_code = 500
    default_code = "store_error"


class StoreTimeout(StoreError):
    """A store call exceeded the configured timeout. Retryable at caller discretion."""

    default_code = "store_timeout"


class HashingError(AppError):
    default_code = "hashing_error"


class VerificationError(AppError):
    """Stored password hash is malformed. Never raised for a plain mismatch."""

    default_code = "verification_error"


class InvariantViolation(RuntimeError):
    """Programming error. Not caught by the API error handlers."""
