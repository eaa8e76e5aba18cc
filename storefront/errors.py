"""Application error taxonomy.

Services and stores raise these errors to express failures. Only the API
layer (``storefront.api.errors``) translates them into HTTP responses.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for all application errors."""

    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input."""

    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class Conflict(AppError):
    """A record with the same unique key already exists."""

    code = "CONFLICT"
    default_message = "Resource already exists"


class InvalidCredentials(AppError):
    """Bad email/password pair. Deliberately identical for unknown emails."""

    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class Unauthorized(AppError):
    """Missing or invalid authentication, or wrong current password."""

    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class TokenExpired(Unauthorized):
    """Bearer token is past its expiry."""

    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class TokenMalformed(Unauthorized):
    """Bearer token signature or structure is invalid."""

    code = "TOKEN_MALFORMED"
    default_message = "Invalid token"


class TokenVerificationError(Unauthorized):
    """Bearer token could not be verified for any other reason."""

    code = "TOKEN_INVALID"
    default_message = "Token verification failed"


class Forbidden(AppError):
    """Caller is authenticated but not allowed, e.g. deactivated account."""

    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFound(AppError):
    """Requested resource does not exist."""

    code = "NOT_FOUND"
    default_message = "Resource not found"


class InvalidOrExpired(AppError):
    """Password reset token is unknown, already used, or past its expiry."""

    code = "INVALID_OR_EXPIRED_TOKEN"
    default_message = "Invalid or expired password reset token"


class Internal(AppError):
    """Unexpected failure of a collaborator, e.g. email delivery."""

    code = "INTERNAL_ERROR"
    default_message = "Internal server error"
