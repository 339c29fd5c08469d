"""Error taxonomy raised by the registration, authentication and session layers.

Each error carries a stable ``code`` and a message that is safe to show to the
caller. Mapping to HTTP status codes happens only at the API boundary.
"""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for expected, user-facing identity failures."""

    code = "identity_error"
    default_message = "Identity request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(IdentityError):
    code = "validation_error"
    default_message = "Invalid request"


class InvalidRole(ValidationError):
    code = "invalid_role"
    default_message = "Invalid role specified"


class DuplicateEmail(IdentityError):
    code = "duplicate_email"
    default_message = "Email already registered"


class QuotaExceeded(IdentityError):
    code = "quota_exceeded"

    def __init__(self, role: str, limit: int) -> None:
        self.role = role
        self.limit = limit
        super().__init__(f"Maximum {role} personnel ({limit}) reached")


class InvalidCredentials(IdentityError):
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class PendingApproval(IdentityError):
    code = "pending_approval"
    default_message = "Account pending admin approval"


class InvalidToken(IdentityError):
    code = "invalid_token"
    default_message = "Invalid token"


class TokenExpired(IdentityError):
    code = "token_expired"
    default_message = "Token expired"


class AccountNotFound(IdentityError):
    code = "account_not_found"
    default_message = "User not found"
