"""
auth/errors.py -- Failure taxonomy for the auth surface.

Every error is terminal and non-retryable. Each class carries the HTTP
status and machine-readable code the API layer renders, so api/main.py
needs one exception handler for the whole family.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth failures surfaced directly to the caller."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AuthError):
    """Missing, malformed, invalid or expired credentials."""

    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required."


class InvalidToken(Unauthenticated):
    """Token failed verification.

    One message for every cause (bad signature, malformed, expired) so the
    caller cannot tell which check failed.
    """

    default_message = "Invalid or expired token."


class InvalidHeader(AuthError):
    """Authorization header does not start with the literal "Bearer " prefix."""

    status_code = 401
    code = "invalid_header"
    default_message = "Authorization header must start with Bearer."


class Forbidden(AuthError):
    """Valid token whose role is not allowed for the route."""

    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions."


class WeakPassword(AuthError):
    """Password rejected by the password policy. Carries every violated rule."""

    status_code = 400
    code = "weak_password"
    default_message = "Password does not meet requirements."

    def __init__(self, violations: list[str], message: str | None = None) -> None:
        self.violations = list(violations)
        super().__init__(message)
