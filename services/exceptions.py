"""
Service-layer exceptions.

Every failure a caller can act on is a ServiceError subclass carrying a
stable error code and the HTTP status the API layer answers with.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for all user-management errors."""

    status_code = 400
    default_code = "BAD_REQUEST"

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
        """Convert exception to a dictionary for API responses."""
        payload = {
            "error": self.code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            payload["details"] = self.details
        return payload


# Credentials

class AuthenticationFailed(ServiceError):
    """Unknown username or wrong password."""

    status_code = 401
    default_code = "AUTHENTICATION_FAILED"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class AccountDisabled(ServiceError):
    """Valid credentials for an account whose email is not verified yet."""

    status_code = 403
    default_code = "ACCOUNT_DISABLED"

    def __init__(self, message: str = "Account is disabled. Please verify your email address"):
        super().__init__(message)


# Tokens

class TokenError(ServiceError):
    """Base for signed access-token failures."""

    status_code = 401
    default_code = "INVALID_TOKEN"


class MalformedToken(TokenError):
    def __init__(self, message: str = "Malformed token"):
        super().__init__(message)


class InvalidSignature(TokenError):
    def __init__(self, message: str = "Invalid token signature"):
        super().__init__(message)


class TokenExpired(TokenError):
    """Raised for expired access, refresh and verification tokens alike."""

    status_code = 400
    default_code = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class InvalidToken(ServiceError):
    """An ephemeral token that does not match the stored one."""

    default_code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid verification token"):
        super().__init__(message)


class InvalidOrExpiredToken(ServiceError):
    """Reset-token failure; mismatch and expiry are reported identically."""

    default_code = "INVALID_OR_EXPIRED_TOKEN"

    def __init__(self, message: str = "Invalid or expired reset token"):
        super().__init__(message)


class TokenNotFound(ServiceError):
    status_code = 404
    default_code = "TOKEN_NOT_FOUND"

    def __init__(self, message: str = "Refresh token is not in database"):
        super().__init__(message)


# Lookups and conflicts

class NotFound(ServiceError):
    status_code = 404
    default_code = "NOT_FOUND"


class UserNotFound(NotFound):
    default_code = "USER_NOT_FOUND"

    def __init__(self, identifier: Optional[str] = None):
        details = {"user": identifier} if identifier else None
        super().__init__("User not found", details=details)


class EmailNotFound(NotFound):
    default_code = "EMAIL_NOT_FOUND"

    def __init__(self, message: str = "Email not found"):
        super().__init__(message)


class RoleNotFound(NotFound):
    default_code = "ROLE_NOT_FOUND"

    def __init__(self, role_name: str):
        super().__init__("Role not found", details={"role": role_name})


class AlreadyExists(ServiceError):
    status_code = 409
    default_code = "ALREADY_EXISTS"
