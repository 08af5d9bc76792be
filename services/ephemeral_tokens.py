"""
Single-use, time-boxed tokens stored on the user row.

Email verification and password reset share one mechanism: a channel
names the token field, the expiry field and the lifetime. Issuing a
token overwrites whatever the channel held before, so only the latest
one is ever valid.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from models.user import User
from services.exceptions import (
    EmailNotFound,
    InvalidOrExpiredToken,
    InvalidToken,
    TokenExpired,
    UserNotFound,
)
from utils.security import generate_token, hash_password, tokens_match, utcnow

logger = logging.getLogger(__name__)

ALREADY_VERIFIED = "Email already verified"


@dataclass(frozen=True)
class TokenChannel:
    token_field: str
    expiry_field: str
    ttl: timedelta

    def issue(self, user: User) -> str:
        token = generate_token()
        setattr(user, self.token_field, token)
        setattr(user, self.expiry_field, utcnow() + self.ttl)
        return token

    def check(self, user: User, presented: str) -> Optional[str]:
        """Return None when valid, else "mismatch" or "expired"."""
        if not tokens_match(presented, getattr(user, self.token_field)):
            return "mismatch"
        expiry = getattr(user, self.expiry_field)
        if expiry is None or expiry <= utcnow():
            return "expired"
        return None

    def clear(self, user: User) -> None:
        setattr(user, self.token_field, None)
        setattr(user, self.expiry_field, None)


class EphemeralTokenService:
    def __init__(
        self,
        users,
        email_service,
        verification_ttl: timedelta = timedelta(hours=24),
        reset_ttl: timedelta = timedelta(hours=1),
        refresh_tokens=None,
        revoke_sessions_on_reset: bool = True,
    ):
        self._users = users
        self._email = email_service
        self._refresh_tokens = refresh_tokens
        self.revoke_sessions_on_reset = revoke_sessions_on_reset
        self.verification = TokenChannel("verification_token", "verification_token_expiry", verification_ttl)
        self.reset = TokenChannel("password_reset_token", "password_reset_token_expiry", reset_ttl)

    # Email verification

    def issue_verification(self, user: User) -> str:
        token = self.verification.issue(user)
        self._users.save(user)
        self._email.queue_verification_email(user)
        return token

    def verify_email(self, email: str, token: str) -> str:
        logger.info("Attempting to verify email for: %s", email)
        user = self._users.find_by_email(email)
        if user is None:
            raise UserNotFound(email)

        if user.email_verified:
            logger.info("Email already verified for user: %s", user.username)
            return ALREADY_VERIFIED

        problem = self.verification.check(user, token)
        if problem == "mismatch":
            logger.warning("Invalid verification token for user: %s", user.username)
            raise InvalidToken()
        if problem == "expired":
            logger.warning("Verification token expired for user: %s", user.username)
            raise TokenExpired("Verification token has expired")

        user.email_verified = True
        user.enabled = True
        self.verification.clear(user)
        self._users.save(user)
        logger.info("Email successfully verified for user: %s", user.username)

        self._email.queue_welcome_email(user)
        return "Email verification successful"

    def resend_verification(self, email: str) -> str:
        logger.info("Resending verification email for: %s", email)
        user = self._users.find_by_email(email)
        if user is None:
            raise EmailNotFound()
        if user.email_verified:
            return ALREADY_VERIFIED
        self.issue_verification(user)
        return "Verification email sent"

    # Password reset

    def issue_reset(self, user: User) -> str:
        token = self.reset.issue(user)
        self._users.save(user)
        self._email.queue_password_reset_email(user)
        return token

    def forgot_password(self, email: str) -> str:
        logger.info("Password reset requested for email: %s", email)
        user = self._users.find_by_email(email)
        if user is None:
            raise EmailNotFound()
        self.issue_reset(user)
        return "Password reset email sent"

    def reset_password(self, email: str, token: str, new_password: str) -> str:
        logger.info("Attempting password reset for email: %s", email)
        user = self._users.find_by_email(email)
        if user is None:
            raise EmailNotFound()

        problem = self.reset.check(user, token)
        if problem is not None:
            logger.warning("Password reset rejected for user %s (%s)", user.username, problem)
            raise InvalidOrExpiredToken()

        user.password_hash = hash_password(new_password)
        user.credentials_changed_at = utcnow()
        self.reset.clear(user)
        self._users.save(user)

        if self.revoke_sessions_on_reset and self._refresh_tokens is not None:
            self._refresh_tokens.delete_by_user(user)
        logger.info("Password successfully reset for user: %s", user.username)
        return "Password reset successful"
