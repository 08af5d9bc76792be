"""
Login, refresh and logout.

An access token is only handed out together with a persisted refresh
token: if the refresh token cannot be stored the login fails as a whole.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from models.user import User
from services.exceptions import (
    AccountDisabled,
    AuthenticationFailed,
    TokenNotFound,
    UserNotFound,
)
from utils.security import verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: Optional[str] = None


def authorities_for(roles: Iterable[str], prefix: str = "ROLE_") -> list[str]:
    """Map stored role names to authority names, e.g. ADMIN -> ROLE_ADMIN."""
    return [role if role.startswith(prefix) else f"{prefix}{role}" for role in roles or []]


class SessionService:
    def __init__(self, users, codec, refresh_tokens, role_prefix: str = "ROLE_", rotate_refresh_tokens: bool = False):
        self._users = users
        self._codec = codec
        self._refresh_tokens = refresh_tokens
        self.role_prefix = role_prefix
        self.rotate_refresh_tokens = rotate_refresh_tokens

    def _access_token_for(self, user) -> str:
        return self._codec.issue_access(user.username, authorities_for(user.roles, self.role_prefix))

    def login(self, username: str, password: str) -> SessionTokens:
        logger.info("Login attempt for username: %s", username)
        user = self._users.find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Authentication failed for username: %s", username)
            raise AuthenticationFailed()
        if not user.enabled:
            logger.warning("Disabled account login attempt: %s", username)
            raise AccountDisabled()

        access_token = self._access_token_for(user)
        refresh_token = self._refresh_tokens.create_for_user(user)
        logger.info("Login successful for username: %s with roles: %s", username, user.roles)
        return SessionTokens(access_token=access_token, refresh_token=refresh_token.token)

    def refresh(self, token: str) -> SessionTokens:
        refresh_token = self._refresh_tokens.find_by_token(token)
        if refresh_token is None:
            raise TokenNotFound()
        self._refresh_tokens.verify_expiration(refresh_token)

        # Roles may have changed since the refresh token was minted
        user = self._users.get(refresh_token.user_id)
        if user is None:
            raise UserNotFound(refresh_token.user_id)
        if not user.enabled:
            logger.warning("Refresh attempt for disabled account: %s", user.username)
            raise AccountDisabled()

        access_token = self._access_token_for(user)
        if self.rotate_refresh_tokens:
            rotated = self._refresh_tokens.create_for_user(user)
            logger.info("Token refreshed and rotated for user: %s", user.username)
            return SessionTokens(access_token=access_token, refresh_token=rotated.token)

        logger.info("Token refreshed for user: %s", user.username)
        return SessionTokens(access_token=access_token)

    def resolve(self, claims) -> Optional[User]:
        """
        The user a verified access token still speaks for. None when the
        account is missing or disabled, or when its credentials changed
        after the token was issued.
        """
        user = self._users.find_by_username(claims.subject)
        if user is None or not user.enabled:
            return None
        issued_at = claims.issued_at.replace(tzinfo=None) if claims.issued_at else None
        if issued_at is None or (
            user.credentials_changed_at and issued_at < user.credentials_changed_at
        ):
            return None
        return user

    def logout(self, token: str) -> str:
        self._refresh_tokens.delete_by_token(token)
        logger.info("Logout processed")
        return "Logged out successfully"
