"""
Refresh-token lifecycle: create (replacing any previous token), look up,
verify expiry (deleting on touch), delete by token or by user.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from models.refresh_token import RefreshToken
from models.user import User
from services.exceptions import TokenExpired, UserNotFound
from utils.security import generate_token, utcnow

logger = logging.getLogger(__name__)


class RefreshTokenService:
    def __init__(self, users, tokens, ttl: timedelta):
        self._users = users
        self._tokens = tokens
        self.ttl = ttl
        logger.info("RefreshTokenService initialized with expiration: %ss", int(ttl.total_seconds()))

    def create(self, username: str) -> RefreshToken:
        user = self._users.find_by_username(username)
        if user is None:
            raise UserNotFound(username)
        return self.create_for_user(user)

    def create_for_user(self, user: User) -> RefreshToken:
        refresh_token = RefreshToken(
            token=generate_token(),
            user_id=user.id,
            expires_at=utcnow() + self.ttl,
        )
        self._tokens.replace_for_user(refresh_token)
        logger.info("Refresh token created for user: %s", user.username)
        return refresh_token

    def find_by_token(self, token: str) -> Optional[RefreshToken]:
        return self._tokens.find_by_token(token)

    def verify_expiration(self, refresh_token: RefreshToken) -> RefreshToken:
        """Return the token if still valid; otherwise delete it and raise TokenExpired."""
        if refresh_token.expires_at < utcnow():
            logger.warning("Refresh token expired for user_id: %s", refresh_token.user_id)
            self._tokens.delete(refresh_token)
            raise TokenExpired("Refresh token was expired. Please make a new signin request")
        return refresh_token

    def delete_by_token(self, token: str) -> bool:
        refresh_token = self._tokens.find_by_token(token)
        if refresh_token is None:
            return False
        self._tokens.delete(refresh_token)
        logger.debug("Refresh token deleted for user_id: %s", refresh_token.user_id)
        return True

    def delete_by_user(self, user: User) -> int:
        removed = self._tokens.delete_by_user(user)
        logger.debug("Deleted %d refresh token(s) for user: %s", removed, user.username)
        return removed
