"""
Repositories: the credential store seen by the services.

Thin wrappers over DBStorage's scoped session so the services never
build queries themselves. Every mutating call commits (or rolls back)
before returning.
"""
from __future__ import annotations

from typing import Optional

from models.refresh_token import RefreshToken
from models.user import User


class UserRepository:
    def __init__(self, storage):
        self._storage = storage

    def _query(self):
        return self._storage.get_session().query(User)

    def get(self, user_id: str) -> Optional[User]:
        return self._storage.get(User, user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        return self._query().filter(User.username == username).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self._query().filter(User.email == email).first()

    def count(self) -> int:
        return self._storage.count(User)

    def save(self, user: User) -> User:
        user.save()
        return user


class RefreshTokenRepository:
    def __init__(self, storage):
        self._storage = storage

    def _query(self):
        return self._storage.get_session().query(RefreshToken)

    def find_by_token(self, token: str) -> Optional[RefreshToken]:
        return self._query().filter(RefreshToken.token == token).first()

    def delete(self, refresh_token: RefreshToken) -> None:
        refresh_token.delete()
        self._storage.save()

    def delete_by_user(self, user: User) -> int:
        """Delete the user's token row, if any. Returns the number of rows removed."""
        removed = self._query().filter(RefreshToken.user_id == user.id).delete(
            synchronize_session="fetch"
        )
        self._storage.save()
        return removed

    def replace_for_user(self, refresh_token: RefreshToken) -> RefreshToken:
        """
        Delete whatever row the owner has and insert `refresh_token`,
        committed as one transaction. The unique constraint on user_id
        makes a concurrent replace for the same user fail instead of
        leaving two rows behind.
        """
        session = self._storage.get_session()
        try:
            session.query(RefreshToken).filter(
                RefreshToken.user_id == refresh_token.user_id
            ).delete(synchronize_session="fetch")
            # Emit the DELETE before the INSERT so the unique index sees one row
            session.flush()
            session.add(refresh_token)
        except Exception:
            session.rollback()
            raise
        self._storage.save()
        return refresh_token
