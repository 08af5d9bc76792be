"""
Registration, profile management and administrative role assignment.
"""
from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm.attributes import flag_modified

from models.user import User
from services.exceptions import AlreadyExists, RoleNotFound, UserNotFound
from utils.security import hash_password, utcnow

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "bio", "image_url")


class UserService:
    def __init__(
        self,
        users,
        ephemeral_tokens,
        admin_role: str = "ADMIN",
        user_role: str = "USER",
        allowed_roles: Iterable[str] = ("ADMIN", "USER"),
        first_user_admin: bool = True,
    ):
        self._users = users
        self._ephemeral = ephemeral_tokens
        self.admin_role = admin_role
        self.user_role = user_role
        self.allowed_roles = {r.strip() for r in allowed_roles if r.strip()} | {admin_role, user_role}
        self.first_user_admin = first_user_admin
        logger.info(
            "UserService initialized with admin role: '%s', user role: '%s', first-user-admin: %s",
            admin_role, user_role, first_user_admin,
        )

    def _get(self, username: str) -> User:
        user = self._users.find_by_username(username)
        if user is None:
            raise UserNotFound(username)
        return user

    def register(self, username: str, email: str, password: str) -> User:
        if self._users.find_by_username(username):
            logger.warning("Registration attempt with existing username: %s", username)
            raise AlreadyExists("Username already exists")
        if self._users.find_by_email(email):
            logger.warning("Registration attempt with existing email: %s", email)
            raise AlreadyExists("Email already exists")

        role = self.admin_role if self.first_user_admin and self._users.count() == 0 else self.user_role
        logger.info("Assigning %s role to new user: %s", role, username)

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            roles=[role],
            enabled=False,
            email_verified=False,
        )
        # Persists the user together with its first verification token
        self._ephemeral.issue_verification(user)
        logger.info("User '%s' registered (disabled, pending email verification)", username)
        return user

    def get_profile(self, username: str) -> User:
        return self._get(username)

    def update_profile(self, username: str, changes: dict) -> User:
        user = self._get(username)

        new_username = changes.get("username")
        if new_username and new_username != user.username:
            if self._users.find_by_username(new_username):
                raise AlreadyExists("Username already exists")
            logger.info("Username change requested from %s to %s", user.username, new_username)
            user.username = new_username
            user.credentials_changed_at = utcnow()

        new_email = changes.get("email")
        email_changed = bool(new_email and new_email != user.email)
        if email_changed:
            if self._users.find_by_email(new_email):
                raise AlreadyExists("Email already exists")
            logger.info("Email change requested for user: %s", user.username)
            # The new address has to be verified before the account is usable again
            user.email = new_email
            user.email_verified = False
            user.enabled = False
            user.credentials_changed_at = utcnow()

        for field in PROFILE_FIELDS:
            if field in changes:
                setattr(user, field, changes[field])

        if email_changed:
            self._ephemeral.issue_verification(user)
        else:
            self._users.save(user)
        logger.info("Profile updated for user: %s", user.username)
        return user

    def add_role(self, username: str, role_name: str) -> User:
        user = self._get(username)
        if role_name not in self.allowed_roles:
            logger.error("Role %s not found when adding to user %s", role_name, username)
            raise RoleNotFound(role_name)

        if role_name in (user.roles or []):
            logger.info("User %s already has role %s", username, role_name)
            return user
        user.roles = list(user.roles or [])
        user.roles.append(role_name)
        flag_modified(user, "roles")
        self._users.save(user)
        logger.info("Added role %s to user %s", role_name, username)
        return user
