"""
Service wiring: builds every service once from the app config and the
shared DBStorage, so the signing key and TTLs are fixed at startup.
"""
from __future__ import annotations

from dataclasses import dataclass

from models.repositories import RefreshTokenRepository, UserRepository
from services.email import EmailService
from services.ephemeral_tokens import EphemeralTokenService
from services.refresh_tokens import RefreshTokenService
from services.sessions import SessionService
from services.token_codec import TokenCodec
from services.users import UserService


@dataclass
class Services:
    codec: TokenCodec
    email: EmailService
    refresh_tokens: RefreshTokenService
    ephemeral_tokens: EphemeralTokenService
    sessions: SessionService
    users: UserService


def build_services(config, storage) -> Services:
    user_repo = UserRepository(storage)
    token_repo = RefreshTokenRepository(storage)

    codec = TokenCodec.from_config(config)
    email = EmailService.from_config(config)
    refresh_tokens = RefreshTokenService(user_repo, token_repo, ttl=config["REFRESH_TOKEN_EXPIRES"])
    ephemeral_tokens = EphemeralTokenService(
        user_repo,
        email,
        verification_ttl=config["VERIFICATION_TOKEN_EXPIRES"],
        reset_ttl=config["PASSWORD_RESET_TOKEN_EXPIRES"],
        refresh_tokens=refresh_tokens,
        revoke_sessions_on_reset=config.get("REVOKE_SESSIONS_ON_PASSWORD_RESET", True),
    )
    sessions = SessionService(
        user_repo,
        codec,
        refresh_tokens,
        role_prefix=config.get("ROLE_PREFIX", "ROLE_"),
        rotate_refresh_tokens=config.get("ROTATE_REFRESH_TOKENS", False),
    )
    users = UserService(
        user_repo,
        ephemeral_tokens,
        admin_role=config.get("ROLE_ADMIN", "ADMIN"),
        user_role=config.get("ROLE_USER", "USER"),
        allowed_roles=config.get("ALLOWED_ROLES", ()),
        first_user_admin=config.get("FIRST_USER_ADMIN", True),
    )
    return Services(
        codec=codec,
        email=email,
        refresh_tokens=refresh_tokens,
        ephemeral_tokens=ephemeral_tokens,
        sessions=sessions,
        users=users,
    )
