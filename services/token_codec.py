"""
Access-token codec.

Signs and verifies compact JWTs carrying {sub, roles, iat, exp} with
PyJWT. The signing key is fixed when the codec is built; the app builds
exactly one codec at startup and hands it to whoever needs it.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping

import jwt

from services.exceptions import InvalidSignature, MalformedToken, TokenExpired

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "iat", "exp"]


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    authorities: tuple[str, ...] = field(default_factory=tuple)
    issued_at: datetime | None = None
    expires_at: datetime | None = None


class TokenCodec:
    def __init__(
        self,
        secret: str | bytes | None,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        renewal_ttl: timedelta = timedelta(hours=24),
    ):
        if not secret:
            # Tokens will not survive a restart in this mode
            secret = secrets.token_bytes(64)
            logger.warning("JWT_SECRET not configured; using a generated signing key for this process")
        else:
            logger.info("Using configured JWT signing key")
        self._key = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.renewal_ttl = renewal_ttl

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenCodec":
        return cls(
            secret=config.get("JWT_SECRET"),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_ttl=config.get("ACCESS_TOKEN_EXPIRES", timedelta(minutes=15)),
            renewal_ttl=config.get("RENEWAL_TOKEN_EXPIRES", timedelta(hours=24)),
        )

    def issue(self, subject: str, authorities: Iterable[str], ttl: timedelta | None = None) -> str:
        """Build and sign a token expiring `ttl` from now (access TTL by default)."""
        now = datetime.now(timezone.utc)
        exp = now + (self.access_ttl if ttl is None else ttl)
        payload = {
            "sub": str(subject),
            "roles": list(authorities),
            # Sub-second precision so tokens order against credential changes
            "iat": now.timestamp(),
            "exp": int(exp.timestamp()),
        }
        logger.debug("Issuing token for subject %s", subject)
        return jwt.encode(payload, self._key, algorithm=self.algorithm)

    def issue_access(self, subject: str, authorities: Iterable[str]) -> str:
        return self.issue(subject, authorities, self.access_ttl)

    def issue_renewal(self, subject: str, authorities: Iterable[str]) -> str:
        return self.issue(subject, authorities, self.renewal_ttl)

    def verify(self, token: str) -> TokenClaims:
        """
        Check signature, then expiry, and return the claims.
        Raises MalformedToken, InvalidSignature or TokenExpired.
        """
        if not token or not isinstance(token, str):
            raise MalformedToken()
        try:
            decoded = jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError:
            raise InvalidSignature()
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(f"Malformed token: {exc}")

        roles = decoded.get("roles") or []
        if not isinstance(roles, list):
            raise MalformedToken("Malformed token: roles claim must be a list")
        return TokenClaims(
            subject=decoded["sub"],
            authorities=tuple(str(r) for r in roles),
            issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
        )
