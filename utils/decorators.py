"""
Request authentication and authorization.

authenticate_request() runs before every request and only ever *sets*
g.identity (or None); it never rejects. The decorators below are where
missing or insufficient identities are turned into 401/403.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps

from flask import abort, current_app, g, request

from services.exceptions import TokenError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    subject: str
    authorities: frozenset

    def has_any(self, authorities) -> bool:
        return bool(self.authorities & set(authorities))


def get_services():
    return current_app.extensions["user_management"]


def current_identity() -> Identity | None:
    return g.get("identity")


def authenticate_request():
    """before_request hook: resolve the bearer token into g.identity."""
    g.identity = None
    auth = request.headers.get("Authorization", "")
    if not auth.startswith(BEARER_PREFIX):
        return None

    token = auth[len(BEARER_PREFIX):].strip()
    services = get_services()
    try:
        claims = services.codec.verify(token)
    except TokenError as exc:
        logger.debug("Ignoring bearer token on %s: %s", request.path, exc.message)
        return None

    # One credential lookup: the subject must still be the account that got the token
    if services.sessions.resolve(claims) is None:
        logger.debug("Ignoring stale bearer token for %s on %s", claims.subject, request.path)
        return None

    g.identity = Identity(subject=claims.subject, authorities=frozenset(claims.authorities))
    logger.debug("Authenticated %s for %s", claims.subject, request.path)
    return None


def login_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_identity() is None:
                abort(401, description="Authentication required")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the identity has ANY of the required roles.
    Deny (403) only if there is NO overlap.
    Role names are matched against authorities with the configured prefix.
    """
    def decorator(fn):
        @wraps(fn)
        @login_required()
        def wrapper(*args, **kwargs):
            prefix = current_app.config.get("ROLE_PREFIX", "ROLE_")
            wanted = {r if r.startswith(prefix) else f"{prefix}{r}" for r in required_roles}
            if not current_identity().has_any(wanted):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def admin_required():
    """roles_required() for whatever ROLE_ADMIN is configured to."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            guarded = roles_required([current_app.config.get("ROLE_ADMIN", "ADMIN")])(fn)
            return guarded(*args, **kwargs)

        return wrapper

    return decorator
