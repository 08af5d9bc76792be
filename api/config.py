"""
Environment-aware configuration.
Security keys, token lifetimes, role policy, mail and CORS settings.
Database URL is handled by DBStorage (APP_ENV / DATABASE_URL).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_seconds(name: str, default: int) -> timedelta:
    return timedelta(seconds=int(os.getenv(name, str(default))))


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Token signing. Empty JWT_SECRET means a random key per process start.
    JWT_SECRET = os.getenv("JWT_SECRET", "")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = _env_seconds("ACCESS_TOKEN_EXPIRES_SECONDS", 15 * 60)
    RENEWAL_TOKEN_EXPIRES = _env_seconds("RENEWAL_TOKEN_EXPIRES_SECONDS", 24 * 60 * 60)
    REFRESH_TOKEN_EXPIRES = _env_seconds("REFRESH_TOKEN_EXPIRES_SECONDS", 7 * 24 * 60 * 60)
    VERIFICATION_TOKEN_EXPIRES = _env_seconds("VERIFICATION_TOKEN_EXPIRES_SECONDS", 24 * 60 * 60)
    PASSWORD_RESET_TOKEN_EXPIRES = _env_seconds("PASSWORD_RESET_TOKEN_EXPIRES_SECONDS", 60 * 60)
    ROTATE_REFRESH_TOKENS = _env_bool("ROTATE_REFRESH_TOKENS", "false")
    REVOKE_SESSIONS_ON_PASSWORD_RESET = _env_bool("REVOKE_SESSIONS_ON_PASSWORD_RESET", "true")

    # Roles
    ROLE_ADMIN = os.getenv("ROLE_ADMIN", "ADMIN")
    ROLE_USER = os.getenv("ROLE_USER", "USER")
    ROLE_PREFIX = os.getenv("ROLE_PREFIX", "ROLE_")
    ALLOWED_ROLES = os.getenv("ALLOWED_ROLES", "ADMIN,USER,MODERATOR").split(",")
    FIRST_USER_ADMIN = _env_bool("FIRST_USER_ADMIN", "true")

    # Outbound mail. No MAIL_SERVER means messages are logged instead of sent.
    MAIL_SERVER = os.getenv("MAIL_SERVER", "")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "true")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@usermanagement.local")
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000")
    # Handle queued emails inline instead of on the background worker
    EMAIL_QUEUE_SYNC = _env_bool("EMAIL_QUEUE_SYNC", "false")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    JWT_SECRET = "test-signing-key-that-is-at-least-32-bytes-long"
    EMAIL_QUEUE_SYNC = True
    MAIL_SERVER = ""
    FIRST_USER_ADMIN = True
    ROTATE_REFRESH_TOKENS = False
    REVOKE_SESSIONS_ON_PASSWORD_RESET = True


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
