import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    # Shared secret required to self-register with the admin role.
    admin_signup_secret: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///robostaan.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        admin_signup_secret=_getenv("ADMIN_SIGNUP_SECRET", "change-me"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "ADMIN_SIGNUP_SECRET": s.admin_signup_secret,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # rich-text bodies are posted inline; no file uploads
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
