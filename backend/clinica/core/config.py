"""
Centralized configuration module for application-wide settings.

Values come from environment variables (optionally loaded from a ``.env``
file by ``clinica.main``). Each setting has a getter so tests can change the
environment and re-read it; the module-level constants are the values
resolved at import time.
"""

import logging
import os
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower().strip() in _TRUTHY


# ===========================
# Database
# ===========================


def get_database_url() -> str:
    """Return the SQLAlchemy URL (defaults to a local SQLite file)."""
    return os.getenv("DATABASE_URL", "sqlite:///./clinica.db")


# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from the TZ environment variable.

    Environment Variables:
        TZ: Timezone identifier (e.g., 'America/Sao_Paulo', 'UTC')
            Default: 'UTC'
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


APP_TZ = get_app_timezone()


# ===========================
# Logging
# ===========================


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_json() -> bool:
    return _env_flag("LOG_JSON", "false")


def get_log_to_file() -> bool:
    # File logging is off under tests to keep the workspace clean
    return _env_flag("LOG_TO_FILE", "false" if is_testing() else "true")


# ===========================
# Runtime flags
# ===========================


def is_testing() -> bool:
    return _env_flag("TESTING", "false")


def is_production() -> bool:
    return os.getenv("FLASK_ENV", "development") == "production"


def get_secret_key() -> str:
    """
    Return the Flask secret key.

    Raises:
        ValueError: when running in production with the development default.
    """
    secret = os.getenv("SECRET_KEY", "dev-secret-change-me")
    if is_production() and (secret == "dev-secret-change-me" or len(secret) < 32):
        raise ValueError(
            "Production deployment requires a strong SECRET_KEY (min 32 chars)."
        )
    return secret


def get_rate_limit_enabled() -> bool:
    if is_testing():
        return False
    return _env_flag("RATE_LIMIT_ENABLED", "true")


# ===========================
# Attachments
# ===========================


def get_max_attachment_bytes() -> int:
    """Maximum decoded size of a single attachment (default 5 MB)."""
    raw = os.getenv("MAX_ATTACHMENT_BYTES", str(5 * 1024 * 1024))
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Invalid MAX_ATTACHMENT_BYTES, using default",
            extra={"context": {"MAX_ATTACHMENT_BYTES": raw}},
        )
        return 5 * 1024 * 1024


MAX_ATTACHMENT_BYTES = get_max_attachment_bytes()


def log_config() -> None:
    """Log the active configuration (without secrets) at startup."""
    logger.info(
        "Configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "testing": is_testing(),
                "rate_limit_enabled": get_rate_limit_enabled(),
                "max_attachment_bytes": MAX_ATTACHMENT_BYTES,
            }
        },
    )
