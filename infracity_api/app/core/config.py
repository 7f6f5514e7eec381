"""
Configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables, with defaults for every field.  Override them
in production via the environment (``SECRET_KEY`` and
``REFRESH_SECRET_KEY`` in particular).
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "InfraCity API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    api_prefix: str = os.getenv("API_PREFIX", "/api")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE") or None

    # Access tokens are short lived; clients renew them with the
    # refresh token, which is signed with a separate secret.
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
    refresh_secret_key: str = os.getenv("REFRESH_SECRET_KEY", "change_me_too")
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Path to the SQLite database.  Relative paths are resolved
    # against the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "infracity.db")


# Environment variables must be set before this module is imported.
settings = Settings()
