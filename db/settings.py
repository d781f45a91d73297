from __future__ import annotations

import os
from pathlib import Path

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from db.errors import ConfigurationError


REPO_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_ADMIN_EMAIL = "admin@wellness.com"
DEFAULT_ADMIN_NAME = "Admin User"
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
_ADMIN_DEFAULTS = {"admin_email": DEFAULT_ADMIN_EMAIL, "admin_name": DEFAULT_ADMIN_NAME}


class MigrateSettings(BaseSettings):
    # The env file is shared with the web app, so unrelated keys (JWT_SECRET, ...) are expected.
    model_config = SettingsConfigDict(extra="ignore", env_file_encoding="utf-8")

    database_url: str
    admin_email: str = DEFAULT_ADMIN_EMAIL
    admin_name: str = DEFAULT_ADMIN_NAME
    admin_password: str | None = None
    admin_password_hash: str | None = None

    # Serverless path only. Defaults to https://<host>/sql when unset.
    sql_http_endpoint: str | None = None
    http_timeout_s: float = 30.0

    log_level: str = "info"

    @field_validator("admin_email", "admin_name", mode="before")
    @classmethod
    def blank_means_default(cls, v, info):
        # `ADMIN_EMAIL=` in an env file means "not set", same as the password fields.
        if v is None or (isinstance(v, str) and not v.strip()):
            return _ADMIN_DEFAULTS[info.field_name]
        return v.strip() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def known_log_level(cls, v):
        level = str(v or "info").strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {v!r}; expected one of {', '.join(LOG_LEVELS)}")
        return level


def default_env_path() -> Path:
    explicit = os.getenv("ENV_PATH")
    if explicit:
        return Path(explicit)
    return REPO_ROOT / ".env"


def load_settings(env_path: str | os.PathLike[str] | None = None) -> tuple[MigrateSettings, Path | None]:
    """
    Build settings from the environment plus an optional env file.

    Returns the settings and the env file actually read (None when it doesn't exist).
    Environment variables win over values from the file.
    """
    path = Path(env_path) if env_path else default_env_path()
    loaded = path if path.is_file() else None
    try:
        settings = MigrateSettings(_env_file=loaded)  # type: ignore[call-arg]
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors() if err["type"] == "missing"]
        if "database_url" in missing:
            raise ConfigurationError("DATABASE_URL not set") from e
        raise ConfigurationError(f"invalid settings: {e}") from e
    if not settings.database_url.strip():
        raise ConfigurationError("DATABASE_URL not set")
    return settings, loaded
