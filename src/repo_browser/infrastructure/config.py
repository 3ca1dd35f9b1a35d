"""Environment-driven settings.

Every field maps to the upper-cased environment variable of the same name
(``GITHUB_ACCESS_TOKEN``, ``STATUS_INTERVAL``, ...); a ``.env`` file in the
working directory is read as well.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Optional here so a missing token surfaces as ConfigurationError at
    # startup instead of a pydantic ValidationError on import.
    github_access_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    status_interval: int = Field(default=5, ge=1)

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings; tests call ``get_settings.cache_clear()``."""
    return Settings()
