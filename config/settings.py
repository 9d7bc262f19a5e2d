from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from accesslog.observability.access_log_middleware import (
    AccessLogConfig,
    default_skipper,
    skip_paths,
)


class Settings(BaseSettings):
    """Central configuration for accesslog-backend.

    Common defaults live here; environment variables override per environment.

    Only env vars (and optional .env files), no YAML/JSON.
    The access log middleware itself is configured in code; these values
    are just what the bundled service feeds into it.
    """

    # --- Core ---
    environment: str = "local"
    service_name: str = "accesslog-backend"

    # --- HTTP server ---
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Logging ---
    log_level: str = "INFO"

    # --- Access log ---
    access_log_print_body: bool = True
    access_log_body_size_limit: int = 1024
    access_log_skip_paths: List[str] = []
    access_log_context_keys: List[str] = []

    model_config = SettingsConfigDict(
        # .env.common: shared defaults (committed)
        # .env.local: local overrides (gitignored)
        env_file=(".env.common", ".env.local"),
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Call this instead of instantiating Settings directly."""
    return Settings()


def access_log_config(settings: Settings) -> AccessLogConfig:
    """Build the access log middleware config from settings."""
    if settings.access_log_skip_paths:
        skipper = skip_paths(*settings.access_log_skip_paths)
    else:
        skipper = default_skipper

    return AccessLogConfig(
        skipper=skipper,
        print_body=settings.access_log_print_body,
        body_size_limit=settings.access_log_body_size_limit,
        context_keys=tuple(settings.access_log_context_keys),
    )
