from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the IP finder service.

    Values are read from the environment (case-insensitive) and from an
    optional `.env` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="Address the HTTP server binds to")
    port: int = Field(default=3001, description="Port the HTTP server listens on")
    reload: bool = Field(default=False, description="Enable uvicorn auto-reload")
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")

    cache_duration: int = Field(default=3600, ge=1, description="Cache TTL in seconds")
    cache_check_period: int = Field(
        default=120,
        ge=0,
        description="Seconds between expired entry sweeps; 0 disables the sweep",
    )

    rate_limit_max_requests: int = Field(default=100, ge=1, description="Requests allowed per window")
    rate_limit_window_seconds: int = Field(default=15 * 60, ge=1, description="Rate limit window in seconds")

    ipapi_key: str | None = Field(default=None, description="Optional ipapi.co API key")
    ipinfo_token: str | None = Field(default=None, description="Optional ipinfo.io access token")
    upstream_timeout_seconds: float = Field(default=5.0, gt=0, description="Timeout for provider calls")
    user_agent: str = Field(default="IP-Finder-App/1.0", description="User-Agent sent to providers")

    cors_allow_origins: list[str] = Field(default=["*"], description="Origins allowed by CORS")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
