"""Application configuration using Pydantic Settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "Crawl Sync"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # REST API (bulk fetch + job control)
    API_BASE_URL: str = "http://localhost:8088/api/v1"
    HTTP_TIMEOUT: float = 10.0
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_MIN_WAIT: float = 0.5
    FETCH_MAX_WAIT: float = 10.0

    # Event stream
    WS_URL: str = "ws://localhost:8088/api/v1/ws"
    RECONNECT_DELAY_SECONDS: float = 3.0

    # Job store
    # Off: last write wins by call order. On: older updated_at never overwrites newer.
    RESOLVE_CONFLICTS_BY_TIMESTAMP: bool = False
    # Numeric durations above this are treated as nanoseconds
    DURATION_NS_THRESHOLD: int = 1_000_000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
