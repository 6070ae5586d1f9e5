from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from swipemail.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 3001
    APP_ENV: Literal["development", "production"] = "production"
    HOST_NAME: str = "http://localhost:3001"
    SERVICE_NAME: str = "SwipeMail Backend API"

    # Profile storage
    PROFILES_DIR: Path = Path("data/profiles")
    # Lock acquisition retries before a write is reported as failed
    PROFILE_LOCK_ATTEMPTS: int = 10
    PROFILE_LOCK_INTERVAL_SECONDS: float = 0.1
    # A lock marker older than this was left behind by a crashed writer
    PROFILE_LOCK_STALE_SECONDS: float = 30.0

    # Tag extraction (OpenAI-compatible chat completions endpoint)
    TAG_API_KEY: str | None = None
    TAG_API_BASE_URL: str = "https://api.cerebras.ai/v1"
    TAG_MODEL: str = "llama3.1-8b"
    TAG_API_TIMEOUT_SECONDS: float = 10.0
    TAG_CACHE_SIZE: int = 2000
    TAG_CACHE_TTL_SECONDS: int = 43200  # 12 hours

    DEFAULT_USER_ID: str = "demo-user"
    MAX_ITEMS_PER_RANK_REQUEST: int = 50


settings = Settings()

APP_VERSION = __version__
