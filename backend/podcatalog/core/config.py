import os
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional

# Get the root path of the project (the 'backend' directory)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

class Settings(BaseSettings):
    """
    Pydantic settings class to manage application configuration.
    It automatically reads environment variables from a .env file.
    """
    # --- Core Application Settings ---
    PROJECT_NAME: str = "Podcast Catalog API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # --- Database Settings ---
    # The default URL points to a SQLite database file in the project's backend root.
    DATABASE_URL: str = f"sqlite:///{os.path.join(PROJECT_ROOT, 'podcatalog.db')}"

    # --- PodcastIndex Settings ---
    PODCASTINDEX_API_KEY: Optional[str] = None
    PODCASTINDEX_API_SECRET: Optional[str] = None
    PODCASTINDEX_USER_AGENT: str = "PodcastIndexManager/1.0"
    PODCASTINDEX_BASE_URL: str = "https://api.podcastindex.org/api/1.0"
    PODCASTINDEX_TIMEOUT: int = 30
    # Retries apply to connection errors, 429 and 5xx responses only.
    PODCASTINDEX_MAX_RETRIES: int = 3
    PODCASTINDEX_BACKOFF_FACTOR: float = 0.5

    # --- Episode Sync Settings ---
    # Items requested per episodes/byfeedid call.
    EPISODE_PAGE_SIZE: int = 1000
    # Upper bound on pages per reconciliation; a feed with more new items
    # than EPISODE_PAGE_SIZE * EPISODE_MAX_PAGES catches up over several runs.
    EPISODE_MAX_PAGES: int = 64
    # Episodes written per transaction.
    EPISODE_WRITE_CHUNK_SIZE: int = 100
    RECENT_SYNC_MAX: int = 500
    # Time budget for one recent-data sweep. Checked between feeds; unset means no limit.
    RECENT_SYNC_DEADLINE_SECONDS: Optional[float] = None

    # --- Redis Settings ---
    REDIS_URL: Optional[str] = None
    SYNC_QUEUE_NAME: str = "podcast-sync"
    SYNC_JOB_MAX_ATTEMPTS: int = 3

    # --- Quality Settings ---
    QUALITY_WINDOW_HOURS: int = 24
    QUALITY_FAILED_SYNC_CRITICAL: int = 5
    QUALITY_STALE_DAYS: int = 7

    @field_validator("PODCASTINDEX_API_KEY", "PODCASTINDEX_API_SECRET", "REDIS_URL", mode="before")
    @classmethod
    def strip_quotes(cls, value: Optional[str]) -> Optional[str]:
        """
        Trims whitespace and a single pair of surrounding quotes, which are a
        common leftover of copy-pasted .env values. Empty values become None.
        """
        if value is None:
            return None
        normalized = str(value).strip()
        if len(normalized) >= 2 and normalized[0] == normalized[-1] and normalized[0] in ("'", '"'):
            normalized = normalized[1:-1]
        return normalized or None

    class Config:
        """
        Pydantic config subclass to specify the .env file location.
        """
        env_file = os.path.join(PROJECT_ROOT, ".env")
        env_file_encoding = 'utf-8'
        extra = "ignore" # Allow extra fields from .env to be ignored

# Instantiate the settings object that will be used throughout the application.
settings = Settings()
