"""
Application configuration with environment variable support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from the environment (and an optional .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Region code -> comma-separated instance domains, as a JSON object
    REGIONS_JSON: str = ""

    # Cache backend; empty means in-process memory cache
    REDIS_URL: str = ""
    CACHE_TTL_SECONDS: int = 300

    # Source instance fetching
    SOURCE_TIMEOUT_SECONDS: float = 5.0
    SOURCE_PAGE_LIMIT: int = 20
    MAX_CONCURRENT_FETCHES: int = 16

    # Sentiment classification
    SENTIMENT_ENABLED: bool = True
    SENTIMENT_MODEL: str = "distilbert-base-uncased-finetuned-sst-2-english"
    MAX_CONCURRENT_CLASSIFICATIONS: int = 4

    # HTTP surface
    CORS_ALLOW_ORIGINS: str = "*"
    PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    def cors_origins(self) -> List[str]:
        """Split the comma-separated CORS origin list."""
        return [item.strip() for item in self.CORS_ALLOW_ORIGINS.split(",") if item.strip()] or ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Get settings singleton."""
    return Settings()


# Timeline shaping
MAX_TIMELINE_POSTS: int = 50

# Sentiment text band (characters of cleaned text, inclusive)
MIN_TEXT_LENGTH: int = 10
MAX_TEXT_LENGTH: int = 512

# Bump when the cached response shape changes
CACHE_SCHEMA_VERSION: str = "v2"

# HTTP Client Configuration
USER_AGENT = "regional-timeline/0.1"
HTTP_HEADERS = {"User-Agent": USER_AGENT, "Accept": "application/json"}

# Logging Configuration
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
