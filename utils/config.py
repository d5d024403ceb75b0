"""
Configuration - Mapper Settings

Stream names, Redis connections, healthcheck thresholds and logging options,
read from the environment (or a .env file) through pydantic-settings.

Usage:
    from utils.config import settings

    redis_url = settings.REDIS_URL
    read_stream = settings.REDIS_READ_STREAM
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Metadata
    APP_NAME: str = Field(default="next-video-mapper")
    SYSTEM_CODE: str = Field(default="upp-next-video-mapper")
    APP_VERSION: str = Field(default="0.1.0")
    ENVIRONMENT: str = Field(default="production")

    # Backend API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8080)

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    REDIS_WRITE_URL: Optional[str] = Field(default=None)
    REDIS_MAX_CONNECTIONS: int = Field(default=10)

    # Streams
    REDIS_READ_STREAM: str = Field(default="NativeCmsPublicationEvents")
    REDIS_WRITE_STREAM: str = Field(default="CmsPublicationEvents")
    REDIS_CONSUMER_GROUP: str = Field(default="next-video-mapper")
    REDIS_CONSUMER_NAME: str = Field(default="next-video-mapper-1")
    REDIS_READ_COUNT: int = Field(default=10)
    REDIS_BLOCK_MS: int = Field(default=1000)
    REDIS_STREAM_MAXLEN: int = Field(default=100000)

    # Healthchecks
    QUEUE_LAG_TOLERANCE: int = Field(default=120, ge=0)
    HEALTH_CHECK_TIMEOUT: float = Field(default=5.0, gt=0)
    PANIC_GUIDE_URL: str = Field(default="https://runbooks.in.ft.com/upp-next-video-mapper")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def write_redis_url(self) -> str:
        """Redis URL of the outbound stream, falling back to REDIS_URL."""
        return self.REDIS_WRITE_URL or self.REDIS_URL


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
