"""
Global configuration for the Breaktool service layer.
"""
from typing import Optional
from pydantic_settings import BaseSettings

class ServiceConfig(BaseSettings):
    """Service configuration, read from the environment and `.env`."""

    # SQLite file; ignored when DATABASE_URL is set
    DB_PATH: str = "data/breaktool.db"
    DATABASE_URL: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    # Daily rotated log files are written here when set
    LOG_DIR: Optional[str] = None
    LOG_TIMEZONE: str = "UTC"

    RATE_LIMIT_ENABLED: bool = True
    VOTE_RATE_LIMIT: str = "30/minute"

    NOTIFICATIONS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "BREAKTOOL_"
        extra = "ignore"

# Global config instance
config = ServiceConfig()
