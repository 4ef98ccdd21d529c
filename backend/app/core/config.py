from pydantic_settings import BaseSettings
from pydantic import Field, validator
import secrets


class Settings(BaseSettings):
    # Application settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security settings
    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    # Fernet key for external credentials; derived from SECRET_KEY when empty
    CREDENTIALS_ENCRYPTION_KEY: str = ""
    CREDENTIALS_KEY_SALT: str = "attendance-sync-credentials"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./attendance.db"
    DATABASE_ECHO: bool = False

    # TeachAssist settings
    TEACHASSIST_BASE_URL: str = "https://ta.yrdsb.ca/yrdsb/"
    TEACHASSIST_HEADLESS: bool = True
    TEACHASSIST_TIMEOUT_MS: int = 30000

    # Sync settings
    SYNC_MATCH_THRESHOLD: int = 80
    SYNC_MAX_DATE_RANGE_DAYS: int = 31
    SCHOOL_TIMEZONE: str = "America/Toronto"

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        return v

    @validator("SYNC_MATCH_THRESHOLD")
    def validate_match_threshold(cls, v):
        if not 0 <= v <= 100:
            raise ValueError("SYNC_MATCH_THRESHOLD must be between 0 and 100")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
