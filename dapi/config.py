"""
dapi - Configuration
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "dapi"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Data database (the one the API reads from)
    DB_TYPE: str = "sqlite"
    DATABASE_URL: str = "sqlite:///./data/dapi.db"

    # Audit log store
    AUDIT_DATABASE_URL: str = "sqlite:///./data/dapi_audit.db"
    AUDIT_QUEUE_SIZE: int = 1000

    # Trail
    REPORTING_LEVEL: int = 0
    DEBUG_DB: bool = False

    # API
    API_PREFIX: str = "/api/d"
    API_LOG_READ: bool = True
    API_LOG_WRITE: bool = True

    # CORS
    CORS_ORIGINS: list = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
