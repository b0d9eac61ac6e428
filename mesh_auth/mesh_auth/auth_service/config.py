"""
Configuration management for the authentication service
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Authentication service configuration loaded from environment variables"""

    # Server Configuration
    SERVICE_PORT: int = 80
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./users.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_TIMEOUT_SECONDS: float = 3.0

    # Password Hashing
    PASSWORD_HASH_SCHEME: str = "pbkdf2_sha256"
    PASSWORD_HASH_ROUNDS: int = 29000

    # Logger Service Integration
    LOGGER_SERVICE_URL: str = "http://logger-service/log"
    NOTIFIER_TIMEOUT_SECONDS: float = 5.0
    NOTIFIER_ENABLED: bool = True
    NOTIFIER_WORKERS: int = 2

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


# Global settings instance
settings = Settings()
