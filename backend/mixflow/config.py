"""Application configuration"""
from functools import lru_cache
from pathlib import Path
from typing import List
import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "change-me"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./mixflow.db"

    # Uploads
    upload_dir: str = "./uploads"
    upload_url_prefix: str = "/uploads"
    upload_max_file_size: int = 100 * 1024 * 1024  # 100MB
    upload_max_files: int = 2  # audio + artwork

    # Auth tokens
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 7 * 24 * 60

    # API Configuration
    cors_origins: str = "http://localhost:3000,http://localhost:4200"
    api_prefix: str = "/api"

    # Server Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3333

    # Streaming
    stream_chunk_size: int = 64 * 1024
    analytics_workers: int = 4
    analytics_drain_timeout: float = 10.0  # Seconds shutdown waits for pending play counts

    # Placeholder used when the audio duration cannot be read
    default_track_duration: int = 180

    @model_validator(mode="after")
    def check_jwt_secret(self) -> "Settings":
        if not self.jwt_secret or self.jwt_secret == DEFAULT_JWT_SECRET:
            if self.environment == "production":
                raise ValueError("JWT_SECRET is required in production environment")
            logger.warning("JWT_SECRET not set, using an insecure development secret")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def upload_root(self) -> Path:
        return Path(self.upload_dir)

    @property
    def audio_dir(self) -> Path:
        return self.upload_root / "audio"

    @property
    def artwork_dir(self) -> Path:
        return self.upload_root / "artwork"


@lru_cache
def get_settings() -> Settings:
    """Build the process-wide settings once"""
    return Settings()
