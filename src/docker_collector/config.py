"""Configuration management for the Docker collector."""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOCKER_COLLECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Collector identity
    collector_name: str = "DockerCollector"
    collector_type: str = "Docker"

    # Schedule (standard 5-field cron)
    cron: str = "*/5 * * * *"

    # Document store
    db_path: Path = Path("./data/docker_collector.db")

    # Remote runtime connections
    docker_timeout: float = Field(default=10.0, gt=0)

    # Status API
    api_host: str = "0.0.0.0"
    api_port: int = 8300

    # Bookkeeping
    max_error_log: int = Field(default=100, ge=0)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = Path("./logs/docker_collector.log")

    def ensure_dirs(self):
        """Create necessary directories."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)


settings = Settings()
