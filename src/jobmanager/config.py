"""Configuration management for jobmanager."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Jobmanager config directory
JOBMANAGER_DIR = Path.home() / ".jobmanager"
JOBMANAGER_ENV_FILE = JOBMANAGER_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="JOBMANAGER_",
        # Load from multiple locations (later files override earlier)
        env_file=(str(JOBMANAGER_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage settings
    snapshot_path: Path | None = Field(
        default=None,
        description="Path of the job snapshot (default: ~/.jobmanager/jobs.json)",
    )
    jobs_file: Path | None = Field(
        default=None,
        description="YAML job definitions (default: ~/.jobmanager/jobs.yaml)",
    )

    # Journal settings
    log_path: Path | None = Field(
        default=None,
        description="Path of the scheduler journal (default: ~/.jobmanager/jobs.log)",
    )
    log_max_bytes: int = Field(
        default=65536,
        gt=0,
        description="Journal size in bytes before rotation",
    )
    log_backup_count: int = Field(
        default=1,
        ge=1,
        description="Rotated journal files to keep",
    )

    # Timer settings
    tick_interval_ms: int = Field(
        default=1000,
        gt=0,
        description="Milliseconds between two scheduler ticks",
    )
    first_tick_delay_ms: int = Field(
        default=10,
        ge=0,
        description="Milliseconds before the first tick after start",
    )

    def get_snapshot_path(self) -> Path:
        """Get the snapshot path, using default if not set."""
        if self.snapshot_path:
            return self.snapshot_path
        return JOBMANAGER_DIR / "jobs.json"

    def get_log_path(self) -> Path:
        """Get the journal path, using default if not set."""
        if self.log_path:
            return self.log_path
        return JOBMANAGER_DIR / "jobs.log"

    def get_jobs_file(self) -> Path:
        """Get the definitions file path, using default if not set."""
        if self.jobs_file:
            return self.jobs_file
        return JOBMANAGER_DIR / "jobs.yaml"


# Global settings instance
settings = Settings()
