"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INFRASCOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Checkouts must live strictly below this directory
    scratch_root: Path = Path("/tmp/infrascout")
    max_repo_size_mb: int = 500

    # Larger files are treated as absent
    max_manifest_bytes: int = 512 * 1024
    max_workspace_config_bytes: int = 1024 * 1024

    # Written for required env vars that have no detected value
    env_placeholder_template: str = "<required: set {key}>"

    base_domain: str = "apps.localhost"

    @property
    def max_repo_size_bytes(self) -> int:
        return self.max_repo_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
