"""Client configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """found.as client settings."""

    model_config = SettingsConfigDict(
        env_prefix="FOUNDAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Server
    server_url: str = "https://found.as"
    api_path: str = "/api"
    request_timeout: float = Field(default=30.0, gt=0)

    # Sync
    debounce_seconds: float = Field(default=0.2, ge=0)

    # Content limits
    max_upload_bytes: int = Field(default=1024 * 1024, ge=1)
    max_path_length: int = Field(default=32, ge=1)

    @property
    def api_url(self) -> str:
        """Absolute URL of the single POST endpoint."""
        return f"{self.server_url.rstrip('/')}/{self.api_path.lstrip('/')}"
