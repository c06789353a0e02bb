"""API configuration via pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """HTTP server settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server configuration
    host: str = "127.0.0.1"
    port: int = 8100
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API configuration
    api_title: str = "Personal Agent Core API"
    api_version: str = "1.0.0"

    # The core serves a local UI only
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @property
    def docs_enabled(self) -> bool:
        return self.debug
