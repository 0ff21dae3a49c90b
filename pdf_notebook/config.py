"""
Configuration management for the PDF Notebook API.
Handles environment variables and application settings.
"""

import logging
import os
import tempfile
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from .errors import ConfigurationError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields from environment
    )

    # API Configuration
    app_name: str = Field(default="PDF Notebook API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    frontend_url: str = Field(default="http://localhost:5173")

    # OpenRouter Configuration
    openrouter_api_key: Optional[str] = Field(default=None)
    openrouter_model: str = Field(default="anthropic/claude-3.5-sonnet")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    openrouter_http_referer: str = Field(default="http://localhost:3000")
    openrouter_timeout_seconds: float = Field(default=30.0)

    # File Processing Configuration
    max_file_size_mb: int = Field(default=10)
    allowed_mime_types: List[str] = Field(default=["application/pdf"])
    upload_dir: Optional[str] = Field(default=None)

    # Document Store Configuration
    document_retention_hours: float = Field(default=24.0)
    sweep_interval_seconds: float = Field(default=3600.0)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def upload_path(self) -> str:
        """Directory where uploads are staged while they are parsed."""
        return self.upload_dir or os.path.join(tempfile.gettempdir(), "pdf-notebook-uploads")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def validate_required_settings(config: Optional[Settings] = None) -> None:
    """Validate that the settings describe a usable service."""
    config = config or settings

    problems = []
    if config.max_file_size_mb <= 0:
        problems.append("max_file_size_mb must be positive")
    if config.document_retention_hours <= 0:
        problems.append("document_retention_hours must be positive")
    if config.sweep_interval_seconds <= 0:
        problems.append("sweep_interval_seconds must be positive")
    if config.openrouter_timeout_seconds <= 0:
        problems.append("openrouter_timeout_seconds must be positive")
    if not config.openrouter_base_url.startswith(("http://", "https://")):
        problems.append("openrouter_base_url must be an http(s) URL")

    if problems:
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(problems)}. "
            "Please check your .env file."
        )

    if not config.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is not set; chat answers will be mock responses")
