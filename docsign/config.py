"""Application configuration using Pydantic settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Document Signing Workspace")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Uploads
    max_upload_size_mb: int = Field(default=15, gt=0)

    # Storage
    document_storage_dir: str = Field(default="./documents")
    s3_enabled: bool = Field(default=False)
    s3_bucket_name: Optional[str] = Field(default=None)
    s3_region: str = Field(default="us-east-1")
    s3_access_key: Optional[str] = Field(default=None)
    s3_secret_key: Optional[str] = Field(default=None)
    s3_endpoint_url: Optional[str] = Field(default=None)

    # Signature history
    signature_history_path: str = Field(default="./data/signature_history.json")
    signature_history_key: str = Field(default="saved_signatures")
    signature_history_capacity: int = Field(default=10, gt=0)

    # Overlay placement (render-space pixels)
    overlay_initial_x: float = Field(default=100.0)
    overlay_initial_y: float = Field(default=100.0)
    overlay_initial_height: float = Field(default=100.0, gt=0)
    overlay_min_width: float = Field(default=50.0, gt=0)
    resize_handle_size: float = Field(default=24.0, gt=0)
    click_move_threshold: float = Field(default=4.0, ge=0)
    page_gap: float = Field(default=16.0, ge=0)

    # Compositing
    bake_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()

    @property
    def max_upload_size_bytes(self) -> int:
        """Upload size cap in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    def get_document_storage_dir(self) -> Path:
        """Get document storage directory as Path object."""
        return Path(self.document_storage_dir)

    def get_signature_history_path(self) -> Path:
        """Get signature history file as Path object."""
        return Path(self.signature_history_path)

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        self.get_document_storage_dir().mkdir(parents=True, exist_ok=True)
        self.get_signature_history_path().parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
