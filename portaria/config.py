"""Application configuration management."""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Google Cloud Platform
    gcp_project_id: Optional[str] = None
    google_application_credentials: Optional[str] = None

    # Google Sheets (authoritative delivery store)
    google_sheets_id: Optional[str] = None
    deliveries_sheet_name: str = "Entregas"

    # Google Cloud Storage (delivery photos)
    gcs_bucket_name: Optional[str] = None

    # Local cache (degraded-mode fallback)
    local_cache_path: str = "data/entregas_cache.json"

    # Pickup codes
    pickup_code_length: int = 5
    pickup_code_max_attempts: int = 10

    # Notification chain, tried in this order
    notification_primary_url: Optional[str] = None
    notification_secondary_url: Optional[str] = None
    notification_secondary_token: Optional[str] = None
    notification_tertiary_url: Optional[str] = None
    # Upper bound for a single channel attempt, in seconds
    notification_timeout_seconds: float = 10.0

    # Resident-facing messages
    condominium_name: str = "Condomínio"
    default_phone_region: str = "BR"
    timezone: str = "America/Sao_Paulo"
    reminder_min_days: int = 2

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8080

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def cache_path(self) -> Path:
        """Get Path object for the local cache file."""
        return Path(self.local_cache_path)

    @property
    def notification_channels(self) -> List[tuple[str, str]]:
        """Configured (name, url) pairs in fallback order."""
        channels = [
            ("webhook", self.notification_primary_url),
            ("function", self.notification_secondary_url),
            ("direct", self.notification_tertiary_url),
        ]
        return [(name, url) for name, url in channels if url]


# Global settings instance
settings = Settings()
