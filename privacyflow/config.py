from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from typing import Optional

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "PrivacyFlow"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./privacyflow.db"

    # Security settings
    secret_key: str = "your_secret_key"
    session_expire_seconds: int = 3600
    redis_url: Optional[str] = None
    rate_limit_enabled: bool = True

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Consent
    default_locale: str = "en-GB"

    # Re-authentication window for sensitive actions
    reauth_window_minutes: int = 10

    # Data exports
    export_cooldown_hours: int = 24
    export_ttl_hours: int = 24
    export_batch_size: int = 10
    signed_url_ttl_seconds: int = 24 * 60 * 60

    # Account deletion
    deletion_batch_size: int = 5

    # Background jobs
    cron_secret: Optional[str] = None
    jobs_enabled: bool = False
    jobs_interval_minutes: int = 5
    stale_processing_minutes: int = 60
    retention_enabled: bool = False

    # Blob storage for export artifacts
    storage_root: str = "storage"
    storage_base_url: str = "http://localhost:8000/api/v1/storage"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
