"""
Configuration management using environment variables.
Holds every tracker, catalog, notification and scheduling setting with validation and defaults.

An AppConfig is built once by each entry point and handed to the components that need it.
"""

from typing import List, Optional
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """
    Configuration class for the release tracker.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="next_reads")
    books_collection: str = Field(default="books")
    history_collection: str = Field(default="status_history")
    locks_collection: str = Field(default="locks")
    mongodb_timeout_ms: int = Field(default=10000)

    # Catalog Configuration
    catalog_base_url: str = Field(default="https://thunder.api.overdrive.com")
    catalog_library_id: str = Field(default="sfpl")
    catalog_site_url: str = Field(default="https://sfpl.overdrive.com")
    request_timeout: int = Field(default=30)
    catalog_request_delay: float = Field(default=0.5)

    # Notification Configuration
    resend_api_key: Optional[str] = Field(default=None)
    resend_api_url: str = Field(default="https://api.resend.com/emails")
    notification_sender: str = Field(default="Next Reads <onboarding@resend.dev>")
    notification_email: Optional[str] = Field(default=None)
    dashboard_url: str = Field(default="https://jbassil-png.github.io/next-reads/")

    # Scheduler Configuration
    check_hour: int = Field(default=9, ge=0, le=23)
    check_minute: int = Field(default=0, ge=0, le=59)
    digest_day_of_week: str = Field(default="mon")
    digest_hour: int = Field(default=8, ge=0, le=23)
    digest_minute: int = Field(default=0, ge=0, le=59)
    timezone: str = Field(default="UTC")
    run_lock_ttl_minutes: int = Field(default=60, ge=1)
    promote_released_books: bool = Field(default=True)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default="logs/next_reads.log")
    debug: bool = Field(default=False)

    # API Server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_keys: str = Field(default="", description="Comma-separated keys accepted by the trigger API")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 1 or v > 300:
            raise ValueError('request_timeout must be between 1 and 300 seconds')
        return v

    @field_validator('catalog_request_delay')
    @classmethod
    def validate_request_delay(cls, v):
        """Ensure the delay between catalog queries is reasonable."""
        if v < 0 or v > 10:
            raise ValueError('catalog_request_delay must be between 0 and 10 seconds')
        return v

    @field_validator('digest_day_of_week')
    @classmethod
    def validate_day_of_week(cls, v):
        """Ensure the digest day is a cron day name."""
        valid_days = ['mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun']
        if v.lower() not in valid_days:
            raise ValueError(f'digest_day_of_week must be one of: {valid_days}')
        return v.lower()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def notifications_configured(self) -> bool:
        """Check whether an email channel is available."""
        return bool(self.resend_api_key and self.notification_email)

    def catalog_search_url(self) -> str:
        """Get the catalog media search endpoint for the configured library."""
        return f"{self.catalog_base_url.rstrip('/')}/v2/libraries/{self.catalog_library_id}/media"

    def catalog_entry_url(self, catalog_id: str) -> str:
        """Get the public catalog page for an entry."""
        return f"{self.catalog_site_url.rstrip('/')}/media/{catalog_id}"

    def api_key_list(self) -> List[str]:
        """Parse the accepted API keys."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    def get_user_agent(self) -> str:
        """Get user agent string for requests."""
        return "NextReads-Reconciler/1.0"

    def get_headers(self) -> dict:
        """Get default headers for catalog requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "application/json",
        }
