"""
Process configuration loaded from environment variables.

Settings are read once per process and never mutated afterwards. Provider
credentials are only required for the transport that is selected.

Environment Variables:
    EMAIL_TRANSPORT: gmail | sendgrid | console (default: console)
    THROTTLE_MINUTES: Notification window per pet (default: 30)
    THROTTLE_POLICY: any_event | notified_only (default: any_event)
    SCAN_LEASE_SECONDS: Per-pet lease lifetime (default: 60)
    HTTP_TIMEOUT_SECONDS: Timeout for provider HTTP calls (default: 30)
    SENDGRID_API_KEY, SENDGRID_SENDER, SENDGRID_SENDER_NAME
    GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET, GMAIL_REFRESH_TOKEN, GMAIL_EMAIL
    DATA_DIR: Fixture directory for the in-memory document store
    LOG_LEVEL: Root log level (default: INFO)
"""

from datetime import timedelta
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tagscan.throttle import ThrottlePolicy


class TransportKind(str, Enum):
    GMAIL = "gmail"
    SENDGRID = "sendgrid"
    CONSOLE = "console"


class TagScanSettings(BaseSettings):
    """Deploy-time configuration for the scan notifier."""

    email_transport: TransportKind = Field(
        default=TransportKind.CONSOLE, validation_alias="EMAIL_TRANSPORT"
    )

    # Throttling
    throttle_minutes: float = Field(default=30, gt=0, validation_alias="THROTTLE_MINUTES")
    throttle_policy: ThrottlePolicy = Field(
        default=ThrottlePolicy.ANY_EVENT, validation_alias="THROTTLE_POLICY"
    )
    scan_lease_seconds: float = Field(default=60, gt=0, validation_alias="SCAN_LEASE_SECONDS")

    http_timeout_seconds: float = Field(default=30, gt=0, validation_alias="HTTP_TIMEOUT_SECONDS")

    # SendGrid
    sendgrid_api_key: Optional[str] = Field(default=None, validation_alias="SENDGRID_API_KEY")
    sendgrid_sender: str = Field(
        default="no-reply@yourdomain.com", validation_alias="SENDGRID_SENDER"
    )
    sendgrid_sender_name: Optional[str] = Field(default=None, validation_alias="SENDGRID_SENDER_NAME")

    # Gmail OAuth2
    gmail_client_id: Optional[str] = Field(default=None, validation_alias="GMAIL_CLIENT_ID")
    gmail_client_secret: Optional[str] = Field(default=None, validation_alias="GMAIL_CLIENT_SECRET")
    gmail_refresh_token: Optional[str] = Field(default=None, validation_alias="GMAIL_REFRESH_TOKEN")
    gmail_email: Optional[str] = Field(default=None, validation_alias="GMAIL_EMAIL")

    data_dir: Optional[Path] = Field(default=None, validation_alias="DATA_DIR")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def throttle_window(self) -> timedelta:
        return timedelta(minutes=self.throttle_minutes)

    @property
    def scan_lease_ttl(self) -> timedelta:
        return timedelta(seconds=self.scan_lease_seconds)

    def missing_credentials(self) -> list[str]:
        """Environment variables the selected transport needs but lacks."""
        if self.email_transport == TransportKind.SENDGRID:
            required = {"SENDGRID_API_KEY": self.sendgrid_api_key}
        elif self.email_transport == TransportKind.GMAIL:
            required = {
                "GMAIL_CLIENT_ID": self.gmail_client_id,
                "GMAIL_CLIENT_SECRET": self.gmail_client_secret,
                "GMAIL_REFRESH_TOKEN": self.gmail_refresh_token,
                "GMAIL_EMAIL": self.gmail_email,
            }
        else:
            required = {}
        return [name for name, value in required.items() if not value]


@lru_cache()
def get_settings() -> TagScanSettings:
    """Cached settings instance for this process."""
    return TagScanSettings()
