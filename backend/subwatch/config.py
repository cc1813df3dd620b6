"""
Configuration management for Subwatch.
"""
from typing import Optional, List, Dict
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from subwatch.constants import (
    SUBSCRIPTIONS_PAGE_SIZE,
    HTTP_CLIENT_TIMEOUT_SECONDS,
    NOTIFICATION_FEED_SIZE,
    PERSISTENCE_FLUSH_INTERVAL_SECONDS,
    REMOTE_URL_SCHEMES,
)


class BackendConfig(BaseModel):
    """Subscription backend (node count, batch update and settings API)."""
    url: str = Field("", description="Base URL of the subscription backend, e.g. http://127.0.0.1:8787")
    timeout_seconds: float = Field(
        HTTP_CLIENT_TIMEOUT_SECONDS,
        gt=0,
        description="Total timeout for a single backend call (seconds)"
    )


class WebhookNotificationConfig(BaseModel):
    """Generic webhook that receives notification messages."""
    name: str
    url: str
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    levels: List[str] = Field(
        default_factory=lambda: ["error"],
        description="Notification levels forwarded to this webhook (success, error, info)"
    )


class NotificationsConfig(BaseModel):
    """Notification sink configuration."""
    feed_size: int = Field(NOTIFICATION_FEED_SIZE, ge=1, description="Recent notifications kept in memory")
    webhooks: List[WebhookNotificationConfig] = Field(default_factory=list)


class PersistenceConfig(BaseModel):
    """Dirty-state flushing configuration."""
    flush_interval_seconds: int = Field(
        PERSISTENCE_FLUSH_INTERVAL_SECONDS,
        ge=1,
        description="Seconds between checks of the dirty flag"
    )


class Settings(BaseSettings):
    """Application settings loaded from environment and .env file."""

    # Application
    app_name: str = "Subwatch"
    app_version: str = Field(default_factory=lambda: __import__('subwatch').__version__)
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8686

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = Field(None, description="Directory for rotating log files (disabled when unset)")

    # Database (SQLite, holds the persisted subscription collection)
    database_url: str = Field(
        "sqlite+aiosqlite:///./subwatch.db",
        description="Database connection URL"
    )

    # Presentation
    page_size: int = Field(SUBSCRIPTIONS_PAGE_SIZE, ge=1)

    backend: BackendConfig = Field(default_factory=BackendConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_nested_delimiter = "__"


def validate_settings(config: Settings) -> list[str]:
    """
    Validate settings and return a list of warnings.

    Nothing here stops the service from starting; the warnings are logged
    at startup so misconfiguration is visible.
    """
    warnings = []

    if not config.backend.url:
        warnings.append("BACKEND__URL is not set - every refresh will fail until it is configured")
    elif not config.backend.url.lower().startswith(REMOTE_URL_SCHEMES):
        warnings.append(f"Backend URL '{config.backend.url}' is not an http(s) URL")

    for webhook in config.notifications.webhooks:
        if not webhook.url.lower().startswith(REMOTE_URL_SCHEMES):
            warnings.append(f"Webhook '{webhook.name}' has a non-http(s) URL and will always fail")
        unknown = set(webhook.levels) - {"success", "error", "info"}
        if unknown:
            warnings.append(f"Webhook '{webhook.name}' lists unknown levels: {', '.join(sorted(unknown))}")

    if config.persistence.flush_interval_seconds < 2:
        warnings.append(
            f"Persistence flush interval is very short ({config.persistence.flush_interval_seconds}s)"
        )

    return warnings


# Global settings instance
settings = Settings()
