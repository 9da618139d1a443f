"""Configuration system for PropertyAlerts.

Uses pydantic-settings to load configuration from environment variables
and .env files with sensible defaults for the alert pipeline.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables are prefixed with PROPALERT_ (e.g., PROPALERT_DB_PATH).
    """

    model_config = SettingsConfigDict(
        env_prefix="PROPALERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    db_path: Path = Field(
        default=Path.home() / ".propertyalerts" / "alerts.db",
        description="SQLite database holding listings, subscriptions and the ledger",
    )
    app_base_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web app, used for deep links",
    )

    # Scheduler
    max_workers: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Subscriptions evaluated concurrently within one run",
    )
    run_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="Interval between runs of the background worker",
    )
    initial_lookback_hours: int = Field(
        default=24,
        ge=0,
        description="Window for the first run of a subscription that was never checked",
    )

    # Matching
    new_match_limit: int = Field(
        default=10,
        ge=1,
        description="Maximum new-match events per subscription per run",
    )
    price_drop_limit: int = Field(
        default=10,
        ge=1,
        description="Maximum price-drop events per subscription per run",
    )
    price_drop_scan_limit: int = Field(
        default=200,
        ge=1,
        description="Maximum listings scanned for price drops per subscription",
    )
    price_drop_threshold_pct: float = Field(
        default=10.0,
        gt=0,
        description="Minimum drop percentage that triggers a price-drop event",
    )
    price_drop_markup_pct: float = Field(
        default=15.0,
        ge=0,
        description="Markup applied to the current price when no reference price exists",
    )
    price_drop_baseline: Literal["first_seen", "heuristic"] = Field(
        default="first_seen",
        description="Reference price source for price-drop detection",
    )

    # Ledger
    ledger_timezone: str = Field(
        default="Asia/Jakarta",
        description="Timezone whose calendar day scopes the dedup key",
    )
    ledger_retention_days: int = Field(
        default=30,
        ge=1,
        description="Ledger rows older than this are pruned",
    )

    # Web Push (VAPID)
    vapid_private_key: str | None = Field(default=None, description="VAPID private key")
    vapid_subject: str = Field(
        default="mailto:alerts@localhost",
        description="VAPID 'sub' claim",
    )
    push_ttl_seconds: int = Field(default=86400, ge=0, description="Push message TTL")

    # SMTP
    smtp_host: str | None = Field(default=None, description="SMTP server hostname")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_user: str | None = Field(default=None, description="SMTP username")
    smtp_password: str | None = Field(default=None, description="SMTP password")
    smtp_from: str | None = Field(default=None, description="From address for alert emails")
    smtp_tls: bool = Field(default=True, description="Use STARTTLS")
    email_top_n: int = Field(
        default=3,
        ge=1,
        description="Listings shown in the body of an alert email",
    )

    # Client notification agent
    namespace: str = Field(default="astra", description="Prefix for tags and cache names")
    cache_version: str = Field(default="v1", description="Current notification cache generation")
    analytics_url: str | None = Field(
        default=None,
        description="Endpoint receiving notification interaction records",
    )


# Singleton instance for easy import
config = Settings()
