from __future__ import annotations

import threading
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from truckops.core.exceptions import ConfigurationException

# Keys that must be present before the application is allowed to boot.
REQUIRED_KEYS: tuple[str, ...] = ("MONGO_URL", "MONGO_DB_NAME", "REDIS_URL")
PRODUCTION_REQUIRED_KEYS: tuple[str, ...] = ("EMAIL_FUNCTION_URL", "EMAIL_FROM")


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- MongoDB ---
    MONGO_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    MONGO_DB_NAME: str = Field(
        default="truckops",
        description="MongoDB database name",
    )

    # --- Redis ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URI (alert push fan-out)",
    )

    # --- Outbound email ---
    EMAIL_FUNCTION_URL: str = Field(
        default="",
        description="Base URL of the serverless email functions (sendEmail, sendBatchEmails)",
    )
    EMAIL_FUNCTION_TOKEN: str = Field(
        default="",
        description="Bearer token sent to the email functions",
    )
    EMAIL_FROM: str = Field(
        default="noreply@truckops.local",
        description="Sender address used for outbound email",
    )
    EMAIL_TIMEOUT: float = Field(
        default=10.0,
        description="Timeout in seconds for email function calls",
    )

    # --- Alerting ---
    ALERT_RETRIEVAL_LIMIT: int = Field(
        default=500,
        description="Most recent alerts loaded for listing and statistics",
    )
    INCIDENT_RETRIEVAL_LIMIT: int = Field(
        default=100,
        description="Most recent incidents loaded for listing",
    )
    ALERT_ACTOR: str = Field(
        default="master-admin",
        description="Actor recorded on lifecycle transitions when none is given",
    )
    DEFAULT_SUPPRESS_MS: int = Field(
        default=3_600_000,
        description="Suppression duration used by bulk suppress",
    )
    SUPPRESSION_SWEEP_SECONDS: int = Field(
        default=60,
        description="Interval of the suppression expiry sweep",
    )
    ALERT_NOTIFICATIONS_MUTED: bool = Field(
        default=False,
        description="Suppress all alert notification fan-out",
    )

    # --- Error tracking ---
    ERROR_RETRIEVAL_LIMIT: int = Field(
        default=1000,
        description="Most recent error events loaded for grouping and statistics",
    )

    # --- Monitoring ---
    MONITOR_INTERVAL_SECONDS: int = Field(
        default=60,
        description="Interval of the metric collection loop",
    )
    METRICS_RETENTION_HOURS: int = Field(
        default=24,
        description="How long collected metric samples are kept in memory",
    )
    BACKGROUND_JOBS_ENABLED: bool = Field(
        default=True,
        description="Start the periodic monitoring and sweep jobs on startup",
    )

    # --- Reports ---
    REPORT_OUTPUT_DIR: str = Field(
        default="",
        description="Directory for rendered report files (temp dir when empty)",
    )
    REPORT_CURRENCY: str = Field(
        default="CHF",
        description="Currency code used when formatting report amounts",
    )
    REPORT_SCHEDULE_SECONDS: int = Field(
        default=300,
        description="Interval at which due scheduled reports are processed",
    )

    # --- Inventory ---
    LOW_STOCK_RECIPIENTS: list[str] = Field(
        default_factory=list,
        description="Addresses notified when an item drops to its minimum stock (JSON list)",
    )

    # --- Training simulation ---
    TRAINING_EPOCH_SECONDS: float = Field(
        default=2.0,
        description="Simulated wall-clock duration of one training epoch",
    )
    JOBS_KEEP_FINISHED: int = Field(
        default=100,
        ge=0,
        description="Finished background jobs kept in memory for status queries",
    )

    # --- Logging ---
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )

    # --- Environment ---
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def missing_keys(self, *names: str) -> list[str]:
        """Return the names among *names* whose value is empty."""
        missing: list[str] = []
        for name in names:
            value = getattr(self, name, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def require(self, *names: str) -> None:
        """Raise ConfigurationException if any of *names* is empty."""
        missing = self.missing_keys(*names)
        if missing:
            raise ConfigurationException(missing)

    def validate_required(self) -> None:
        """Fail fast when a required configuration key is absent.

        Raises:
            ConfigurationException: Listing every missing key.
        """
        names = list(REQUIRED_KEYS)
        if self.is_production:
            names.extend(PRODUCTION_REQUIRED_KEYS)
        self.require(*names)


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Return the singleton Settings instance (thread-safe)."""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached Settings so the next call re-reads the environment."""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None
