from pathlib import Path
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    database_path: str = "./data/channels.db"
    input_id: str = "tvsync.default"
    package_name: str = "tvsync"
    feed_url: str | None = None
    sync_cron: str = "0 */6 * * *"  # Every 6 hours
    sync_misfire_grace_sec: int = 3600  # Allow 1 hour to run missed jobs
    feed_parse_timeout_sec: int = 300  # XML parsing timeout, 0 disables timeout
    feed_download_timeout_sec: float = 120.0
    feed_download_max_retries: int = 3
    logo_directory: str = "./data/logos"
    logo_fetch_concurrency: int = 4
    logo_fetch_timeout_sec: int = 0  # 0 disables timeout
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("feed_url", mode="before")
    @classmethod
    def parse_feed_url(cls, value):
        """Treat a blank feed URL as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("feed_url", mode="after")
    @classmethod
    def validate_feed_url(cls, value):
        """Validate feed URL is HTTP/HTTPS."""
        if value and not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"Feed URL must be HTTP/HTTPS: {value}")
        return value

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, value: str) -> str:
        """Validate database path is accessible."""
        path = Path(value)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return value
        except (OSError, PermissionError) as exc:
            raise ValueError(f"Cannot access database path '{value}': {exc}") from exc

    @field_validator("input_id", "package_name")
    @classmethod
    def validate_identifiers(cls, value: str, info) -> str:
        """Reject blank identifiers."""
        if not value.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return value.strip()

    @field_validator("feed_parse_timeout_sec", "logo_fetch_timeout_sec", "sync_misfire_grace_sec")
    @classmethod
    def validate_non_negative(cls, value: int, info) -> int:
        """Validate second counts (0 disables where supported)."""
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return value

    @field_validator("feed_download_timeout_sec")
    @classmethod
    def validate_download_timeout(cls, value: float) -> float:
        """Ensure the feed download timeout is positive."""
        if value <= 0:
            raise ValueError("feed_download_timeout_sec must be > 0")
        return value

    @field_validator("feed_download_max_retries", "logo_fetch_concurrency")
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure integer settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate logging level name."""
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @field_validator("sync_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @model_validator(mode="after")
    def validate_sync_configuration(self):
        """Validate cross-field configuration."""
        if not self.feed_url:
            logger.warning(
                "No feed URL configured - scheduled sync will not retrieve any channels"
            )
        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info("  Database: %s", self.database_path)
        logger.info("  Input: %s (package %s)", self.input_id, self.package_name)
        logger.info("  Feed: %s", "configured" if self.feed_url else "not configured")
        logger.info("  Sync Schedule: %s", self.sync_cron)
        logger.info("  Sync Misfire Grace: %ss", self.sync_misfire_grace_sec)
        logger.info(
            "  Parse Timeout: %s seconds",
            self.feed_parse_timeout_sec or "disabled",
        )
        logger.info("  Logo Directory: %s", self.logo_directory)
        logger.info("  Logo Fetch Concurrency: %s", self.logo_fetch_concurrency)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
