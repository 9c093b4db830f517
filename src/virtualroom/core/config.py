"""Application configuration using Pydantic BaseSettings."""

import logging
from dataclasses import dataclass

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from virtualroom.models.job import JobKind


@dataclass(frozen=True)
class PollPolicy:
    """Polling cadence for one job kind.

    Attributes:
        interval: Seconds between status fetches while the job is non-terminal
        error_backoff: Seconds to wait after a failed fetch before trying again
    """

    interval: float
    error_backoff: float


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Backend API
    api_base_url: str = Field(default="http://localhost:3001/api", alias="VIRTUALROOM_API_URL")
    api_token: str = Field(default="", alias="VIRTUALROOM_API_TOKEN")
    request_timeout_seconds: float = Field(default=30.0, alias="REQUEST_TIMEOUT_SECONDS")

    # On-device store (drafts + active jobs registry)
    database_url: str = Field(default="sqlite+aiosqlite:///virtualroom.db", alias="DATABASE_URL")
    active_job_ttl_seconds: int = Field(default=3600, alias="ACTIVE_JOB_TTL_SECONDS")

    # Downloads
    download_dir: str = Field(default="downloads", alias="DOWNLOAD_DIR")

    # Status polling, per job kind. Try-ons finish fastest, custom models slowest.
    poll_interval_classic_seconds: float = Field(default=2.0, alias="POLL_INTERVAL_CLASSIC")
    error_backoff_classic_seconds: float = Field(default=5.0, alias="ERROR_BACKOFF_CLASSIC")
    poll_interval_avatar_seconds: float = Field(default=3.0, alias="POLL_INTERVAL_AVATAR")
    error_backoff_avatar_seconds: float = Field(default=8.0, alias="ERROR_BACKOFF_AVATAR")
    poll_interval_product_seconds: float = Field(default=5.0, alias="POLL_INTERVAL_PRODUCT")
    error_backoff_product_seconds: float = Field(default=15.0, alias="ERROR_BACKOFF_PRODUCT")
    poll_interval_text_seconds: float = Field(default=5.0, alias="POLL_INTERVAL_TEXT")
    error_backoff_text_seconds: float = Field(default=15.0, alias="ERROR_BACKOFF_TEXT")

    def poll_policy(self, kind: JobKind) -> PollPolicy:
        """Return the polling cadence for a job kind."""
        policies = {
            JobKind.CLASSIC_TRY_ON: PollPolicy(
                self.poll_interval_classic_seconds, self.error_backoff_classic_seconds
            ),
            JobKind.AVATAR_CREATION: PollPolicy(
                self.poll_interval_avatar_seconds, self.error_backoff_avatar_seconds
            ),
            JobKind.PRODUCT_TO_MODEL: PollPolicy(
                self.poll_interval_product_seconds, self.error_backoff_product_seconds
            ),
            JobKind.TEXT_TO_FASHION: PollPolicy(
                self.poll_interval_text_seconds, self.error_backoff_text_seconds
            ),
        }
        return policies[kind]

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with a clear error message if the client cannot talk to the
        backend. Validation is skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        # VIRTUALROOM_API_TOKEN is required for every authenticated endpoint
        if self.app_env == "production" and not self.api_token:
            missing.append("VIRTUALROOM_API_TOKEN: Sign in and copy the session token")

        if self.active_job_ttl_seconds <= 0:
            missing.append("ACTIVE_JOB_TTL_SECONDS: Must be a positive number of seconds")

        if missing:
            error_msg = "CRITICAL: Invalid configuration:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Route structlog output to stdout, filtered by LOG_LEVEL.

    Production renders one JSON object per event; every other environment
    uses the colored console renderer.
    """
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.app_env == "production":
        processors += [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
