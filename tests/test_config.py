"""Tests for settings validation and logging setup."""

import pytest
import structlog

from virtualroom.core.config import Settings, configure_logging
from virtualroom.models.job import JobKind


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("APP_ENV", "VIRTUALROOM_API_TOKEN", "ACTIVE_JOB_TTL_SECONDS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    structlog.reset_defaults()


def test_defaults():
    settings = Settings()

    assert settings.app_env == "development"
    assert settings.active_job_ttl_seconds == 3600
    assert settings.database_url.startswith("sqlite+aiosqlite://")


def test_env_aliases(monkeypatch):
    monkeypatch.setenv("VIRTUALROOM_API_URL", "https://api.example.com/api")
    monkeypatch.setenv("POLL_INTERVAL_AVATAR", "1.5")

    settings = Settings()

    assert settings.api_base_url == "https://api.example.com/api"
    assert settings.poll_policy(JobKind.AVATAR_CREATION).interval == 1.5


def test_production_requires_token():
    with pytest.raises(ValueError, match="VIRTUALROOM_API_TOKEN"):
        Settings(app_env="production")

    assert Settings(app_env="production", api_token="t0ken").api_token == "t0ken"


def test_ttl_must_be_positive():
    with pytest.raises(ValueError, match="ACTIVE_JOB_TTL_SECONDS"):
        Settings(active_job_ttl_seconds=0)


def test_validation_skipped_in_tests():
    settings = Settings(app_env="test", active_job_ttl_seconds=0)
    assert settings.active_job_ttl_seconds == 0


@pytest.mark.parametrize("app_env", ["production", "development"])
def test_configure_logging(app_env, capsys):
    settings = Settings(app_env=app_env, api_token="t0ken", log_level="warning")

    configure_logging(settings)
    logger = structlog.get_logger("test")
    logger.info("hidden.event")
    logger.warning("shown.event", job_id="job-1")

    out = capsys.readouterr().out
    assert "hidden.event" not in out
    assert "shown.event" in out
    if app_env == "production":
        assert '"job_id": "job-1"' in out
