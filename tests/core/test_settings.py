"""Tests for AutocommitSettings."""

import pytest
from pydantic import ValidationError

from autocommit.core.settings import (
    AutocommitSettings,
    PacingMode,
    clear_settings_cache,
    get_settings,
)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


def test_defaults():
    settings = AutocommitSettings()
    assert settings.tick_interval_seconds == 60.0
    assert settings.tick_interval_minutes == 1.0
    assert settings.pacing_mode is PacingMode.PROBABILISTIC
    assert settings.max_pacing_probability == 0.5
    assert settings.json_logs is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AUTOCOMMIT_TICK_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("AUTOCOMMIT_PACING_MODE", "eager")
    monkeypatch.setenv("AUTOCOMMIT_LOG_FORMAT", "console")
    monkeypatch.setenv("AUTOCOMMIT_INSTANCE_ID", "worker-7")

    settings = AutocommitSettings()

    assert settings.tick_interval_minutes == 0.5
    assert settings.pacing_mode is PacingMode.EAGER
    assert settings.json_logs is False
    assert settings.instance_id == "worker-7"


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("AUTOCOMMIT_MAX_CONCURRENT_RULES=3\n")
    assert AutocommitSettings().max_concurrent_rules == 3


@pytest.mark.parametrize(
    "name,value",
    [
        ("AUTOCOMMIT_LOG_FORMAT", "xml"),
        ("AUTOCOMMIT_TICK_INTERVAL_SECONDS", "0"),
        ("AUTOCOMMIT_MAX_PACING_PROBABILITY", "1.5"),
    ],
)
def test_invalid_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        AutocommitSettings()


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("AUTOCOMMIT_LOCK_TTL_SECONDS", "42")
    assert get_settings() is first
    assert get_settings(_force_reload=True).lock_ttl_seconds == 42
