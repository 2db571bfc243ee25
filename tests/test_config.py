"""Tests for environment-driven settings."""

import pytest

from whosthat.config import Settings


def test_defaults(monkeypatch):
    for key in ("POOL_SIZE", "TIMEZONE", "CYCLE_MINUTES", "IMAGE_STYLE", "PREFETCH_ENABLED"):
        monkeypatch.delenv(key, raising=False)
    settings = Settings()
    assert settings.POOL_SIZE == 151
    assert settings.TIMEZONE == "America/New_York"
    assert settings.CYCLE_MINUTES == 10
    assert settings.IMAGE_STYLE == "modern"
    assert settings.PREFETCH_ENABLED is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("POOL_SIZE", "251")
    monkeypatch.setenv("FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("PREFETCH_ENABLED", "no")
    monkeypatch.setenv("TIMEZONE", "Europe/Oslo")
    settings = Settings()
    assert settings.POOL_SIZE == 251
    assert settings.FETCH_TIMEOUT == 2.5
    assert settings.PREFETCH_ENABLED is False
    assert settings.TIMEZONE == "Europe/Oslo"


def test_malformed_number_raises(monkeypatch):
    monkeypatch.setenv("CYCLE_MINUTES", "ten")
    with pytest.raises(ValueError):
        Settings()
