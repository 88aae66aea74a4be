"""Unit tests for core/config.py -- the SECRET_KEY and listing policies.

Settings are built directly (not via the cached get_settings()) with
_env_file=None so a developer's local .env cannot leak into the result.
"""

import pytest

from core.config import Settings


def test_debug_generates_secret_key(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.secret_key) >= 32


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False)


def test_short_secret_key_rejected():
    with pytest.raises(ValueError, match="at least 32"):
        Settings(_env_file=None, debug=True, secret_key="too-short")


def test_default_page_size_must_fit_max():
    with pytest.raises(ValueError):
        Settings(_env_file=None, debug=True, default_page_size=50, max_page_size=10)


def test_env_vars_are_read(monkeypatch):
    monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("MAX_PAGE_SIZE", "25")
    settings = Settings(_env_file=None, debug=True)
    assert settings.store_timeout_seconds == 0.5
    assert settings.max_page_size == 25
