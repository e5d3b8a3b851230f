"""Pytest configuration and fixtures for search-session tests."""

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point configuration, settings and cache files at a temporary directory."""
    import search_session.config as config_mod

    monkeypatch.setenv("SEARCH_SESSION_CONFIG_DIR", str(tmp_path))
    for var in ("SEARCH_SESSION_CACHE_PATH", "SEARCH_SESSION_SETTINGS_PATH", "SEARCH_SESSION_DEFAULT_SORT", "SEARCH_SESSION_SOURCE_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    config_mod.get_settings.cache_clear()
    yield tmp_path
    config_mod.get_settings.cache_clear()
