"""Tests for environment-driven configuration."""

from pathlib import Path

import pytest

from bird_db.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_config():
    reset_config()
    yield
    reset_config()


def test_defaults():
    config = Config()

    assert config.server.port == 3022
    assert config.server.path_prefix == "/avibase-mcp"
    assert config.rate_limit.window_seconds == 900
    assert config.rate_limit_max == 100
    assert config.query.default_page_size == 50
    assert config.query.max_page_size == 1000


def test_section_env_prefixes(monkeypatch):
    monkeypatch.setenv("SERVER_PORT", "8080")
    monkeypatch.setenv("STORAGE_DATA_FILE", "/data/birds.json.zst")
    monkeypatch.setenv("QUERY_TIMEOUT_SECONDS", "2.5")

    config = Config()

    assert config.server.port == 8080
    assert config.storage.data_file == Path("/data/birds.json.zst")
    assert config.query.timeout_seconds == 2.5


def test_dev_mode_rate_limit(monkeypatch):
    monkeypatch.setenv("SERVER_DEV_MODE", "true")

    assert Config().rate_limit_max == 1000


def test_get_config_is_cached():
    assert get_config() is get_config()
