"""Tests for configuration loading."""
from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from ..config import Settings, load_settings, with_overrides
from ..core.errors import ConfigurationError
from ..logging_config import setup_logging

CONFIG = """
[default]
port = 9000
max_messages = 50
events_endpoint = "/acme/events"

[production]
host = "0.0.0.0"
max_messages = 500
allowed_origins = "https://a.example, https://b.example"
"""


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("PLOWLINE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "plowline.toml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


def test_defaults_without_file(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.toml")
    assert settings == Settings()
    assert settings.addr == "localhost:8081"
    assert settings.url == "http://localhost:8081"
    assert settings.events_path == "/com.simplybusiness/events"
    assert settings.origins == ["http://localhost:3000"]


def test_default_section(config_file: Path) -> None:
    settings = load_settings(config_file)
    assert settings.port == 9000
    assert settings.max_messages == 50
    assert settings.host == "localhost"
    assert settings.events_path == "/acme/events"


def test_environment_section_merges_over_defaults(config_file: Path) -> None:
    settings = load_settings(config_file, "production")
    assert settings.port == 9000
    assert settings.host == "0.0.0.0"
    assert settings.max_messages == 500
    assert settings.origins == ["https://a.example", "https://b.example"]


def test_unknown_environment_falls_back(config_file: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        settings = load_settings(config_file, "staging")
    assert settings.max_messages == 50
    assert "staging" in caplog.text


def test_home_config_used_when_local_missing(tmp_path: Path) -> None:
    home_config = tmp_path / "home" / ".config" / "plowline.toml"
    home_config.parent.mkdir(parents=True)
    home_config.write_text("[default]\nport = 7000\n", encoding="utf-8")

    assert load_settings(tmp_path / "missing.toml").port == 7000


def test_env_overrides(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PLOWLINE_MAX_MESSAGES", "7")
    monkeypatch.setenv("PLOWLINE_OPEN_BROWSER", "false")
    monkeypatch.setenv("PLOWLINE_SCHEMA_REGISTRY_URL", "http://registry")

    settings = load_settings(config_file, "production")
    assert settings.max_messages == 7
    assert settings.host == "0.0.0.0"
    assert settings.open_browser is False
    assert settings.schema_registry_url == "http://registry"


def test_empty_registry_url_means_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PLOWLINE_SCHEMA_REGISTRY_URL", "")
    assert Settings().schema_registry_url is None


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("PLOWLINE_MAX_MESSAGES", "0"),
        ("PLOWLINE_MAX_MESSAGES", "-3"),
        ("PLOWLINE_MAX_MESSAGES", "many"),
        ("PLOWLINE_SUBSCRIBER_QUEUE_SIZE", "0"),
        ("PLOWLINE_PORT", "70000"),
        ("PLOWLINE_LOG_FORMAT", "xml"),
        ("PLOWLINE_LOG_LEVEL", "loud"),
    ],
)
def test_invalid_values_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "missing.toml")


def test_invalid_file_value_rejected(tmp_path: Path) -> None:
    path = tmp_path / "plowline.toml"
    path.write_text("[default]\nmax_messages = 0\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(path)


def test_malformed_file_rejected(tmp_path: Path) -> None:
    path = tmp_path / "plowline.toml"
    path.write_text("[default\nport = ", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(path)


def test_with_overrides_skips_none() -> None:
    settings = with_overrides(Settings(), host=None, port=9999)
    assert settings.host == "localhost"
    assert settings.port == 9999


def test_setup_logging_json(capsys: pytest.CaptureFixture[str]) -> None:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        setup_logging("debug", "json")
        assert root.level == logging.DEBUG
        logging.getLogger("plowline.test").info("hello")
        assert '"message": "hello"' in capsys.readouterr().out
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)
