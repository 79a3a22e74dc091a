"""Runtime configuration loaded from TOML with environment overrides.

The file layout keeps base values under ``[default]``; every other top-level
table is a named environment merged over the defaults when selected.
``PLOWLINE_*`` environment variables win over both.
"""
from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .core.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "plowline.toml"
DEFAULT_EVENTS_ENDPOINT = "com.simplybusiness/events"


class Settings(BaseSettings):
    """Collector settings.

    Keyword arguments carry file values; ``PLOWLINE_*`` variables take
    precedence over them.
    """

    model_config = SettingsConfigDict(env_prefix="PLOWLINE_", case_sensitive=False, extra="ignore", frozen=True)

    # Server
    port: int = Field(default=8081, ge=1, le=65535, description="Server bind port")
    host: str = Field(default="localhost", description="Server bind host")
    open_browser: bool = Field(default=True, description="Open the viewer in a browser on start")

    # Events
    max_messages: int = Field(default=100, gt=0, description="Events retained in memory")
    events_endpoint: str = Field(default=DEFAULT_EVENTS_ENDPOINT, description="Ingestion path")
    allowed_origins: str = Field(default="http://localhost:3000", description="Comma-separated CORS origins")
    subscriber_queue_size: int = Field(default=100, gt=0, description="Pending messages per live viewer")

    # Schemas
    schemas_dir: str = Field(default="schemas", description="Local Iglu schema directory")
    schema_registry_url: str | None = Field(default=None, description="Remote Iglu registry base URL")

    # Logging
    log_level: str = Field(default="INFO", description="Python log level")
    log_format: str = Field(default="text", description="Log format: text or json")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings

    @field_validator("schema_registry_url")
    @classmethod
    def validate_registry_url(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"PLOWLINE_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            msg = f"PLOWLINE_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def addr(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def events_path(self) -> str:
        endpoint = self.events_endpoint or DEFAULT_EVENTS_ENDPOINT
        return endpoint if endpoint.startswith("/") else f"/{endpoint}"

    @property
    def origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


def candidate_paths(path: str | os.PathLike[str] | None = None) -> list[Path]:
    paths = [Path(path or CONFIG_FILENAME)]
    paths.append(Path.home() / ".config" / CONFIG_FILENAME)
    return paths


def load_settings(path: str | os.PathLike[str] | None = None, environment: str | None = None) -> Settings:
    """Load settings from the first config file found, then apply env overrides."""
    values: dict[str, Any] = {}
    source = next((p for p in candidate_paths(path) if p.is_file()), None)
    if source is None:
        logger.info("Config file not found, using defaults")
    else:
        values = _read_file(source, environment)
        logger.info("Loaded config from %s", source)

    unknown = set(values) - set(Settings.model_fields)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc


def _read_file(source: Path, environment: str | None) -> dict[str, Any]:
    try:
        with source.open("rb") as handle:
            raw = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"error parsing config file at {source}: {exc}") from exc

    values = dict(raw.get("default", {}))
    if environment:
        section = raw.get(environment)
        if isinstance(section, dict):
            values.update(section)
            logger.info("Applied environment configuration: %s", environment)
        else:
            logger.warning("Environment '%s' not found in config file", environment)
    return values


def with_overrides(settings: Settings, **changes: Any) -> Settings:
    """Return ``settings`` with the non-None ``changes`` applied."""
    return settings.model_copy(update={key: value for key, value in changes.items() if value is not None})
