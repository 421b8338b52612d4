"""Configuration loading, validation, and access."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from fuelwatch.core.exceptions import ConfigError
from fuelwatch.core.models import FuelSource
from fuelwatch.sources.registry import DEFAULT_SOURCES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("fuelwatch.yml", "fuelwatch.yaml")

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FetchConfig(BaseModel):
    """Upstream feed access configuration.

    ``sources`` replaces the built-in retailer table. ``extra_sources`` is
    accepted on input and appended to it, so one new retailer is a
    single YAML entry.
    """

    model_config = ConfigDict(frozen=True)

    timeout_seconds: float = 10.0
    user_agent: str = _DEFAULT_USER_AGENT
    sources: list[FuelSource] = list(DEFAULT_SOURCES)

    @model_validator(mode="before")
    @classmethod
    def append_extra_sources(cls, data: Any) -> Any:
        if isinstance(data, dict) and "extra_sources" in data:
            data = dict(data)
            extra = data.pop("extra_sources") or []
            data["sources"] = [*data.get("sources", DEFAULT_SOURCES), *extra]
        return data

    @field_validator("timeout_seconds")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be > 0")
        return v

    @field_validator("sources")
    @classmethod
    def sources_unique(cls, v: list[FuelSource]) -> list[FuelSource]:
        if not v:
            raise ValueError("at least one source must be configured")
        prefixes = [s.prefix for s in v]
        dupes = sorted({p for p in prefixes if prefixes.count(p) > 1})
        if dupes:
            raise ValueError(f"source prefixes must be unique, duplicated: {dupes}")
        return v


class CacheConfig(BaseModel):
    """Aggregated-result cache configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/fuelwatch_cache.db"
    ttl_seconds: float = 15 * 60

    @field_validator("ttl_seconds")
    @classmethod
    def ttl_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("ttl_seconds must be > 0")
        return v


class HistoryConfig(BaseModel):
    """Price-history store configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    sqlite_path: str = "./data/fuelwatch_history.db"
    record_on_refresh: bool = True
    default_days: int = 30

    @field_validator("default_days")
    @classmethod
    def days_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("default_days must be >= 1")
        return v


class ServiceConfig(BaseModel):
    """Price service behaviour."""

    model_config = ConfigDict(frozen=True)

    # 0 disables the background refresh loop.
    refresh_interval_seconds: float = 15 * 60

    @field_validator("refresh_interval_seconds")
    @classmethod
    def interval_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("refresh_interval_seconds must be >= 0")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None
    # Manual refresh jobs kept for polling.
    max_jobs: int = 100

    @field_validator("max_jobs")
    @classmethod
    def max_jobs_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_jobs must be >= 1")
        return v


class LoggingConfig(BaseModel):
    """Log level and message format for the CLI and server."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    format: str = "%(name)s: %(message)s"

    @field_validator("level")
    @classmethod
    def level_known(cls, v: str) -> str:
        upper = v.upper()
        if upper not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v!r}")
        return upper


class FuelwatchConfig(BaseModel):
    """Root configuration for the entire fuelwatch system."""

    model_config = ConfigDict(frozen=True)

    fetch: FetchConfig = FetchConfig()
    cache: CacheConfig = CacheConfig()
    history: HistoryConfig = HistoryConfig()
    service: ServiceConfig = ServiceConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "FUELWATCH_",
    environ: Mapping[str, str] | None = None,
) -> FuelwatchConfig:
    """Build the configuration for one process.

    Settings are layered: built-in defaults, then the YAML file, then
    ``FUELWATCH_<SECTION>__<FIELD>`` environment variables. The file is
    ``config_path``, else ``$FUELWATCH_CONFIG``, else ``fuelwatch.yml`` or
    ``fuelwatch.yaml`` in the working directory when one exists.

    Environment values reach pydantic as strings and are coerced per
    field, so ``FUELWATCH_API__API_KEY=12345`` stays a string while
    ``FUELWATCH_CACHE__TTL_SECONDS=60`` becomes a float.

    Raises:
        ConfigError: The file is missing or unreadable, or a value fails
            validation.
    """
    env = os.environ if environ is None else environ
    path = _config_file(config_path, env, env_prefix)
    settings = _read_settings_file(path) if path is not None else {}
    settings = _apply_env_overrides(settings, _env_overrides(env, env_prefix))

    try:
        return FuelwatchConfig.model_validate(settings)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration: {e}",
            context={"path": str(path) if path else None},
        ) from e


def _config_file(
    explicit: str | None, env: Mapping[str, str], env_prefix: str
) -> Path | None:
    named = explicit if explicit is not None else env.get(f"{env_prefix}CONFIG")
    if named:
        path = Path(named).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {named}", context={"path": named})
        return path
    return next((Path(n) for n in DEFAULT_CONFIG_FILES if Path(n).is_file()), None)


def _read_settings_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(
            f"Could not read YAML config {path}: {e}", context={"path": str(path)}
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config {path} must be a mapping of sections, got {type(data).__name__}",
            context={"path": str(path)},
        )
    return data


def _env_overrides(env: Mapping[str, str], prefix: str) -> dict[str, dict[str, str]]:
    """Collect ``<prefix><SECTION>__<FIELD>`` variables by section.

    Sections are the fields of FuelwatchConfig. Anything else under the
    prefix, other than the config-file variable, is logged and skipped.
    """
    overrides: dict[str, dict[str, str]] = {}
    for key, value in env.items():
        if not key.startswith(prefix) or key == f"{prefix}CONFIG":
            continue
        section, sep, field = key[len(prefix) :].lower().partition("__")
        if not sep or not field or section not in FuelwatchConfig.model_fields:
            logger.warning("Ignoring unrecognised setting %s", key)
            continue
        overrides.setdefault(section, {})[field] = value
    return overrides


def _apply_env_overrides(
    settings: dict[str, Any], overrides: dict[str, dict[str, str]]
) -> dict[str, Any]:
    merged = dict(settings)
    for section, values in overrides.items():
        current = merged.get(section)
        merged[section] = {**(current if isinstance(current, dict) else {}), **values}
    return merged
