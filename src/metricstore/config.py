"""Typed configuration — single source of truth for all metricstore settings.

Loading priority (highest to lowest):
  1. Explicit init kwargs (programmatic overrides, tests)
  2. Environment variables: METRICSTORE_<SECTION>__<KEY>  (double-underscore separator)
  3. Config file: METRICSTORE_CONFIG_FILE env var, or conf/settings.toml at project root
  4. Model field defaults

Example env overrides:
  METRICSTORE_STORAGE__DATA_ROOT=/srv/metrics
  METRICSTORE_STORAGE__MAX_OPEN_FILES=16
  METRICSTORE_TIMESTAMP__PATTERN=%Y-%m-%d %H:%M
  METRICSTORE_LOGGING__LEVEL=DEBUG
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# Derive project root from this file's location: src/metricstore/config.py → ../../..
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_DEFAULT_CONFIG = _PROJECT_ROOT / "conf" / "settings.toml"


def _config_file() -> Path:
    """Resolve the config file path.

    Returns METRICSTORE_CONFIG_FILE if set (raises FileNotFoundError if
    missing), otherwise returns the bundled default at conf/settings.toml.
    """
    if env_val := os.environ.get("METRICSTORE_CONFIG_FILE"):
        p = Path(env_val)
        if not p.is_file():
            raise FileNotFoundError(f"METRICSTORE_CONFIG_FILE not found: {p}")
        return p
    return _DEFAULT_CONFIG


# ---------------------------------------------------------------------------
# Section models — each maps to a [section] in conf/settings.toml
# ---------------------------------------------------------------------------


class StorageSettings(BaseModel):
    """Where buckets live and how many files a writer may hold open."""

    # Buckets are stored under <data_root>/<type>/<name>/.
    data_root: Path = Path("/var/lib/metricstore")
    # Re-read on every insertion into the writer's handle cache.
    # Values below 1 fall back to the cache default.
    max_open_files: int = 5


class TimestampSettings(BaseModel):
    """How the timestamp is located in and parsed from a payload."""

    # Dotted path into nested objects, e.g. "meta.time".
    field: str = "timestamp"
    # strptime() pattern; None selects the flexible dateutil parser.
    pattern: str | None = None

    @field_validator("field")
    @classmethod
    def _non_blank_field(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("field must not be blank")
        return v


class LoggingSettings(BaseModel):
    """Logging verbosity and output format."""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"

    @field_validator("level", mode="before")
    @classmethod
    def _normalise_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"level must be one of {sorted(valid)}, got {v!r}")
        return v.upper()


# ---------------------------------------------------------------------------
# Root settings class
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """All metricstore runtime settings, fully resolved and validated."""

    storage: StorageSettings = StorageSettings()
    timestamp: TimestampSettings = TimestampSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_prefix="METRICSTORE_",
        env_nested_delimiter="__",  # METRICSTORE_STORAGE__DATA_ROOT → storage.data_root
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Exclude dotenv and file-secret sources; metricstore uses TOML + env only.
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=_config_file()),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings instance (loaded once, cached thereafter).

    Tests should call ``get_settings.cache_clear()`` before each test that
    patches environment variables or the config file.
    """
    return Settings()
