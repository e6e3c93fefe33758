"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (PODCASTPROXY__CACHE__TTL_HOURS=12)
  2. podcast-proxy.yaml     (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from podcastproxy.strategies import ExtractionStrategy

_DEFAULT_DATA_DIR = platformdirs.user_cache_dir("podcast-proxy")


def _find_config_file() -> str | None:
    """Return the path of the first podcast-proxy.yaml found, or None."""
    candidates = [
        Path("podcast-proxy.yaml"),
        Path(platformdirs.user_config_dir("podcast-proxy")) / "podcast-proxy.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    ttl_hours: int = 24
    # Defaults to <data_dir>/cache when empty
    dir: str = ""


class FetcherSettings(BaseModel):
    timeout_seconds: float = 30.0
    user_agent: str = "podcast-proxy/1.0"


class StoreSettings(BaseModel):
    default_strategy: str = "franceinter"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PODCASTPROXY__FETCHER__TIMEOUT_SECONDS=10
        env_prefix="PODCASTPROXY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    data_dir: str = _DEFAULT_DATA_DIR
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    store: StoreSettings = StoreSettings()
    logging: LoggingSettings = LoggingSettings()
    # Extra or overriding extraction strategies, merged over the built-ins by name
    strategies: list[ExtractionStrategy] = []

    @property
    def cache_dir(self) -> Path:
        if self.cache.dir:
            return Path(self.cache.dir).expanduser()
        return Path(self.data_dir).expanduser() / "cache"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )
