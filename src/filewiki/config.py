"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (FILEWIKI__CACHE__ENABLED=false)
  2. filewiki.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
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

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("filewiki")


def _find_config_file() -> str | None:
    """Return the path of the first filewiki.yaml found, or None."""
    candidates = [
        Path("filewiki.yaml"),
        Path(platformdirs.user_config_dir("filewiki")) / "filewiki.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class WikiSettings(BaseModel):
    title: str = "Company Wiki"


class ContentSettings(BaseModel):
    root: str = "content"
    allowed_extensions: list[str] = ["md"]


class CacheSettings(BaseModel):
    enabled: bool = True
    dir: str = _DEFAULT_CACHE_DIR
    default_ttl_seconds: int = 3600
    navigation_ttl_seconds: int = 7200
    content_ttl_seconds: int = 1800
    search_ttl_seconds: int = 600
    # Chance that a page request sweeps expired entries
    cleanup_probability: float = 0.05


class SearchSettings(BaseModel):
    min_query_length: int = 2
    max_results: int = 50
    api_max_results: int = 20
    snippet_length: int = 200


class RendererSettings(BaseModel):
    strategy: Literal["full", "fallback"] = "full"


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: FILEWIKI__SERVER__PORT=9090
        env_prefix="FILEWIKI__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    wiki: WikiSettings = WikiSettings()
    content: ContentSettings = ContentSettings()
    cache: CacheSettings = CacheSettings()
    search: SearchSettings = SearchSettings()
    renderer: RendererSettings = RendererSettings()
    server: ServerSettings = ServerSettings()
    logging: LoggingSettings = LoggingSettings()

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
            # dotenv and file secrets intentionally excluded
        )
