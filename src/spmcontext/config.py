"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (SPMCONTEXT__CACHE__TTL_SECONDS=600)
  2. Flat legacy variables  (CACHE_TTL, CACHE_MAX_SIZE, GITHUB_TOKEN, REQUEST_TIMEOUT)
  3. spmcontext.yaml        (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional: all fields have sensible defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_USAGE_PHRASES: list[str] = [
    "usage",
    "use",
    "using",
    "how to use",
    "getting started",
    "quick start",
    "quickstart",
    "example",
    "examples",
    "basic usage",
    "api usage",
    "tutorial",
    "installation and usage",
    "setup and usage",
]

_DEFAULT_KEYWORDS: list[str] = [
    "swift",
    "ios",
    "macos",
    "tvos",
    "watchos",
    "xcode",
    "uikit",
    "swiftui",
    "foundation",
    "core data",
    "combine",
    "async",
    "await",
    "actor",
    "concurrency",
    "networking",
    "json",
    "rest",
    "api",
    "http",
    "url",
    "session",
    "animation",
    "ui",
    "layout",
    "constraint",
    "autolayout",
    "test",
    "testing",
    "unit test",
    "mock",
    "stub",
]

# Flat variable name → (settings section, field)
_LEGACY_ENV: dict[str, tuple[str, str]] = {
    "CACHE_TTL": ("cache", "ttl_seconds"),
    "CACHE_MAX_SIZE": ("cache", "max_size_bytes"),
    "GITHUB_TOKEN": ("upstream", "github_token"),
}


def _find_config_file() -> str | None:
    """Return the path of the first spmcontext.yaml found, or None."""
    candidates = [
        Path("spmcontext.yaml"),
        Path(platformdirs.user_config_dir("spmcontext")) / "spmcontext.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    name: str = "spmcontext"


class CacheSettings(BaseModel):
    ttl_seconds: int = Field(default=3600, gt=0)
    max_size_bytes: int = Field(default=100 * 1024 * 1024, gt=0)


class UpstreamSettings(BaseModel):
    package_index_url: str = "https://swiftpackageindex.com/api"
    github_api_url: str = "https://api.github.com"
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    github_token: str | None = None
    user_agent: str = "spmcontext"


class ParserSettings(BaseModel):
    usage_phrases: list[str] = Field(default_factory=lambda: list(_DEFAULT_USAGE_PHRASES))
    keywords: list[str] = Field(default_factory=lambda: list(_DEFAULT_KEYWORDS))


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class _LegacyEnvSource(PydanticBaseSettingsSource):
    """Reads the flat variable names used by earlier deployments."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_name, (section, key) in _LEGACY_ENV.items():
            value = os.environ.get(env_name)
            if value:
                data.setdefault(section, {})[key] = value

        # REQUEST_TIMEOUT is expressed in milliseconds
        timeout_ms = os.environ.get("REQUEST_TIMEOUT")
        if timeout_ms:
            data.setdefault("upstream", {})["request_timeout_seconds"] = float(timeout_ms) / 1000
        return data


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SPMCONTEXT__CACHE__TTL_SECONDS=600
        env_prefix="SPMCONTEXT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    cache: CacheSettings = CacheSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    parser: ParserSettings = ParserSettings()
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
            env_settings,  # Prefixed environment variables
            _LegacyEnvSource(settings_cls),  # CACHE_TTL and friends
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
