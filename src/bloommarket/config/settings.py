# src/bloommarket/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/bloommarket/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `BLOOMMARKET_API_URL`, `BLOOMMARKET_LOG_LEVEL`)
- an external YAML file via `BLOOMMARKET_CONFIG_PATH`

Design rule:
- Tuning knobs (poll interval, fix timeout, re-fetch threshold) live in YAML, not in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from bloommarket.core.env import load_dotenv_if_present


def _yaml_mapping(text: str, source: str) -> dict[str, Any]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{source}: top-level YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file shipped in `bloommarket.config`."""
    text = resources.files("bloommarket.config").joinpath(filename).read_text(encoding="utf-8")
    return _yaml_mapping(text, filename)


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    return _yaml_mapping(Path(path).read_text(encoding="utf-8"), str(path))


class AppSettings(BaseModel):
    name: str = "BloomMarket"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class LocationSettings(BaseModel):
    fix_timeout_seconds: float = Field(10, gt=0)
    high_accuracy: bool = True
    maximum_age_seconds: float = Field(0, ge=0)
    poll_interval_seconds: float = Field(300, gt=0)


class CatalogSettings(BaseModel):
    data_source: Literal["mock", "remote"] = "mock"
    material_change_km: float = Field(0.5, ge=0)


class RemoteSettings(BaseModel):
    base_url: str = "http://localhost:3000/api"


class MockSettings(BaseModel):
    plant_count: int = Field(10, ge=0)
    community_count: int = Field(5, ge=0)
    radius_km: float = Field(5, gt=0)
    currency: str = "INR"
    seed: int | None = None


class SessionCacheSettings(BaseModel):
    enabled: bool = True
    dir: str = ".cache/bloommarket"
    key: str = "bloomUser"


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    mock: MockSettings = Field(default_factory=MockSettings)
    session_cache: SessionCacheSettings = Field(default_factory=SessionCacheSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: the whitelist is kept small; anything else goes through a config file.
    """
    load_dotenv_if_present()
    data = dict(data)
    cache_dir = os.getenv("BLOOMMARKET_CACHE_DIR")
    if cache_dir:
        data.setdefault("session_cache", {})["dir"] = cache_dir

    log_level = os.getenv("BLOOMMARKET_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    api_url = os.getenv("BLOOMMARKET_API_URL")
    if api_url:
        data.setdefault("remote", {})["base_url"] = api_url

    data_source = os.getenv("BLOOMMARKET_DATA_SOURCE")
    if data_source:
        data.setdefault("catalog", {})["data_source"] = data_source.strip().lower()

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("BLOOMMARKET_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
