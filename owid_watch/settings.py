"""Validated runtime settings loaded from TOML with environment overrides."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import tomllib
from pydantic import BaseModel, Field, ValidationError

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")

ENV_OVERRIDES = {
    "OWID_WATCH_PAGE_URL": ("source", "page_url"),
    "OWID_WATCH_DATASET_URL": ("source", "dataset_url"),
    "OWID_WATCH_CHECKPOINT_PATH": ("storage", "checkpoint_path"),
    "OWID_WATCH_INTERVAL_SECONDS": ("scheduler", "interval_seconds"),
}


class SourceSettings(BaseModel):
    page_url: str = "https://ourworldindata.org/coronavirus-source-data"
    dataset_url: str = "https://covid.ourworldindata.org/data/owid-covid-data.csv"


class FetchSettings(BaseModel):
    user_agent: str = "owid-watch/0.1"
    timeout_seconds: float = Field(default=60.0, gt=0)


class StorageSettings(BaseModel):
    checkpoint_path: Path = Path("data/lasttime.db")
    archive_dir: Path = Path("data/archive")
    metrics_dir: Path = Path("data/metrics")


class SchedulerSettings(BaseModel):
    interval_seconds: int = Field(default=3600, gt=0)


class ParseSettings(BaseModel):
    date_rule: Optional[Path] = Path("config/rules/last_updated.yaml")


class WatchSettings(BaseModel):
    """Top level configuration for the watcher."""

    source: SourceSettings = Field(default_factory=SourceSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    parse: ParseSettings = Field(default_factory=ParseSettings)


def _apply_env(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            data.setdefault(section, {})[key] = value
    return data


def load_settings(path: Path, *, environ: Optional[Mapping[str, str]] = None) -> WatchSettings:
    """Read the TOML configuration file, tolerating its absence."""
    data: Dict[str, Any] = {}
    if path.exists():
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    data = _apply_env(data, os.environ if environ is None else environ)
    try:
        return WatchSettings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings in {path}: {exc}") from exc
