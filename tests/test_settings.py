from pathlib import Path

import pytest

from owid_watch.settings import load_settings


def test_defaults_when_file_missing(tmp_path):
    settings = load_settings(tmp_path / "missing.toml", environ={})
    assert settings.source.dataset_url.endswith("owid-covid-data.csv")
    assert settings.storage.checkpoint_path == Path("data/lasttime.db")
    assert settings.scheduler.interval_seconds == 3600


def test_toml_values_and_env_overrides(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text(
        '[source]\npage_url = "https://example.org/page"\n'
        "[scheduler]\ninterval_seconds = 120\n",
        encoding="utf-8",
    )
    settings = load_settings(
        path,
        environ={
            "OWID_WATCH_DATASET_URL": "https://mirror.example.org/data.csv",
            "OWID_WATCH_CHECKPOINT_PATH": str(tmp_path / "state.db"),
        },
    )
    assert settings.source.page_url == "https://example.org/page"
    assert settings.source.dataset_url == "https://mirror.example.org/data.csv"
    assert settings.storage.checkpoint_path == tmp_path / "state.db"
    assert settings.scheduler.interval_seconds == 120


def test_invalid_values_raise_value_error(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text("[fetch]\ntimeout_seconds = -1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path, environ={})


def test_repository_settings_file_loads():
    path = Path(__file__).parent.parent / "config" / "settings.toml"
    settings = load_settings(path, environ={})
    assert settings.parse.date_rule == Path("config/rules/last_updated.yaml")
