import json
from datetime import date
from pathlib import Path

import pytest

from owid_watch import main as app_main

FIXTURES = Path(__file__).parent / "fixtures"
LOGGING_YAML = Path(__file__).parent.parent / "config" / "logging.yaml"


@pytest.fixture()
def config_path(tmp_path, monkeypatch):
    for variable in ("OWID_WATCH_PAGE_URL", "OWID_WATCH_DATASET_URL", "OWID_WATCH_CHECKPOINT_PATH"):
        monkeypatch.delenv(variable, raising=False)
    page = (FIXTURES / "html" / "owid_source_page.html").resolve()
    dataset = (FIXTURES / "owid-covid-data.csv").resolve()
    data_root = tmp_path / "data"
    path = tmp_path / "settings.toml"
    path.write_text(
        "[source]\n"
        f'page_url = "file://{page}"\n'
        f'dataset_url = "file://{dataset}"\n'
        "[storage]\n"
        f'checkpoint_path = "{data_root / "lasttime.db"}"\n'
        f'archive_dir = "{data_root / "archive"}"\n'
        f'metrics_dir = "{data_root / "metrics"}"\n'
        "[parse]\n"
        f'date_rule = "{Path(__file__).parent.parent / "config" / "rules" / "last_updated.yaml"}"\n',
        encoding="utf-8",
    )
    return path


def _run(config_path, capsys, *command):
    app_main.main(["--config", str(config_path), "--logging", str(LOGGING_YAML), *command])
    return json.loads(capsys.readouterr().out)


def test_check_status_and_reset(config_path, capsys, tmp_path):
    first = _run(config_path, capsys, "check")
    assert first["outcome"] == "first_run"
    assert first["bytes"] > 0
    archived = tmp_path / "data" / "archive" / date.today().isoformat() / "owid-covid-data.csv"
    assert archived.read_text(encoding="utf-8").startswith("iso_code,")
    assert list((tmp_path / "data" / "metrics").glob("check_*.json"))

    second = _run(config_path, capsys, "check")
    assert second["outcome"] == "unchanged"
    assert second["page_date"] == "2021-03-10"

    status = _run(config_path, capsys, "status")
    assert status["last_downloaded"] == date.today().isoformat()

    reset = _run(config_path, capsys, "reset")
    assert reset["removed"] is True
    assert _run(config_path, capsys, "status")["last_downloaded"] is None


def test_check_exits_non_zero_on_fatal_error(config_path, capsys, tmp_path):
    _run(config_path, capsys, "check")
    broken_page = tmp_path / "broken.html"
    broken_page.write_text('<div class="last-updated"><p><span>N/A</span></p></div>', encoding="utf-8")
    text = config_path.read_text(encoding="utf-8")
    config_path.write_text(
        "\n".join(
            f'page_url = "file://{broken_page}"' if line.startswith("page_url") else line
            for line in text.splitlines()
        ),
        encoding="utf-8",
    )
    with pytest.raises(SystemExit) as excinfo:
        app_main.main(["--config", str(config_path), "--logging", str(LOGGING_YAML), "check"])
    assert excinfo.value.code == 1
    output = json.loads(capsys.readouterr().out)
    assert output["error"] == "DateParseError"
