from datetime import date

import pytest

from owid_watch.errors import ListenerError
from owid_watch.orchestrator.listeners import CsvArchiveListener


def test_archive_listener_writes_date_partition(tmp_path):
    listener = CsvArchiveListener(tmp_path / "archive", today=lambda: date(2021, 3, 12))
    listener.on_update_available("iso_code,date\nPRT,2021-03-10\n")
    target = tmp_path / "archive" / "2021-03-12" / "owid-covid-data.csv"
    assert listener.last_path == target
    assert target.read_text(encoding="utf-8") == "iso_code,date\nPRT,2021-03-10\n"


def test_archive_listener_raises_typed_error_when_root_is_a_file(tmp_path):
    root = tmp_path / "archive"
    root.write_text("occupied", encoding="utf-8")
    listener = CsvArchiveListener(root, today=lambda: date(2021, 3, 12))
    with pytest.raises(ListenerError):
        listener.on_update_available("iso_code,date\n")
    assert listener.last_path is None
