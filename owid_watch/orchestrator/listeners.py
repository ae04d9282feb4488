"""Consumers notified when a new dataset release is downloaded."""
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Callable, Optional, Protocol

import structlog

from owid_watch.errors import ListenerError

LOGGER = structlog.get_logger(__name__)


class UpdateListener(Protocol):
    def on_update_available(self, csv_text: str) -> None:
        ...


class CallbackListener:
    """Adapts a plain callable to the listener protocol."""

    def __init__(self, func: Callable[[str], None]) -> None:
        self._func = func

    def on_update_available(self, csv_text: str) -> None:
        self._func(csv_text)


class CsvArchiveListener:
    """Writes every new release under a date partition of the archive root."""

    def __init__(
        self,
        root: Path,
        *,
        filename: str = "owid-covid-data.csv",
        today: Callable[[], date] = date.today,
    ) -> None:
        self._root = root
        self._filename = filename
        self._today = today
        self.last_path: Optional[Path] = None

    def on_update_available(self, csv_text: str) -> None:
        target_dir = self._root / self._today().isoformat()
        target = target_dir / self._filename
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(csv_text, encoding="utf-8")
        except OSError as exc:
            raise ListenerError(f"Failed to archive dataset to {target}: {exc}") from exc
        self.last_path = target
        LOGGER.info("dataset_archived", path=str(target), bytes=len(csv_text.encode("utf-8")))
