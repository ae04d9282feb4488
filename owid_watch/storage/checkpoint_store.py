"""SQLite-backed store for the last-downloaded checkpoint."""
from __future__ import annotations

import contextlib
import re
import sqlite3
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

from owid_watch.errors import StoreError

DEFAULT_MAP = "lastTimeDownloadedUpdates"
LAST_DOWNLOADED_KEY = "lastTimeDownloaded"

_MAP_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class CheckpointHandle:
    """Open view over one named map inside the store file."""

    def __init__(self, connection: sqlite3.Connection, map_name: str) -> None:
        self._connection = connection
        self._map = map_name

    def get(self, key: str) -> Optional[date]:
        try:
            row = self._connection.execute(
                f"SELECT value FROM {self._map} WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read {key!r}: {exc}") from exc
        if row is None:
            return None
        try:
            return date.fromisoformat(row[0])
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Stored value for {key!r} is not a date: {row[0]!r}") from exc

    def put(self, key: str, value: date) -> None:
        try:
            self._connection.execute(
                f"INSERT INTO {self._map} (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value.isoformat()),
            )
            self._connection.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write {key!r}: {exc}") from exc

    def delete(self, key: str) -> bool:
        """Remove the key, returning whether it existed."""
        try:
            cursor = self._connection.execute(f"DELETE FROM {self._map} WHERE key = ?", (key,))
            self._connection.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to delete {key!r}: {exc}") from exc
        return cursor.rowcount > 0

    def close(self) -> None:
        self._connection.close()


class CheckpointStore:
    """Create-or-open access to the checkpoint file on disk."""

    def __init__(self, path: Path, *, map_name: str = DEFAULT_MAP) -> None:
        if not _MAP_NAME_RE.match(map_name):
            raise ValueError(f"Invalid map name: {map_name!r}")
        self.path = Path(path)
        self.map_name = map_name

    def _connect(self) -> sqlite3.Connection:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(self.path)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Failed to open checkpoint store {self.path}: {exc}") from exc
        try:
            connection.execute(
                f"CREATE TABLE IF NOT EXISTS {self.map_name} (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            connection.commit()
        except sqlite3.Error as exc:
            connection.close()
            raise StoreError(f"Failed to prepare checkpoint store {self.path}: {exc}") from exc
        return connection

    @contextlib.contextmanager
    def open(self) -> Iterator[CheckpointHandle]:
        """Yield a handle that is closed on every exit path."""
        handle = CheckpointHandle(self._connect(), self.map_name)
        try:
            yield handle
        finally:
            handle.close()

    def last_downloaded(self) -> Optional[date]:
        with self.open() as handle:
            return handle.get(LAST_DOWNLOADED_KEY)
