"""Error kinds raised during an update check."""
from __future__ import annotations

from typing import Optional


class UpdateCheckError(Exception):
    """Base class for every failure surfaced by an update check."""


class SourceUnavailable(UpdateCheckError):
    """The source page could not be retrieved; treated as "no update"."""


class DateParseError(UpdateCheckError):
    """The page's "last updated" text is missing or unreadable."""

    def __init__(self, message: str, *, text: Optional[str] = None) -> None:
        super().__init__(message)
        self.text = text


class StoreError(UpdateCheckError):
    """The checkpoint store could not be opened, read or written."""


class FetchError(UpdateCheckError):
    """The dataset download failed."""

    def __init__(self, message: str, *, url: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ListenerError(UpdateCheckError):
    """A registered listener could not consume the downloaded dataset."""
