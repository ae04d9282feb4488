"""Parsed representation of a fetched source page."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup


@dataclass(frozen=True, slots=True)
class PageSnapshot:
    """A single retrieval of the source page, parsed once and never mutated."""

    url: str
    html: str
    fetched_at: datetime
    document: BeautifulSoup = field(repr=False, compare=False)

    @classmethod
    def from_html(cls, html: str, *, url: str, fetched_at: Optional[datetime] = None) -> "PageSnapshot":
        return cls(
            url=url,
            html=html,
            fetched_at=fetched_at or datetime.now(timezone.utc),
            document=BeautifulSoup(html, "html.parser"),
        )
