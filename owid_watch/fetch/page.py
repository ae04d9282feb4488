"""Retrieve and parse the source page that announces dataset updates."""
from __future__ import annotations

import time
from typing import Callable, Optional

import httpx
import structlog

from owid_watch.errors import SourceUnavailable
from owid_watch.fetch.session import HttpSession
from owid_watch.fetch.snapshot import PageSnapshot

LOGGER = structlog.get_logger(__name__)

SnapshotProvider = Callable[[], Optional[PageSnapshot]]


def fetch_page(session: HttpSession, url: str, *, timeout: float = 30.0) -> Optional[PageSnapshot]:
    """Fetch the source page, returning ``None`` when it cannot be reached."""
    start = time.perf_counter()
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        LOGGER.warning("page_unavailable", url=url, reason=str(exc))
        return None
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    LOGGER.info(
        "page_fetched",
        url=url,
        status=response.status_code,
        bytes=len(response.content),
        elapsed_ms=elapsed_ms,
    )
    return PageSnapshot.from_html(response.text, url=url)


def page_provider(session: HttpSession, url: str, *, timeout: float = 30.0) -> SnapshotProvider:
    """Build a provider that retrieves a fresh snapshot on every call."""

    def _provide() -> Optional[PageSnapshot]:
        return fetch_page(session, url, timeout=timeout)

    return _provide


def provider_from_callable(func: Callable[[], PageSnapshot]) -> SnapshotProvider:
    """Adapt a retriever that raises `SourceUnavailable` into a provider."""

    def _provide() -> Optional[PageSnapshot]:
        try:
            return func()
        except SourceUnavailable as exc:
            LOGGER.warning("page_unavailable", reason=str(exc))
            return None

    return _provide
