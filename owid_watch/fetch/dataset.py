"""Single-attempt download of the dataset document."""
from __future__ import annotations

import time

import httpx
import structlog

from owid_watch.errors import FetchError
from owid_watch.fetch.session import HttpSession

LOGGER = structlog.get_logger(__name__)


def fetch_dataset(session: HttpSession, url: str, *, timeout: float = 60.0) -> str:
    """Download the dataset and return its body decoded as UTF-8."""
    start = time.perf_counter()
    try:
        response = session.get(url, timeout=timeout)
    except httpx.HTTPError as exc:
        raise FetchError(f"Failed to download {url}: {exc}", url=url) from exc
    if not response.is_success:
        raise FetchError(
            f"Dataset download returned HTTP {response.status_code}",
            url=url,
            status_code=response.status_code,
        )
    try:
        text = response.content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FetchError(f"Dataset at {url} is not valid UTF-8", url=url, status_code=response.status_code) from exc
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    LOGGER.info("dataset_fetched", url=url, bytes=len(response.content), elapsed_ms=elapsed_ms)
    return text
