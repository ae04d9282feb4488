"""Factories for the blocking HTTP session used by the watcher."""
from __future__ import annotations

import contextlib
from pathlib import Path
from typing import Dict, Iterator, Optional
from urllib.parse import urlparse

import httpx


class HttpSession:
    """Thin wrapper over ``httpx.Client`` that also serves ``file://`` URLs."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def get(self, url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 30.0) -> httpx.Response:
        """Fetch a URL returning an HTTPX response object."""
        parsed = urlparse(url)
        if parsed.scheme == "file":
            location = (parsed.netloc + parsed.path) or parsed.path
            target = Path(location)
            if not target.is_absolute():
                target = Path.cwd() / target
            try:
                body = target.read_bytes()
            except OSError as exc:
                raise httpx.TransportError(f"Cannot read {target}: {exc}") from exc
            return httpx.Response(200, content=body, request=httpx.Request("GET", url))
        return self._client.get(url, headers=headers, timeout=timeout)


@contextlib.contextmanager
def create_http_session(
    *,
    user_agent: str,
    timeout: float,
    transport: Optional[httpx.BaseTransport] = None,
) -> Iterator[HttpSession]:
    """Yield a configured `HttpSession` for the duration of the context."""
    headers = {"User-Agent": user_agent}
    with httpx.Client(headers=headers, timeout=timeout, follow_redirects=True, transport=transport) as client:
        yield HttpSession(client)
