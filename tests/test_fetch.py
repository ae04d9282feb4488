from pathlib import Path

import httpx
import pytest

from owid_watch.errors import FetchError, SourceUnavailable
from owid_watch.fetch.dataset import fetch_dataset
from owid_watch.fetch.page import fetch_page, page_provider, provider_from_callable
from owid_watch.fetch.session import create_http_session

FIXTURES = Path(__file__).parent / "fixtures"


def _session(handler):
    return create_http_session(user_agent="test-agent", timeout=5.0, transport=httpx.MockTransport(handler))


def test_fetch_dataset_returns_utf8_text():
    body = "location,date\nCôte d'Ivoire,2021-03-10\n"

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["User-Agent"] == "test-agent"
        return httpx.Response(200, content=body.encode("utf-8"))

    with _session(handler) as session:
        assert fetch_dataset(session, "https://example.org/data.csv") == body


def test_fetch_dataset_non_success_status_raises():
    with _session(lambda request: httpx.Response(503)) as session:
        with pytest.raises(FetchError) as excinfo:
            fetch_dataset(session, "https://example.org/data.csv")
    assert excinfo.value.status_code == 503
    assert excinfo.value.url == "https://example.org/data.csv"


def test_fetch_dataset_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _session(handler) as session:
        with pytest.raises(FetchError) as excinfo:
            fetch_dataset(session, "https://example.org/data.csv")
    assert excinfo.value.status_code is None


def test_fetch_page_parses_snapshot():
    html = (FIXTURES / "html" / "owid_source_page.html").read_text(encoding="utf-8")
    with _session(lambda request: httpx.Response(200, text=html)) as session:
        snapshot = fetch_page(session, "https://example.org/source")
    assert snapshot is not None
    assert snapshot.url == "https://example.org/source"
    assert snapshot.document.select_one(".last-updated") is not None


def test_fetch_page_returns_none_when_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with _session(handler) as session:
        assert fetch_page(session, "https://example.org/source") is None

    with _session(lambda request: httpx.Response(404)) as session:
        assert page_provider(session, "https://example.org/source")() is None


def test_file_scheme_is_served_from_disk():
    path = FIXTURES / "owid-covid-data.csv"
    with _session(lambda request: httpx.Response(500)) as session:
        text = fetch_dataset(session, f"file://{path.resolve()}")
        missing = fetch_page(session, f"file://{path.resolve()}.missing")
    assert text.startswith("iso_code,")
    assert missing is None


def test_provider_from_callable_absorbs_source_unavailable():
    def retriever():
        raise SourceUnavailable("dns failure")

    assert provider_from_callable(retriever)() is None
