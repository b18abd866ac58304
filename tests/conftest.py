from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest
import requests

from web2app import http_client
from web2app.crawl import CrawlConfig, Crawler
from web2app.pipeline import make_crawler


@dataclass
class FakeResponse:
    url: str
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)
    closed: bool = False

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stand-in for ``requests.Session`` serving canned responses by URL."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, dict[str, str]]] = {}
        self.errors: set[str] = set()
        self.calls: Counter[str] = Counter()
        self.timeouts: list[float] = []
        self._lock = threading.Lock()

    def add(
        self,
        url: str,
        body: bytes | str,
        *,
        status: int = 200,
        content_type: str = "text/html; charset=utf-8",
        headers: dict[str, str] | None = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = (
            status,
            body,
            {"Content-Type": content_type, **(headers or {})},
        )

    def fail(self, url: str) -> None:
        self.errors.add(url)

    def get(self, url, timeout=None, headers=None, stream=False):
        with self._lock:
            self.calls[url] += 1
            self.timeouts.append(timeout)
        if url in self.errors:
            raise requests.ConnectionError(f"connection refused: {url}")
        if url not in self.routes:
            return FakeResponse(url=url, status_code=404, content=b"not found")
        status, body, resp_headers = self.routes[url]
        return FakeResponse(
            url=url, status_code=status, content=body, headers=dict(resp_headers)
        )


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def crawler_for():
    def _make(session: FakeSession, **overrides) -> Crawler:
        cfg = CrawlConfig(
            max_retries=0,
            backoff_base_s=0,
            proxy_template=None,
        )
        for key, value in overrides.items():
            setattr(cfg, key, value)
        return make_crawler(cfg, session=session)

    return _make


@pytest.fixture
def padded_page():
    """Pad HTML with trailing whitespace to exactly ``size`` bytes."""

    def _pad(body: str, size: int) -> str:
        encoded = body.encode("utf-8")
        assert len(encoded) <= size
        return body + " " * (size - len(encoded))

    return _pad


@pytest.fixture
def recorded_sleeps(monkeypatch) -> list[float]:
    """Record retry waits in the HTTP client instead of sleeping."""

    slept: list[float] = []
    monkeypatch.setattr(
        http_client,
        "time",
        SimpleNamespace(sleep=slept.append, monotonic=time.monotonic),
    )
    return slept
