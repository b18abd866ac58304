from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Mapping, Union
from urllib.parse import quote

import requests
from requests import exceptions as req_exc

from .urls import is_fetchable_url, is_same_origin, normalize_url

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}

DEFAULT_PROXY_TEMPLATE = "https://api.allorigins.win/raw?url={url}"

CHUNK_SIZE = 64 * 1024


class FetchDeadlineExceeded(RuntimeError):
    """The response body took longer than the per-fetch timeout to arrive."""


def _retry_after_seconds(headers: Mapping[str, str]) -> float | None:
    retry_after = headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        seconds = float(retry_after)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name:
            return str(value)
    return None


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    content_type: str | None
    body: bytes


class HttpClient:
    """GET with retries over a ``requests.Session``.

    Every attempt is bounded by ``timeout_s``: ``requests`` enforces it for
    the connect and for each read, and the body is streamed against a
    wall-clock deadline of the same length. ``Retry-After`` waits are capped
    at ``timeout_s`` as well.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: float = 30,
        max_retries: int = 2,
        backoff_base_s: float = 0.5,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._backoff_base_s = backoff_base_s

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        normalized = normalize_url(url)
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                started = time.monotonic()
                resp = self._session.get(
                    normalized, timeout=self._timeout_s, headers=headers, stream=True
                )
                try:
                    if (
                        resp.status_code in TRANSIENT_HTTP_STATUSES
                        and attempt < self._max_retries
                    ):
                        wait_s = self._retry_wait(resp.headers, attempt)
                        logger.debug(
                            "transient status %s for %s; retrying in %.1fs",
                            resp.status_code,
                            normalized,
                            wait_s,
                        )
                        time.sleep(wait_s)
                        continue

                    # Non-2xx responses are returned; callers classify them.
                    return FetchResult(
                        url=normalized,
                        status_code=int(resp.status_code),
                        content_type=_header(resp.headers, "content-type"),
                        body=self._read_body(resp, normalized, started),
                    )
                finally:
                    resp.close()
            except req_exc.RequestException as e:
                last_error = e
                if attempt >= self._max_retries:
                    break
                time.sleep(self._backoff_base_s * (2**attempt))

        raise RuntimeError(f"Failed to fetch {normalized}: {last_error}")

    def _retry_wait(self, headers: Mapping[str, str], attempt: int) -> float:
        retry_after = _retry_after_seconds(headers)
        if retry_after is None:
            return self._backoff_base_s * (2**attempt)
        return min(retry_after, self._timeout_s)

    def _read_body(self, resp, url: str, started: float) -> bytes:
        chunks: list[bytes] = []
        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                chunks.append(chunk)
            if time.monotonic() - started > self._timeout_s:
                raise FetchDeadlineExceeded(
                    f"Failed to fetch {url}: body not received within "
                    f"{self._timeout_s:g}s"
                )
        return b"".join(chunks)


@dataclass(frozen=True)
class FetchOk:
    url: str
    body: bytes
    media_type: str | None
    status_code: int


@dataclass(frozen=True)
class FetchFailed:
    url: str
    reason: str


FetchOutcome = Union[FetchOk, FetchFailed]


class AssetFetcher:
    """Fetch one URL and classify the outcome.

    Cross-origin URLs go through ``proxy_template`` (``{url}`` is replaced
    with the percent-encoded target); same-origin URLs are fetched directly.
    Ordinary HTTP and transport failures come back as ``FetchFailed``.
    """

    def __init__(
        self,
        http: HttpClient,
        *,
        proxy_template: str | None = DEFAULT_PROXY_TEMPLATE,
    ) -> None:
        self.http = http
        self.proxy_template = proxy_template

    def request_url(self, url: str, *, base_origin: str) -> str:
        if self.proxy_template is None or is_same_origin(url, base_origin):
            return url
        return self.proxy_template.format(url=quote(url, safe=""))

    def fetch(self, url: str, *, base_origin: str) -> FetchOutcome:
        if not isinstance(url, str):
            raise TypeError(f"url must be a string, not {type(url).__name__}")

        if not is_fetchable_url(url):
            return FetchFailed(url=url, reason="unsupported URL")

        target = self.request_url(url, base_origin=base_origin)
        try:
            res = self.http.get(target)
        except (req_exc.RequestException, RuntimeError) as e:
            return FetchFailed(url=url, reason=str(e))

        if not 200 <= res.status_code < 300:
            return FetchFailed(url=url, reason=f"HTTP {res.status_code}")

        media_type = None
        if res.content_type:
            media_type = res.content_type.split(";", 1)[0].strip().lower() or None

        return FetchOk(
            url=url,
            body=res.body,
            media_type=media_type,
            status_code=res.status_code,
        )
