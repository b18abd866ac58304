from __future__ import annotations

import html as html_lib
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from urllib.parse import urlparse

from .content import (
    HTML_MEDIA_TYPE,
    PLACEHOLDER_MEDIA_TYPE,
    Asset,
    AssetReference,
    AssetStatus,
    CrawlResult,
)
from .http_client import (
    DEFAULT_PROXY_TEMPLATE,
    AssetFetcher,
    FetchFailed,
    FetchOutcome,
)
from .parse import extract_references
from .progress import ProgressCallback, ProgressReporter, as_reporter
from .session import CrawlSession
from .urls import relative_path

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "web2app/0.1"


class InvalidSeedURL(ValueError):
    """The seed URL cannot be parsed as an absolute http(s) URL."""


@dataclass
class CrawlConfig:
    max_workers: int = 4
    timeout_s: float = 30
    max_retries: int = 2
    backoff_base_s: float = 0.5
    proxy_template: str | None = DEFAULT_PROXY_TEMPLATE
    max_assets: int | None = None
    user_agent: str = DEFAULT_USER_AGENT


def validate_seed_url(seed_url: str) -> str:
    if not isinstance(seed_url, str) or not seed_url.strip():
        raise InvalidSeedURL("Invalid URL provided: empty seed URL")
    seed_url = seed_url.strip()
    try:
        parsed = urlparse(seed_url)
        parsed.port  # raises ValueError for an out-of-range port
    except ValueError as e:
        raise InvalidSeedURL(f"Invalid URL provided: {seed_url}: {e}") from e
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.hostname:
        raise InvalidSeedURL(f"Invalid URL provided: {seed_url}")
    return seed_url


def fallback_page(url: str) -> str:
    """HTML shown in place of a seed page that could not be fetched."""

    safe_url = html_lib.escape(url, quote=True)
    return "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '  <meta charset="UTF-8">',
            '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
            "  <title>Website Viewer</title>",
            "  <style>",
            "    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI',"
            " Roboto, sans-serif; margin: 0; height: 100vh; display: flex;"
            " flex-direction: column; }",
            "    .header { background: #0284c7; color: white; padding: 1rem;"
            " text-align: center; }",
            "    .content { flex: 1; display: flex; flex-direction: column;"
            " align-items: center; justify-content: center; padding: 2rem; }",
            "    iframe { border: none; width: 100%; height: 80vh; margin-top: 1rem; }",
            "    .loading { font-size: 1.2rem; margin: 2rem 0; }",
            "  </style>",
            "</head>",
            "<body>",
            '  <div class="header">',
            "    <h1>Website Viewer</h1>",
            "  </div>",
            '  <div class="content">',
            '    <div class="loading">Loading website content...</div>',
            f'    <p>The original page could not be downloaded: <a href="{safe_url}">'
            f"{safe_url}</a></p>",
            f'    <iframe src="{safe_url}" onload="document.querySelector('
            "'.loading').style.display = 'none'\"></iframe>",
            "  </div>",
            "</body>",
            "</html>",
            "",
        ]
    )


def placeholder_text(url: str) -> str:
    return f"/* Failed to load asset: {url} */"


class Crawler:
    """Crawl one seed page and the assets it references.

    Each call to ``crawl`` owns a fresh ``CrawlSession``. The seed page is
    fetched and parsed first; its assets are then fetched on a bounded thread
    pool and stored in reference order. Only an invalid seed URL raises.
    """

    def __init__(
        self,
        *,
        fetcher: AssetFetcher,
        config: CrawlConfig | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.cfg = config or CrawlConfig()

    def crawl(
        self,
        seed_url: str,
        on_progress: ProgressReporter | ProgressCallback | None = None,
    ) -> CrawlResult:
        seed_url = validate_seed_url(seed_url)
        progress = as_reporter(on_progress)
        session = CrawlSession(base_url=seed_url)

        references = self._crawl_page(session, seed_url, progress)
        if references:
            self._crawl_assets(session, references, progress)

        result = session.snapshot()
        logger.info(
            "crawled %s: pages=%d assets=%d bytes=%d failures=%d",
            seed_url,
            result.page_count,
            result.asset_count,
            result.total_size_bytes,
            len(result.failures),
        )
        return result

    def _crawl_page(
        self,
        session: CrawlSession,
        url: str,
        progress: ProgressReporter,
    ) -> list[AssetReference]:
        if not session.mark_visited(url):
            return []

        progress(f"Crawling: {url}")
        path = relative_path(url)
        session.claim(path)

        outcome = self.fetcher.fetch(url, base_origin=session.base_origin)
        if isinstance(outcome, FetchFailed):
            logger.warning("failed to crawl %s: %s", url, outcome.reason)
            session.record_failure(url, outcome.reason)
            session.store(
                Asset(
                    path=path,
                    content=fallback_page(url),
                    media_type=HTML_MEDIA_TYPE,
                    status=AssetStatus.FALLBACK,
                    source_url=url,
                )
            )
            return []

        session.store(
            Asset(
                path=path,
                content=outcome.body,
                media_type=HTML_MEDIA_TYPE,
                status=AssetStatus.OK,
                source_url=url,
            )
        )

        markup = outcome.body.decode("utf-8", errors="replace")
        return list(extract_references(markup, url))

    def _crawl_assets(
        self,
        session: CrawlSession,
        references: list[AssetReference],
        progress: ProgressReporter,
    ) -> None:
        pending: list[tuple[str, AssetReference]] = []
        for ref in references:
            if self.cfg.max_assets is not None and len(pending) >= self.cfg.max_assets:
                logger.info(
                    "asset limit %d reached; skipping %s",
                    self.cfg.max_assets,
                    ref.absolute_url,
                )
                continue
            path = relative_path(ref.absolute_url)
            if not session.claim(path):
                logger.debug("skipping %s: %s already claimed", ref.absolute_url, path)
                continue
            pending.append((path, ref))

        if not pending:
            return

        executor = ThreadPoolExecutor(
            max_workers=max(1, self.cfg.max_workers),
            thread_name_prefix="web2app-fetch",
        )
        try:
            futures: list[tuple[str, AssetReference, Future[FetchOutcome]]] = [
                (
                    path,
                    ref,
                    executor.submit(self._fetch_asset, session, ref, progress),
                )
                for path, ref in pending
            ]
            # Stored in submission order so the asset map does not depend on
            # which fetch finishes first.
            for path, ref, future in futures:
                self._store_asset(session, path, ref, future.result())
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def _fetch_asset(
        self,
        session: CrawlSession,
        ref: AssetReference,
        progress: ProgressReporter,
    ) -> FetchOutcome:
        progress(f"Downloading: {ref.absolute_url}")
        return self.fetcher.fetch(ref.absolute_url, base_origin=session.base_origin)

    def _store_asset(
        self,
        session: CrawlSession,
        path: str,
        ref: AssetReference,
        outcome: FetchOutcome,
    ) -> None:
        if isinstance(outcome, FetchFailed):
            logger.warning(
                "failed to download %s: %s", ref.absolute_url, outcome.reason
            )
            session.record_failure(ref.absolute_url, outcome.reason)
            session.store(
                Asset(
                    path=path,
                    content=placeholder_text(ref.absolute_url),
                    media_type=PLACEHOLDER_MEDIA_TYPE,
                    status=AssetStatus.PLACEHOLDER,
                    source_url=ref.absolute_url,
                )
            )
            return

        session.store(
            Asset(
                path=path,
                content=outcome.body,
                media_type=ref.media_type,
                status=AssetStatus.OK,
                source_url=ref.absolute_url,
            )
        )
