from __future__ import annotations

import requests

from .archive import AppConfig, Archive, ArchiveBuilder
from .crawl import CrawlConfig, Crawler
from .http_client import AssetFetcher, HttpClient
from .progress import ProgressCallback, ProgressReporter, as_reporter


def make_crawler(
    config: CrawlConfig | None = None,
    *,
    session: requests.Session | None = None,
) -> Crawler:
    cfg = config or CrawlConfig()
    if session is None:
        session = requests.Session()
        session.headers["User-Agent"] = cfg.user_agent
    http = HttpClient(
        session,
        timeout_s=cfg.timeout_s,
        max_retries=cfg.max_retries,
        backoff_base_s=cfg.backoff_base_s,
    )
    fetcher = AssetFetcher(http, proxy_template=cfg.proxy_template)
    return Crawler(fetcher=fetcher, config=cfg)


def generate_archive(
    app_config: AppConfig,
    *,
    crawler: Crawler | None = None,
    builder: ArchiveBuilder | None = None,
    on_progress: ProgressReporter | ProgressCallback | None = None,
) -> Archive:
    """Crawl ``app_config.website_url`` and package the result.

    Raises ``InvalidSeedURL`` for an unusable website URL; every other
    failure degrades into fallback or placeholder content.
    """

    progress = as_reporter(on_progress)
    crawler = crawler or make_crawler()
    builder = builder or ArchiveBuilder()

    progress("Starting website crawl...")
    result = crawler.crawl(app_config.website_url, progress)
    return builder.build(result, app_config, progress)
