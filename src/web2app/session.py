from __future__ import annotations

import threading
from dataclasses import dataclass, field
from types import MappingProxyType

from .content import Asset, CrawlResult, FetchFailure
from .urls import normalize_url, origin_of


@dataclass
class CrawlSession:
    """Mutable state for one crawl run.

    Every method takes the session lock, so worker threads can share one
    session. Paths are claimed before their fetch starts and stored once the
    fetch has an outcome.
    """

    base_url: str
    base_origin: str = ""
    visited: set[str] = field(default_factory=set)
    assets: dict[str, Asset] = field(default_factory=dict)
    total_size_bytes: int = 0
    failures: list[FetchFailure] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.base_origin:
            self.base_origin = origin_of(self.base_url)
        self._claimed: set[str] = set(self.assets)
        self._lock = threading.Lock()

    def mark_visited(self, url: str) -> bool:
        """Add ``url`` to the visited set; False if it was already there."""

        key = normalize_url(url)
        with self._lock:
            if key in self.visited:
                return False
            self.visited.add(key)
            return True

    def claim(self, path: str) -> bool:
        """Atomically reserve ``path``; False if it is stored or in flight."""

        with self._lock:
            if path in self._claimed:
                return False
            self._claimed.add(path)
            return True

    def store(self, asset: Asset) -> None:
        with self._lock:
            if asset.path in self.assets:
                raise ValueError(f"asset already stored: {asset.path}")
            self._claimed.add(asset.path)
            self.assets[asset.path] = asset
            self.total_size_bytes += asset.size_bytes

    def record_failure(self, url: str, reason: str) -> None:
        with self._lock:
            self.failures.append(FetchFailure(url=url, reason=reason))

    def snapshot(self) -> CrawlResult:
        with self._lock:
            return CrawlResult(
                assets=MappingProxyType(dict(self.assets)),
                total_size_bytes=self.total_size_bytes,
                page_count=len(self.visited),
                failures=tuple(self.failures),
            )
