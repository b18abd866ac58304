from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Final, Mapping

HTML_MEDIA_TYPE: Final = "text/html"
PLACEHOLDER_MEDIA_TYPE: Final = "text/plain"


class AssetStatus(str, Enum):
    OK = "ok"
    FALLBACK = "fallback"
    PLACEHOLDER = "placeholder"


class SourceKind(str, Enum):
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    FONT = "font"


# Declared media type per reference kind; the response Content-Type is not
# consulted when storing an asset.
MEDIA_TYPE_BY_KIND: Final[Mapping[SourceKind, str]] = MappingProxyType(
    {
        SourceKind.STYLESHEET: "text/css",
        SourceKind.SCRIPT: "application/javascript",
        SourceKind.IMAGE: "image/*",
        SourceKind.FONT: "font/*",
    }
)


@dataclass(frozen=True)
class Asset:
    path: str
    content: bytes
    media_type: str
    status: AssetStatus
    source_url: str = ""
    size_bytes: int = field(init=False)

    def __post_init__(self) -> None:
        if isinstance(self.content, str):
            object.__setattr__(self, "content", self.content.encode("utf-8"))
        object.__setattr__(self, "size_bytes", len(self.content))


@dataclass(frozen=True)
class AssetReference:
    absolute_url: str
    media_type: str
    source_kind: SourceKind


@dataclass(frozen=True)
class FetchFailure:
    url: str
    reason: str


@dataclass(frozen=True)
class CrawlResult:
    assets: Mapping[str, Asset]
    total_size_bytes: int
    page_count: int
    failures: tuple[FetchFailure, ...] = ()

    @property
    def asset_count(self) -> int:
        return len(self.assets)

    def summary(self) -> dict:
        return {
            "page_count": self.page_count,
            "asset_count": self.asset_count,
            "total_size_bytes": self.total_size_bytes,
            "failures": [
                {"url": f.url, "reason": f.reason} for f in self.failures
            ],
            "assets": {
                path: {
                    "size_bytes": asset.size_bytes,
                    "media_type": asset.media_type,
                    "status": asset.status.value,
                }
                for path, asset in self.assets.items()
            },
        }
