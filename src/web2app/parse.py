from __future__ import annotations

from typing import Iterator

from bs4 import BeautifulSoup, Tag

from .content import MEDIA_TYPE_BY_KIND, AssetReference, SourceKind
from .urls import resolve_url

_SKIPPED_PREFIXES = ("#", "data:", "javascript:", "mailto:", "about:")


def _attr_text(val: object) -> str:
    if isinstance(val, list):
        if not val:
            return ""
        return " ".join(str(v) for v in val)
    return str(val or "")


def _rel_values(tag: Tag) -> set[str]:
    rel = tag.get("rel")
    if isinstance(rel, list):
        return {str(r).lower() for r in rel}
    return {r.lower() for r in _attr_text(rel).split()}


def _classify(tag: Tag) -> tuple[SourceKind, str] | None:
    """Return the reference kind and raw attribute value for an asset tag."""

    if tag.name == "link":
        href = _attr_text(tag.get("href")).strip()
        if "stylesheet" in _rel_values(tag):
            return SourceKind.STYLESHEET, href
        if "font" in href:
            return SourceKind.FONT, href
        return None
    if tag.name == "script":
        return SourceKind.SCRIPT, _attr_text(tag.get("src")).strip()
    if tag.name == "img":
        return SourceKind.IMAGE, _attr_text(tag.get("src")).strip()
    return None


def effective_base_url(soup: BeautifulSoup, page_url: str) -> str:
    base = soup.find("base")
    if isinstance(base, Tag):
        base_href = _attr_text(base.get("href")).strip()
        if base_href:
            return resolve_url(base_href, page_url)
    return page_url


def extract_references(markup: str, page_url: str) -> Iterator[AssetReference]:
    """Yield stylesheet, script, image and font references in document order.

    References are resolved against the page URL (or its ``<base href>``).
    A ``<link>`` that is both a stylesheet and font-like is reported once, as
    a stylesheet.
    """

    soup = BeautifulSoup(markup, "html.parser")
    base_url = effective_base_url(soup, page_url)

    for tag in soup.find_all(["link", "script", "img"]):
        found = _classify(tag)
        if found is None:
            continue
        kind, raw = found
        if not raw or raw.lower().startswith(_SKIPPED_PREFIXES):
            continue
        yield AssetReference(
            absolute_url=resolve_url(raw, base_url),
            media_type=MEDIA_TYPE_BY_KIND[kind],
            source_kind=kind,
        )
