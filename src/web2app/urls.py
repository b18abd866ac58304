from __future__ import annotations

import re
from urllib.parse import ParseResult, urljoin, urldefrag, urlparse, urlunparse

_FETCHABLE_SCHEMES = {"http", "https"}


def normalize_url(raw_url: str) -> str:
    """Normalize a URL for the visited set.

    - Lowercases scheme + hostname.
    - Strips fragments.
    """

    parsed: ParseResult = urlparse(raw_url)
    parsed = parsed._replace(
        scheme=(parsed.scheme or "").lower(),
        netloc=(parsed.netloc or "").lower(),
        fragment="",
    )
    return urlunparse(parsed)


def resolve_url(reference: str, base_url: str) -> str:
    """Resolve ``reference`` against ``base_url``.

    Malformed input comes back unchanged; callers must not assume the result
    is fetchable.
    """

    try:
        resolved = urljoin(base_url, reference.strip())
        resolved, _fragment = urldefrag(resolved)
    except (ValueError, AttributeError):
        return reference
    return resolved


def relative_path(url: str) -> str:
    """Map an absolute URL to its archive-relative path.

    This is the dedup key for assets, so it only looks at the URL path.
    """

    try:
        path = urlparse(url).path
    except (ValueError, AttributeError):
        return "index.html"

    if not path or path.endswith("/"):
        path += "index.html"

    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        path += ".html"

    return path.lstrip("/")


_DEFAULT_PORTS = {"http": 80, "https": 443}


def origin_of(url: str) -> str:
    """``scheme://host[:port]`` with the scheme's default port dropped.

    Raises ``ValueError`` for an out-of-range port.
    """

    parsed = urlparse(url)
    scheme = (parsed.scheme or "").lower()
    host = parsed.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parsed.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


def is_same_origin(url: str, base_origin: str) -> bool:
    try:
        return origin_of(url) == origin_of(base_origin)
    except ValueError:
        return False


def is_fetchable_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme.lower() in _FETCHABLE_SCHEMES and bool(parsed.netloc)


def safe_filename_piece(text: str, *, max_len: int = 80) -> str:
    text = text.strip()
    text = re.sub(r"\s+", "_", text)
    text = re.sub(r"[^A-Za-z0-9._-]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    if not text:
        return "untitled"
    return text[:max_len]
