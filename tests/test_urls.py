from __future__ import annotations

import pytest

from web2app.urls import (
    is_fetchable_url,
    is_same_origin,
    normalize_url,
    origin_of,
    relative_path,
    resolve_url,
    safe_filename_piece,
)


@pytest.mark.parametrize(
    "reference,expected",
    [
        ("style.css", "https://example.com/blog/style.css"),
        ("../img/a.png", "https://example.com/img/a.png"),
        ("/abs.js", "https://example.com/abs.js"),
        ("//cdn.example.net/lib.js", "https://cdn.example.net/lib.js"),
        ("?page=2", "https://example.com/blog/post?page=2"),
        ("app.js#main", "https://example.com/blog/app.js"),
        ("https://other.org/x.css", "https://other.org/x.css"),
    ],
)
def test_resolve_url(reference, expected):
    assert resolve_url(reference, "https://example.com/blog/post") == expected


def test_resolve_url_returns_malformed_reference_unchanged():
    assert resolve_url("http://[::1", "https://example.com/") == "http://[::1"


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://example.com/", "index.html"),
        ("https://example.com", "index.html"),
        ("https://example.com/docs/", "docs/index.html"),
        ("https://example.com/about", "about.html"),
        ("https://example.com/css/site.css?v=3", "css/site.css"),
        ("https://example.com/v1.2/page", "v1.2/page.html"),
        ("https://cdn.example.net/fonts/a.woff2", "fonts/a.woff2"),
    ],
)
def test_relative_path(url, expected):
    assert relative_path(url) == expected


def test_relative_path_is_deterministic():
    url = "https://example.com/assets/app.js?x=1"
    assert relative_path(url) == relative_path(url)


def test_relative_path_is_total():
    assert relative_path("http://[::1") == "index.html"
    assert relative_path("not a url") == "not a url.html"


def test_origin_helpers():
    assert origin_of("HTTPS://Example.com:8443/a") == "https://example.com:8443"
    assert is_same_origin("https://example.com/x.css", "https://example.com")
    assert not is_same_origin(
        "https://example.com.evil.net/x.css", "https://example.com"
    )
    assert not is_same_origin("http://example.com/x.css", "https://example.com")


def test_normalize_url_strips_fragment_and_lowercases_host():
    assert normalize_url("HTTPS://EXAMPLE.com/Path#top") == "https://example.com/Path"


def test_is_fetchable_url():
    assert is_fetchable_url("https://example.com/a.png")
    assert not is_fetchable_url("data:image/png;base64,AAAA")
    assert not is_fetchable_url("/relative/only.png")


def test_safe_filename_piece():
    assert safe_filename_piece("My Cool App") == "My_Cool_App"
    assert safe_filename_piece("  ") == "untitled"
    assert safe_filename_piece("a/b:c") == "a-b-c"


@pytest.mark.parametrize(
    "url,base_origin",
    [
        ("https://example.com:443/x.css", "https://example.com"),
        ("http://example.com:80/x.css", "http://example.com"),
        ("https://example.com/x.css", "https://EXAMPLE.com:443"),
        ("https://[::1]:443/x.css", "https://[::1]"),
    ],
)
def test_default_ports_are_same_origin(url, base_origin):
    assert is_same_origin(url, base_origin)


def test_non_default_ports_are_distinct_origins():
    assert origin_of("http://example.com:443/") == "http://example.com:443"
    assert not is_same_origin("https://example.com:8443/x.css", "https://example.com")
    assert not is_same_origin("https://example.com:99999/x.css", "https://example.com")
