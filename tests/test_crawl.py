from __future__ import annotations

import threading

import pytest

from web2app.content import AssetStatus
from web2app.crawl import InvalidSeedURL, placeholder_text

SEED = "https://example.com/"

PAGE = (
    "<html><head>"
    '<link rel="stylesheet" href="style.css">'
    "</head><body>"
    '<img src="logo.png">'
    "</body></html>"
)


def _assert_accounting(result):
    assert result.total_size_bytes == sum(a.size_bytes for a in result.assets.values())
    for asset in result.assets.values():
        assert asset.size_bytes == len(asset.content)


def test_end_to_end_sizes(fake_session, crawler_for, padded_page):
    fake_session.add(SEED, padded_page(PAGE, 1000))
    fake_session.add(SEED + "style.css", b"x" * 500, content_type="text/css")
    fake_session.add(
        SEED + "logo.png", b"\x89PNG" + b"\x00" * 1996, content_type="image/png"
    )

    result = crawler_for(fake_session).crawl(SEED)

    assert list(result.assets) == ["index.html", "style.css", "logo.png"]
    assert result.total_size_bytes == 3500
    assert result.page_count == 1
    assert result.assets["index.html"].media_type == "text/html"
    assert result.assets["style.css"].media_type == "text/css"
    assert result.assets["logo.png"].media_type == "image/*"
    assert all(a.status is AssetStatus.OK for a in result.assets.values())
    assert result.failures == ()
    _assert_accounting(result)


def test_duplicate_references_are_fetched_once(fake_session, crawler_for):
    page = (
        '<link rel="stylesheet" href="style.css">'
        '<link rel="stylesheet" href="/style.css?v=2">'
        '<img src="logo.png"><img src="./logo.png">'
    )
    fake_session.add(SEED, page)
    fake_session.add(SEED + "style.css", "a{}")
    fake_session.add(SEED + "style.css?v=2", "b{}")
    fake_session.add(SEED + "logo.png", b"img")

    result = crawler_for(fake_session).crawl(SEED)

    assert list(result.assets) == ["index.html", "style.css", "logo.png"]
    assert result.assets["style.css"].content == b"a{}"
    assert fake_session.calls[SEED + "style.css"] == 1
    assert fake_session.calls[SEED + "style.css?v=2"] == 0
    assert fake_session.calls[SEED + "logo.png"] == 1


def test_colliding_paths_first_reference_wins(fake_session, crawler_for):
    page = (
        '<img src="https://a.example.net/img/x.png">'
        '<img src="https://b.example.net/img/x.png">'
    )
    fake_session.add(SEED, page)
    fake_session.add("https://a.example.net/img/x.png", b"first")
    fake_session.add("https://b.example.net/img/x.png", b"second")

    result = crawler_for(fake_session).crawl(SEED)

    assert result.assets["img/x.png"].content == b"first"
    assert result.assets["img/x.png"].source_url == "https://a.example.net/img/x.png"
    assert fake_session.calls["https://b.example.net/img/x.png"] == 0


def test_seed_failure_produces_fallback_page(fake_session, crawler_for):
    seed = "https://example.com/blog/post"
    fake_session.fail(seed)

    result = crawler_for(fake_session).crawl(seed)

    assert list(result.assets) == ["blog/post.html"]
    assert result.page_count == 1
    page = result.assets["blog/post.html"]
    assert page.status is AssetStatus.FALLBACK
    assert page.media_type == "text/html"
    assert seed.encode() in page.content
    assert [f.url for f in result.failures] == [seed]
    _assert_accounting(result)


def test_seed_http_error_produces_fallback_page(fake_session, crawler_for):
    fake_session.add(SEED, "<img src='never.png'>", status=500)

    result = crawler_for(fake_session).crawl(SEED)

    assert list(result.assets) == ["index.html"]
    assert result.assets["index.html"].status is AssetStatus.FALLBACK
    assert fake_session.calls[SEED + "never.png"] == 0


def test_asset_failure_produces_placeholder(fake_session, crawler_for):
    fake_session.add(SEED, '<script src="app.js"></script><img src="gone.png">')
    fake_session.add(SEED + "app.js", "run()")
    fake_session.fail(SEED + "gone.png")

    result = crawler_for(fake_session).crawl(SEED)

    placeholder = result.assets["gone.png"]
    assert placeholder.status is AssetStatus.PLACEHOLDER
    assert placeholder.media_type == "text/plain"
    assert placeholder.content == placeholder_text(SEED + "gone.png").encode()
    assert result.assets["app.js"].status is AssetStatus.OK
    assert [f.url for f in result.failures] == [SEED + "gone.png"]
    _assert_accounting(result)


@pytest.mark.parametrize(
    "seed",
    [
        "",
        "example.com",
        "ftp://example.com/",
        "https://",
        "http://[::1",
        "https://example.com:99999/",
    ],
)
def test_invalid_seed_url_raises(fake_session, crawler_for, seed):
    with pytest.raises(InvalidSeedURL):
        crawler_for(fake_session).crawl(seed)
    assert not fake_session.calls


def test_progress_messages(fake_session, crawler_for):
    fake_session.add(SEED, PAGE)
    fake_session.add(SEED + "style.css", "a{}")
    fake_session.add(SEED + "logo.png", b"png")
    messages: list[str] = []

    crawler_for(fake_session, max_workers=1).crawl(SEED, messages.append)

    assert messages == [
        f"Crawling: {SEED}",
        f"Downloading: {SEED}style.css",
        f"Downloading: {SEED}logo.png",
    ]


def test_failing_progress_callback_does_not_abort(fake_session, crawler_for):
    fake_session.add(SEED, PAGE)

    def explode(_message: str) -> None:
        raise RuntimeError("ui went away")

    result = crawler_for(fake_session).crawl(SEED, explode)
    assert len(result.assets) == 3


def test_crawl_is_idempotent(fake_session, crawler_for):
    fake_session.add(SEED, PAGE)
    fake_session.add(SEED + "style.css", "a{}")
    crawler = crawler_for(fake_session)

    first = crawler.crawl(SEED)
    second = crawler.crawl(SEED)

    assert list(first.assets) == list(second.assets)
    assert [a.size_bytes for a in first.assets.values()] == [
        a.size_bytes for a in second.assets.values()
    ]
    assert first.total_size_bytes == second.total_size_bytes
    assert first.page_count == second.page_count == 1


def test_max_assets_limits_downloads(fake_session, crawler_for):
    fake_session.add(SEED, '<img src="a.png"><img src="b.png"><img src="c.png">')
    for name in "abc":
        fake_session.add(f"{SEED}{name}.png", b"img")

    result = crawler_for(fake_session, max_assets=2).crawl(SEED)

    assert list(result.assets) == ["index.html", "a.png", "b.png"]
    assert fake_session.calls[SEED + "c.png"] == 0


def test_concurrent_fetches_keep_order_and_totals(fake_session, crawler_for):
    names = [f"img/{i}.png" for i in range(40)]
    fake_session.add(SEED, "".join(f'<img src="{n}">' for n in names * 2))
    for i, name in enumerate(names):
        if i % 7 == 0:
            fake_session.fail(SEED + name)
        else:
            fake_session.add(SEED + name, b"p" * (i + 1))

    threads_seen: set[str] = set()
    lock = threading.Lock()

    def on_progress(message: str) -> None:
        with lock:
            threads_seen.add(threading.current_thread().name)

    result = crawler_for(fake_session, max_workers=8).crawl(SEED, on_progress)

    assert list(result.assets) == ["index.html", *names]
    assert all(fake_session.calls[SEED + n] == 1 for n in names)
    statuses = [a.status for a in result.assets.values()]
    assert statuses.count(AssetStatus.PLACEHOLDER) == 6
    assert any(name.startswith("web2app-fetch") for name in threads_seen)
    _assert_accounting(result)


@pytest.mark.parametrize("retry_after", ["-1", "nan", "inf", "86400"])
def test_bad_retry_after_on_seed_yields_fallback(
    fake_session, crawler_for, recorded_sleeps, retry_after
):
    fake_session.add(SEED, "busy", status=503, headers={"Retry-After": retry_after})

    result = crawler_for(fake_session, max_retries=1, timeout_s=5).crawl(SEED)

    assert result.assets["index.html"].status is AssetStatus.FALLBACK
    assert fake_session.calls[SEED] == 2
    assert all(0 <= wait <= 5 for wait in recorded_sleeps)


@pytest.mark.parametrize("retry_after", ["-5", "nan", "inf", "86400"])
def test_bad_retry_after_on_asset_yields_placeholder(
    fake_session, crawler_for, recorded_sleeps, retry_after
):
    fake_session.add(SEED, '<img src="busy.png">')
    fake_session.add(
        SEED + "busy.png", b"", status=503, headers={"Retry-After": retry_after}
    )

    result = crawler_for(fake_session, max_retries=1, timeout_s=5).crawl(SEED)

    assert result.assets["index.html"].status is AssetStatus.OK
    assert result.assets["busy.png"].status is AssetStatus.PLACEHOLDER
    assert [f.url for f in result.failures] == [SEED + "busy.png"]
    assert all(0 <= wait <= 5 for wait in recorded_sleeps)
