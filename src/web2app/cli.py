from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Iterable, Optional

from tqdm import tqdm

from .archive import DEFAULT_PACKAGE_NAME, AppConfig, ArchiveBuilder, build_apk_config
from .content import CrawlResult, FetchFailure
from .crawl import CrawlConfig, InvalidSeedURL
from .http_client import DEFAULT_PROXY_TEMPLATE
from .pipeline import generate_archive, make_crawler
from .sizes import format_file_size


def _add_common_crawl_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--url", required=True, help="Seed page to crawl")
    p.add_argument("--workers", type=int, default=4)
    p.add_argument("--timeout", type=float, default=30)
    p.add_argument("--max-retries", type=int, default=2)
    p.add_argument(
        "--max-assets",
        type=int,
        default=None,
        help="Stop downloading after this many assets (default: no limit)",
    )
    p.add_argument(
        "--proxy-template",
        default=DEFAULT_PROXY_TEMPLATE,
        help="Indirection for cross-origin assets; {url} is the encoded target",
    )
    p.add_argument(
        "--no-proxy",
        action="store_true",
        help="Fetch cross-origin assets directly",
    )
    p.add_argument("--quiet", action="store_true", help="Hide the progress bar")
    p.add_argument("--verbose", action="store_true")


def _crawl_config(args: argparse.Namespace) -> CrawlConfig:
    return CrawlConfig(
        max_workers=int(args.workers),
        timeout_s=float(args.timeout),
        max_retries=int(args.max_retries),
        proxy_template=None if args.no_proxy else args.proxy_template,
        max_assets=args.max_assets,
    )


def _progress_sink(
    quiet: bool,
) -> tuple[Optional[Callable[[str], None]], Optional[tqdm]]:
    if quiet:
        return None, None
    bar = tqdm(desc="web2app", unit="step", leave=False)

    def on_progress(message: str) -> None:
        bar.update(1)
        bar.set_postfix_str(message[:80])

    return on_progress, bar


def _print_failures(failures: Iterable[FetchFailure]) -> None:
    for failure in failures:
        print(f"failed: {failure.url} ({failure.reason})", file=sys.stderr)


def _print_crawl(result: CrawlResult) -> None:
    for path, asset in result.assets.items():
        size = format_file_size(asset.size_bytes)
        print(f"{asset.status.value:<11} {size:>12}  {path}")
    print(
        f"crawl: pages={result.page_count} assets={result.asset_count} "
        f"total_size={format_file_size(result.total_size_bytes)} "
        f"failures={len(result.failures)}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="web2app")
    sub = parser.add_subparsers(dest="cmd", required=True)

    package_p = sub.add_parser(
        "package",
        help="Crawl a page and its assets and write an offline web-app ZIP",
    )
    _add_common_crawl_args(package_p)
    package_p.add_argument("--out", type=Path, required=True)
    package_p.add_argument("--app-name", default="Web to App")
    package_p.add_argument("--package-name", default=DEFAULT_PACKAGE_NAME)
    package_p.add_argument(
        "--no-all-pages",
        action="store_true",
        help="Record include_all_pages=false in the generated files",
    )
    package_p.add_argument(
        "--apk-config",
        action="store_true",
        help="Also write the Android build configuration (<App_Name>.apk)",
    )

    crawl_p = sub.add_parser("crawl", help="Crawl only and list the assets")
    _add_common_crawl_args(crawl_p)
    crawl_p.add_argument("--json", action="store_true", help="Print JSON")

    size_p = sub.add_parser("format-size", help="Format a byte count")
    size_p.add_argument("bytes", type=int)

    args = parser.parse_args(argv)

    if args.cmd == "format-size":
        try:
            print(format_file_size(args.bytes))
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    crawler = make_crawler(_crawl_config(args))
    on_progress, bar = _progress_sink(bool(args.quiet))

    if args.cmd == "crawl":
        try:
            result = crawler.crawl(args.url, on_progress)
        except InvalidSeedURL as e:
            print(str(e), file=sys.stderr)
            return 2
        finally:
            if bar is not None:
                bar.close()

        if args.json:
            print(json.dumps(result.summary(), indent=2, ensure_ascii=False))
        else:
            _print_crawl(result)
        _print_failures(result.failures)
        return 0

    if args.cmd == "package":
        app_cfg = AppConfig(
            app_name=args.app_name,
            website_url=args.url,
            package_name=args.package_name,
            include_all_pages=not bool(args.no_all_pages),
        )
        try:
            app_cfg.validate()
            archive = generate_archive(
                app_cfg,
                crawler=crawler,
                builder=ArchiveBuilder(),
                on_progress=on_progress,
            )
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
        finally:
            if bar is not None:
                bar.close()

        out_dir: Path = args.out
        zip_path = out_dir / archive.filename
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            zip_path.write_bytes(archive.archive_bytes)
            if args.apk_config:
                (out_dir / app_cfg.apk_filename).write_text(
                    build_apk_config(app_cfg, archive.total_size_bytes),
                    encoding="utf-8",
                    newline="\n",
                )
        except OSError as e:
            print(str(e), file=sys.stderr)
            return 2

        for warning in archive.warnings:
            print(f"warning: {warning}", file=sys.stderr)
        print(
            f"package: pages={archive.page_count} assets={archive.asset_count} "
            f"total_size={format_file_size(archive.total_size_bytes)} "
            f"archive={zip_path} ({format_file_size(archive.size_bytes)})"
        )
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
