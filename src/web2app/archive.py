from __future__ import annotations

import io
import logging
import posixpath
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone

from . import templates
from .content import Asset, CrawlResult
from .progress import ProgressCallback, ProgressReporter, as_reporter
from .sizes import format_file_size
from .urls import is_fetchable_url, relative_path, safe_filename_piece

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_NAME = "com.webtoapp.converter"

# Zip entries carry this timestamp regardless of when the archive is built.
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)
ZIP_FILE_MODE = 0o644

ENTRY_PAGE = "index.html"
MANIFEST = "manifest.json"
SERVICE_WORKER = "sw.js"
README = "README.md"
ICON_SIZES = (192, 512)
GENERATED_NAMES = (
    ENTRY_PAGE,
    MANIFEST,
    SERVICE_WORKER,
    README,
    *(f"icon-{size}.png" for size in ICON_SIZES),
)

_PACKAGE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)+$")


class AssetInsertionError(ValueError):
    """A crawled asset cannot be stored in the archive under its path."""


@dataclass
class AppConfig:
    app_name: str
    website_url: str
    package_name: str = DEFAULT_PACKAGE_NAME
    include_all_pages: bool = True

    def validate(self) -> None:
        if not self.app_name.strip():
            raise ValueError("App name is required")
        if not self.website_url.strip():
            raise ValueError("Website URL is required")
        if not is_fetchable_url(self.website_url.strip()):
            raise ValueError(f"Please enter a valid URL: {self.website_url}")
        if not _PACKAGE_NAME_RE.match(self.package_name):
            raise ValueError(f"Invalid package name: {self.package_name}")

    @property
    def safe_name(self) -> str:
        return safe_filename_piece(self.app_name)

    @property
    def archive_filename(self) -> str:
        return f"{self.safe_name}_website.zip"

    @property
    def apk_filename(self) -> str:
        return f"{self.safe_name}.apk"


@dataclass(frozen=True)
class Archive:
    archive_bytes: bytes
    total_size_bytes: int
    page_count: int
    asset_count: int
    filename: str
    warnings: tuple[str, ...] = field(default=())

    @property
    def size_bytes(self) -> int:
        return len(self.archive_bytes)


def check_archive_path(path: str) -> str:
    if not path:
        raise AssetInsertionError("empty archive path")
    if "\x00" in path:
        raise AssetInsertionError(f"NUL byte in archive path: {path!r}")
    if path.startswith("/") or "\\" in path:
        raise AssetInsertionError(f"not a relative POSIX path: {path}")
    normalized = posixpath.normpath(path)
    if (
        normalized in {".", ".."}
        or normalized.startswith("../")
        or path.endswith("/")
    ):
        raise AssetInsertionError(f"path escapes the archive: {path}")
    return normalized


def _relocated(path: str, taken: set[str]) -> str:
    stem, ext = posixpath.splitext(path)
    candidate = f"{stem}-site{ext}"
    n = 2
    while candidate in taken:
        candidate = f"{stem}-site-{n}{ext}"
        n += 1
    return candidate


def build_apk_config(
    config: AppConfig,
    total_size_bytes: int,
    generated_at: datetime | None = None,
) -> str:
    return templates.apk_config(
        app_name=config.app_name,
        package_name=config.package_name,
        website_url=config.website_url,
        include_all_pages=config.include_all_pages,
        total_size=format_file_size(total_size_bytes),
        generated_at=generated_at or datetime.now(timezone.utc),
    )


class ArchiveBuilder:
    """Assemble generated files and crawled assets into one ZIP archive.

    Entries are written in a fixed order with fixed timestamps, so two builds
    of the same crawl with the same ``generated_at`` are byte-identical.
    Assets that cannot be stored are skipped with a warning.
    """

    def __init__(
        self,
        *,
        generated_at: datetime | None = None,
        compress_level: int = 6,
    ) -> None:
        self.generated_at = generated_at
        self.compress_level = compress_level

    def _place_assets(
        self, result: CrawlResult
    ) -> tuple[list[tuple[str, Asset]], list[str]]:
        taken = set(GENERATED_NAMES)
        placed: list[tuple[str, Asset]] = []
        warnings: list[str] = []

        for path, asset in result.assets.items():
            try:
                arcname = check_archive_path(path)
            except AssetInsertionError as e:
                logger.warning("skipping asset %s: %s", asset.source_url or path, e)
                warnings.append(f"{path}: {e}")
                continue
            if arcname in taken:
                arcname = _relocated(arcname, taken)
                logger.debug("storing %s as %s", path, arcname)
            taken.add(arcname)
            placed.append((arcname, asset))

        return placed, warnings

    @staticmethod
    def _root_path(placed: list[tuple[str, Asset]], config: AppConfig) -> str:
        """Archive name of the crawled seed page, or the live URL if absent."""

        website_url = config.website_url.strip()
        seed_path = relative_path(website_url)
        for arcname, asset in placed:
            if asset.path == seed_path:
                return arcname
        return website_url

    def _write(self, zf: zipfile.ZipFile, name: str, data: bytes | str) -> None:
        info = zipfile.ZipInfo(name, date_time=ZIP_DATE_TIME)
        info.create_system = 3
        info.external_attr = ZIP_FILE_MODE << 16
        if isinstance(data, str):
            data = data.encode("utf-8")
        zf.writestr(
            info,
            data,
            compress_type=zipfile.ZIP_DEFLATED,
            compresslevel=self.compress_level,
        )

    def build(
        self,
        result: CrawlResult,
        config: AppConfig,
        on_progress: ProgressReporter | ProgressCallback | None = None,
    ) -> Archive:
        progress = as_reporter(on_progress)
        generated_at = self.generated_at or datetime.now(timezone.utc)

        progress("Processing downloaded content...")
        placed, warnings = self._place_assets(result)
        root_path = self._root_path(placed, config)

        generated: list[tuple[str, str]] = [
            (
                ENTRY_PAGE,
                templates.entry_page(
                    app_name=config.app_name,
                    website_url=config.website_url,
                    root_path=root_path,
                ),
            ),
            (
                MANIFEST,
                templates.web_manifest(
                    app_name=config.app_name,
                    package_name=config.package_name,
                    website_url=config.website_url,
                ),
            ),
            (
                SERVICE_WORKER,
                templates.service_worker(
                    [*GENERATED_NAMES, *(name for name, _ in placed)]
                ),
            ),
            (
                README,
                templates.readme(
                    app_name=config.app_name,
                    website_url=config.website_url,
                    include_all_pages=config.include_all_pages,
                    total_size=format_file_size(result.total_size_bytes),
                    page_count=result.page_count,
                    asset_count=result.asset_count,
                    generated_at=generated_at,
                ),
            ),
        ]
        generated.extend(
            (f"icon-{size}.png", templates.icon_svg(config.app_name, size))
            for size in ICON_SIZES
        )

        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            for name, text in generated:
                self._write(zf, name, text)

            progress("Adding website assets to ZIP...")
            for arcname, asset in placed:
                try:
                    self._write(zf, arcname, asset.content)
                except (ValueError, zipfile.LargeZipFile) as e:
                    logger.warning("failed to add asset %s: %s", arcname, e)
                    warnings.append(f"{arcname}: {e}")

            progress("Generating ZIP file...")

        return Archive(
            archive_bytes=buf.getvalue(),
            total_size_bytes=result.total_size_bytes,
            page_count=result.page_count,
            asset_count=result.asset_count,
            filename=config.archive_filename,
            warnings=tuple(warnings),
        )
