"""Text of the files generated into every archive.

All functions are pure: the same arguments always render the same text, so
archives stay reproducible for a fixed generation timestamp.
"""

from __future__ import annotations

import html as html_lib
import json
import re
from datetime import datetime
from typing import Iterable

THEME_COLOR = "#0284c7"


def utc_iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def entry_page(*, app_name: str, website_url: str, root_path: str) -> str:
    """Viewer page that frames the archived root page."""

    name = html_lib.escape(app_name)
    src = html_lib.escape(root_path, quote=True)
    live = html_lib.escape(website_url, quote=True)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="apple-mobile-web-app-capable" content="yes">
  <meta name="apple-mobile-web-app-status-bar-style" content="default">
  <meta name="apple-mobile-web-app-title" content="{name}">
  <title>{name}</title>
  <link rel="manifest" href="manifest.json">
  <style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      height: 100vh;
      display: flex;
      flex-direction: column;
      background: #f8fafc;
    }}
    .app-header {{
      background: linear-gradient(135deg, {THEME_COLOR} 0%, #0369a1 100%);
      color: white;
      padding: 1rem;
      text-align: center;
    }}
    .app-header h1 {{ font-size: 1.2rem; font-weight: 600; }}
    .content-frame {{ flex: 1; display: flex; flex-direction: column; position: relative; }}
    .loading {{
      position: absolute;
      top: 50%;
      left: 50%;
      transform: translate(-50%, -50%);
      text-align: center;
    }}
    iframe {{ border: none; width: 100%; height: 100%; background: white; }}
    .offline-message {{ padding: 2rem; text-align: center; color: #64748b; display: none; }}
  </style>
</head>
<body>
  <div class="app-header">
    <h1>{name}</h1>
  </div>
  <div class="content-frame">
    <div class="loading"><p>Loading website content...</p></div>
    <div class="offline-message">
      <h3>Content Unavailable</h3>
      <p>Unable to load the archived page. The live site is at <a href="{live}">{live}</a>.</p>
    </div>
    <iframe
      src="{src}"
      onload="document.querySelector('.loading').style.display = 'none'"
      onerror="document.querySelector('.loading').style.display = 'none'; document.querySelector('.offline-message').style.display = 'block'"
    ></iframe>
  </div>
  <script>
    if ('serviceWorker' in navigator) {{
      navigator.serviceWorker.register('sw.js').catch(() => {{}});
    }}
  </script>
</body>
</html>
"""


def web_manifest(*, app_name: str, package_name: str, website_url: str) -> str:
    manifest = {
        "name": app_name,
        "short_name": app_name,
        "description": f"Mobile app for {website_url}",
        "package_name": package_name,
        "start_url": "./index.html",
        "display": "standalone",
        "orientation": "portrait-primary",
        "background_color": "#ffffff",
        "theme_color": THEME_COLOR,
        "categories": ["productivity", "utilities"],
        "icons": [
            {
                "src": "icon-192.png",
                "sizes": "192x192",
                "type": "image/png",
                "purpose": "maskable any",
            },
            {
                "src": "icon-512.png",
                "sizes": "512x512",
                "type": "image/png",
                "purpose": "maskable any",
            },
        ],
    }
    return json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"


def service_worker(cached_paths: Iterable[str]) -> str:
    """Cache-first worker pre-caching every file in the archive."""

    urls = ["./", *cached_paths]
    urls_js = json.dumps(urls, indent=2, ensure_ascii=False)
    return f"""const CACHE_NAME = 'app-cache-v1';
const urlsToCache = {urls_js};

self.addEventListener('install', event => {{
  event.waitUntil(
    caches.open(CACHE_NAME).then(cache => cache.addAll(urlsToCache))
  );
}});

self.addEventListener('fetch', event => {{
  event.respondWith(
    caches.match(event.request).then(response => response || fetch(event.request))
  );
}});
"""


def readme(
    *,
    app_name: str,
    website_url: str,
    include_all_pages: bool,
    total_size: str,
    page_count: int,
    asset_count: int,
    generated_at: datetime,
) -> str:
    return "\n".join(
        [
            f"# {app_name}",
            "",
            "Generated by web2app",
            "",
            "## Website Information",
            f"- **Source URL:** {website_url}",
            f"- **Total Size:** {total_size}",
            f"- **Pages Crawled:** {page_count}",
            f"- **Assets Downloaded:** {asset_count}",
            f"- **Include All Pages:** {'Yes' if include_all_pages else 'No'}",
            "",
            "## Installation Instructions",
            "",
            "### As a Web App",
            "1. Extract this ZIP file",
            "2. Open `index.html` in a web browser",
            "",
            "### Deploy to Web Server",
            "1. Extract all files to your web server",
            "2. Access via your domain",
            "3. The app will work offline after first visit",
            "",
            "### Mobile Installation",
            "1. Open the website on a mobile device",
            "2. Add to home screen when prompted",
            "",
            "## Files Included",
            "- `index.html` - Main application file",
            "- `manifest.json` - Web app manifest",
            "- `sw.js` - Service worker for offline support",
            "- Downloaded website assets and pages",
            "",
            f"Generated on: {utc_iso(generated_at)}",
            "",
        ]
    )


def icon_svg(app_name: str, size: int) -> str:
    """Placeholder icon: the app's initial on a square in the theme color."""

    initial = html_lib.escape(app_name.strip()[:1].upper() or "W")
    font_size = size // 2
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" '
        f'viewBox="0 0 {size} {size}">\n'
        f'  <rect width="{size}" height="{size}" fill="{THEME_COLOR}"/>\n'
        f'  <text x="{size // 2}" y="{size // 2 + font_size // 3}" '
        f'text-anchor="middle" fill="white" font-family="Arial" '
        f'font-size="{font_size}" font-weight="bold">{initial}</text>\n'
        "</svg>\n"
    )


def apk_config(
    *,
    app_name: str,
    package_name: str,
    website_url: str,
    include_all_pages: bool,
    total_size: str,
    generated_at: datetime,
) -> str:
    project = re.sub(r"\s+", "", app_name)
    return "\n".join(
        [
            "# Android APK Configuration",
            "# Generated by web2app",
            "",
            f"app_name={app_name}",
            f"package_name={package_name}",
            f"website_url={website_url}",
            f"include_all_pages={'true' if include_all_pages else 'false'}",
            f"total_size={total_size}",
            f"generation_date={utc_iso(generated_at)}",
            "",
            "# A build system turns this file into an Android APK with:",
            "# - WebView integration",
            "# - Offline support",
            "# - Mobile-optimized interface",
            "",
            "# Build Commands (example):",
            f'# cordova create {project} {package_name} "{app_name}"',
            f"# cd {project}",
            "# cordova platform add android",
            "# cordova build android",
            "",
        ]
    )
