"""web2app core library.

This package crawls a single web page together with the stylesheets, scripts,
images and fonts it references, and packages the result into a reproducible
offline web-app ZIP (entry page, manifest, service worker, readme, icons).
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
