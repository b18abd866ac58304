from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class ProgressReporter:
    """Serialize progress messages to a caller-supplied callback.

    Messages are informational only. A callback that raises is logged and
    the crawl carries on.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._lock = threading.Lock()

    def __call__(self, message: str) -> None:
        logger.debug("progress: %s", message)
        if self._callback is None:
            return
        with self._lock:
            try:
                self._callback(message)
            except Exception:
                logger.exception("progress callback failed for %r", message)


def as_reporter(
    on_progress: ProgressReporter | ProgressCallback | None,
) -> ProgressReporter:
    if isinstance(on_progress, ProgressReporter):
        return on_progress
    return ProgressReporter(on_progress)
