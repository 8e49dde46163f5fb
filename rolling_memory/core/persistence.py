"""DebouncedSaver: fire-and-forget, coalescing writes to host storage."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class DebouncedSaver:
    """Coalesce repeated save requests per key into one delayed write.

    ``schedule(key)`` returns immediately.  The write callable runs on a
    ``threading.Timer`` once no new request has arrived for ``delay``
    seconds; ``delay <= 0`` writes inline.  Write errors are logged and
    dropped: callers never wait for, or hear about, durability.
    """

    def __init__(self, write: Callable[[str], None], delay: float = 0.5) -> None:
        self._write = write
        self.delay = delay
        self._pending: set[str] = set()
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def schedule(self, key: str) -> None:
        if self.delay <= 0:
            self._write_one(key)
            return
        with self._lock:
            self._pending.add(key)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Write everything pending now."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            keys = sorted(self._pending)
            self._pending.clear()
        for key in keys:
            self._write_one(key)

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._pending)

    def _write_one(self, key: str) -> None:
        try:
            self._write(key)
        except Exception as e:
            logger.error("Failed to persist %s: %s", key, e)
