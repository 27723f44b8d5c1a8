import logging
import time
from collections import deque
from threading import Lock
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_THRESHOLDS = {
    "AI_PROVIDER_FAILED": 5,
    "AI_RESPONSE_INVALID": 5,
    "AI_PROVIDER_NOT_CONFIGURED": 1,
    "RATE_LIMIT_BLOCKED": 20,
}


class AlertTracker:
    """Counts events per action in a sliding window and logs ``ALERT`` lines."""

    def __init__(self, window_seconds: int, thresholds: dict[str, int]) -> None:
        self._window_seconds = window_seconds
        self._thresholds = thresholds
        self._buckets: dict[str, deque[float]] = {}
        self._lock = Lock()

    def record(self, action: str, metadata: Optional[dict] = None) -> bool:
        """Record one *action*; return True when an alert was emitted."""
        if action not in self._thresholds:
            return False
        limit = self._thresholds[action]
        now = time.monotonic()
        with self._lock:
            bucket = self._buckets.setdefault(action, deque())
            cutoff = now - self._window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            bucket.append(now)
            # Alert at threshold and at every multiple of threshold
            if len(bucket) % limit == 0:
                logger.warning(
                    "ALERT action=%s count=%s window_seconds=%s metadata=%s",
                    action,
                    len(bucket),
                    self._window_seconds,
                    metadata or {},
                )
                return True
        return False

    def count(self, action: str) -> int:
        with self._lock:
            return len(self._buckets.get(action, ()))

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


alert_tracker = AlertTracker(DEFAULT_WINDOW_SECONDS, DEFAULT_THRESHOLDS)
