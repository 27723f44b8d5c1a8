"""Per-client sliding window limits for the assessment endpoints.

Every assessment call fans out to a paid vision API, so POSTs to
``/api/assess-eyes*`` are counted per client IP when
``RATE_LIMIT_API_ENABLED`` is on.
"""

import ipaddress
import math
import time
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from fastapi import Request

from eyephone.core.config import get_settings

ASSESS_PATH_PREFIX = "/api/assess-eyes"
WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    hits: int
    retry_after: int = 0


class SlidingWindowRateLimiter:
    def __init__(self, *, max_buckets: int = 50_000, prune_interval_seconds: int = 60) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._max_buckets = max_buckets
        self._prune_every = max(1, int(prune_interval_seconds))
        self._pruned_at = 0.0

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        """Count one hit for *key* unless it is already at *limit* inside the window."""
        if limit <= 0 or window_seconds <= 0:
            return RateDecision(True, 0)
        now = time.monotonic()
        cutoff = now - window_seconds
        with self._lock:
            if len(self._hits) > self._max_buckets or now - self._pruned_at >= self._prune_every:
                self._drop_idle(cutoff)
                self._pruned_at = now

            hits = self._hits.setdefault(key, deque())
            _expire(hits, cutoff)
            if len(hits) >= limit:
                retry_after = max(1, math.ceil(hits[0] + window_seconds - now))
                return RateDecision(False, len(hits), retry_after)
            hits.append(now)
            return RateDecision(True, len(hits))

    def _drop_idle(self, cutoff: float) -> None:
        # Caller holds the lock.
        idle = [key for key, hits in self._hits.items() if not _expire(hits, cutoff)]
        for key in idle:
            del self._hits[key]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._pruned_at = 0.0


def _expire(hits: deque, cutoff: float) -> int:
    while hits and hits[0] <= cutoff:
        hits.popleft()
    return len(hits)


rate_limiter = SlidingWindowRateLimiter()


def _ip_in_networks(ip: str, networks: list[str]) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return ip in networks
    for entry in networks:
        try:
            if addr in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            if entry == ip:
                return True
    return False


def get_client_ip(request: Request, trusted_proxy_cidrs: Optional[list[str]] = None) -> Optional[str]:
    """Client IP for rate limiting.

    ``X-Real-IP`` and then the rightmost ``X-Forwarded-For`` entry are used
    only when the direct peer is inside ``TRUSTED_PROXY_CIDRS``.
    """
    peer = request.client.host if request.client else None
    trusted = get_settings().trusted_proxy_cidrs if trusted_proxy_cidrs is None else trusted_proxy_cidrs
    if not (peer and trusted and _ip_in_networks(peer, trusted)):
        return peer

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    forwarded = [p.strip() for p in (request.headers.get("x-forwarded-for") or "").split(",") if p.strip()]
    return forwarded[-1] if forwarded else peer


def check_assessment_rate(request: Request) -> Optional[RateDecision]:
    """Apply the per-IP assessment limit; ``None`` when the request is not limited."""
    settings = get_settings()
    if not settings.rate_limit_api_enabled:
        return None
    if request.method != "POST" or not request.url.path.startswith(ASSESS_PATH_PREFIX):
        return None
    ip = get_client_ip(request) or "unknown"
    return rate_limiter.check(f"assess:{ip}", settings.rate_limit_api_per_min, WINDOW_SECONDS)
