"""CORS headers derived from ``ALLOWED_ORIGIN``.

The allow-list is fixed per deployment, so instead of Starlette's
``CORSMiddleware`` (which omits the header for unknown origins) every API
response carries an explicit ``Access-Control-Allow-Origin``: ``*``, the
request origin when listed, or the first listed origin.
"""

from __future__ import annotations

from typing import Optional

CORS_MAX_AGE = "86400"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
ASSESS_METHODS = "POST, OPTIONS"
STATUS_METHODS = "GET, OPTIONS"


def resolve_allowed_origin(origin: Optional[str], allowed_origins: list[str]) -> str:
    if not allowed_origins or "*" in allowed_origins:
        return "*"
    if origin and origin in allowed_origins:
        return origin
    return allowed_origins[0]


def build_cors_headers(
    origin: Optional[str],
    allowed_origins: list[str],
    *,
    methods: str = ASSESS_METHODS,
) -> dict[str, str]:
    allow_origin = resolve_allowed_origin(origin, allowed_origins)
    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
    }
    if allow_origin != "*":
        headers["Vary"] = "Origin"
    return headers


def methods_for_path(path: str) -> str:
    if path.startswith("/api/assess-eyes"):
        return ASSESS_METHODS
    return STATUS_METHODS
