import logging
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from eyephone.api.v1.assessment import router as assessment_router
from eyephone.api.v1.status import router as status_router
from eyephone.core.config import APP_VERSION, get_settings
from eyephone.core.cors import build_cors_headers, methods_for_path
from eyephone.utils.alerting import alert_tracker
from eyephone.utils.rate_limit import check_assessment_rate, get_client_ip

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="EyePhone API",
    version=APP_VERSION,
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

STATIC_DIR = Path(__file__).resolve().parent / "static"
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

app.include_router(assessment_router, prefix="/api", tags=["assessment"])
app.include_router(status_router, prefix="/api", tags=["status"])


@app.on_event("startup")
async def _startup_checks():
    current = get_settings()
    errors = current.validate_required_config()
    if not errors:
        return
    environment = os.getenv("ENVIRONMENT", current.environment).strip().lower()
    if environment in {"production", "prod"}:
        raise RuntimeError("Configuration validation failed in production environment: " + "; ".join(errors))
    for error in errors:
        logger.warning("Configuration problem: %s", error)


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Hide internal details for 5xx unless explicitly enabled.
    if exc.status_code >= 500 and not get_settings().expose_error_details:
        return JSONResponse(status_code=exc.status_code, content={"error": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def _internal_error_response(exc: Exception) -> JSONResponse:
    message = str(exc) if get_settings().expose_error_details else "AI service temporarily unavailable"
    return JSONResponse(status_code=500, content={"error": message, "isMockResult": True})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    return _internal_error_response(exc)


def _page_headers() -> dict:
    return {
        "Cache-Control": "no-store",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Permissions-Policy": "camera=(self), microphone=(), geolocation=()",
        "Content-Security-Policy": (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data: blob:; "
            "media-src 'self' blob: mediastream:; "
            "connect-src 'self'"
        ),
    }


@app.middleware("http")
async def api_rate_limit_middleware(request: Request, call_next):
    decision = check_assessment_rate(request)
    if decision is not None and not decision.allowed:
        alert_tracker.record("RATE_LIMIT_BLOCKED", {"ip": get_client_ip(request), "path": request.url.path})
        return JSONResponse(
            status_code=429,
            content={"error": "Too Many Requests"},
            headers={"Retry-After": str(decision.retry_after)},
        )
    return await call_next(request)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not get_settings().security_headers_enabled:
        return response

    headers = response.headers
    if "X-Content-Type-Options" not in headers:
        headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in headers:
        headers["X-Frame-Options"] = "DENY"
    if "Referrer-Policy" not in headers:
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if "Permissions-Policy" not in headers:
        headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    return response


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    """Attach ALLOWED_ORIGIN-derived CORS headers to every /api response, errors included."""
    path = request.url.path
    if not path.startswith("/api/"):
        return await call_next(request)

    cors_headers = build_cors_headers(
        request.headers.get("origin"),
        get_settings().allowed_origins,
        methods=methods_for_path(path),
    )
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=cors_headers)

    try:
        response = await call_next(request)
    except Exception as exc:
        # Raised past the handlers; the error body still needs CORS headers.
        logger.exception("Unhandled exception")
        response = _internal_error_response(exc)
    response.headers.update(cors_headers)
    return response


@app.get("/")
async def capture_page():
    return FileResponse(STATIC_DIR / "index.html", headers=_page_headers())
