import base64
import io
import os
import random

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from PIL import Image

from eyephone.core.config import get_settings
from eyephone.utils.alerting import alert_tracker
from eyephone.utils.rate_limit import rate_limiter

BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:8000")

# Keys a developer shell might export; tests must not pick them up.
_PROVIDER_ENV = ("OPENAI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY", "GEMINI_API_KEY", "AI_ASSESSMENT_PROVIDER")


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch):
    # Tests mutate env vars; never leak a cached Settings instance across tests.
    for name in _PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AI_MOCK_FALLBACK_ENABLED", "false")
    get_settings.cache_clear()
    rate_limiter.reset()
    alert_tracker.reset()
    yield
    get_settings.cache_clear()
    rate_limiter.reset()
    alert_tracker.reset()


def make_jpeg(width: int = 128, height: int = 128, seed: int = 0) -> bytes:
    """Noise JPEG; noise keeps the encoded size well above the 1 KB floor."""
    rng = random.Random(seed)
    img = Image.frombytes("RGB", (width, height), rng.randbytes(width * height * 3))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=90)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def jpeg_b64(jpeg_bytes) -> str:
    return base64.b64encode(jpeg_bytes).decode("ascii")


@pytest.fixture
def mock_provider_env(monkeypatch):
    monkeypatch.setenv("AI_ASSESSMENT_PROVIDER", "mock")
    get_settings.cache_clear()


@pytest.fixture
def client():
    from eyephone.main import app

    with TestClient(app) as c:
        yield c


@pytest_asyncio.fixture
async def async_client():
    """In-process ASGI client; set USE_LIVE_SERVER=true to hit BASE_URL instead."""
    use_live_server = os.getenv("USE_LIVE_SERVER", "").strip().lower() in {"1", "true", "yes"}
    if use_live_server:
        async with httpx.AsyncClient(base_url=BASE_URL) as c:
            yield c
        return

    from eyephone.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
