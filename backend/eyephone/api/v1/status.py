"""Service status endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from eyephone.core.config import APP_VERSION, SERVICE_NAME, get_settings
from eyephone.services.ai.assessment.prompts import GEMINI_TEST_PROMPT
from eyephone.services.ai.common import router as ai_router
from eyephone.services.ai.common.audit import log_ai_run
from eyephone.services.ai.common.providers import ProviderError

logger = logging.getLogger(__name__)

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    settings = get_settings()
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": APP_VERSION,
        "timestamp": _now_iso(),
        "provider": settings.ai_assessment_provider,
        "env_keys_present": {
            "OPENAI_API_KEY": bool(settings.openai_api_key),
            "GOOGLE_GENERATIVE_AI_API_KEY": bool(settings.google_generative_ai_api_key),
        },
    }


@router.get("/test-gemini")
async def test_gemini():
    """Send a fixed test prompt to Gemini and report whether it answered."""
    settings = get_settings()
    if not settings.google_generative_ai_api_key:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "GOOGLE_GENERATIVE_AI_API_KEY not configured",
                "message": "Please add your Google API key to environment variables",
            },
        )

    try:
        config = ai_router.resolve("connectivity_check", provider_name="gemini")
        result = await config.provider.generate(
            GEMINI_TEST_PROMPT,
            model=config.model,
            temperature=0.0,
            max_tokens=64,
            timeout_seconds=config.timeout_seconds,
        )
    except ProviderError as exc:
        logger.error("Gemini connectivity check failed: %s", exc.message)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": exc.message or "Unknown error",
                "details": repr(exc),
            },
        )

    log_ai_run(scope="connectivity_check", provider_result=result, prompt_text=GEMINI_TEST_PROMPT)
    return {
        "success": True,
        "message": "Gemini API connection successful",
        "model": result.model,
        "response": result.raw_text,
        "timestamp": _now_iso(),
    }
