"""Eye assessment service: prompt → provider → JSON → schema, with mock fallback."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from eyephone.core.config import get_settings
from eyephone.core.image_processing import PreparedImage
from eyephone.utils.alerting import alert_tracker

from ..common import router as ai_router
from ..common.audit import log_ai_run
from ..common.errors import (
    PARSE_FAILURE_MESSAGE,
    batch_too_large_suggestion,
    classify_error_message,
)
from ..common.json_tools import extract_json_object
from ..common.providers import PROVIDER_DISPLAY_NAMES, ImagePart, ProviderError, ProviderNotConfiguredError
from ..common.providers.base import ProviderResult
from .contracts import AssessmentResult
from .mock_data import build_mock_assessment
from .prompts import build_batch_prompt, build_single_prompt

logger = logging.getLogger(__name__)

INVALID_RESPONSE_MESSAGE = "AI response did not match the expected assessment format"


class AssessmentError(Exception):
    """A failed assessment, already mapped to a client message and status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        kind: str = "other",
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind
        self.details = details
        self.suggestion = suggestion
        self.technical_details = technical_details

    def to_body(self, *, processing_time_ms: Optional[int] = None) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        if self.suggestion:
            body["suggestion"] = self.suggestion
        if self.technical_details:
            body["technicalDetails"] = self.technical_details
        body["isMockResult"] = True
        if processing_time_ms is not None:
            body["processingTimeMs"] = processing_time_ms
        return body


@dataclass
class AssessmentServiceResult:
    """Result of one assessment run including metadata."""

    payload: dict[str, Any]
    result: AssessmentResult
    is_mock: bool
    processing_time_ms: int
    provider_result: Optional[ProviderResult] = None
    audit: dict[str, Any] = field(default_factory=dict)


def _elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


def parse_assessment(raw_text: str) -> AssessmentResult:
    """Extract and validate an assessment from model output.

    Raises ``AssessmentError`` (kind ``parse`` or ``invalid``).
    """
    parsed = extract_json_object(raw_text)
    if parsed is None:
        logger.error("No JSON found in model response: %s", raw_text[:200])
        raise AssessmentError(PARSE_FAILURE_MESSAGE, kind="parse", details="No valid JSON found in response")
    try:
        return AssessmentResult.model_validate(parsed)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()[:10]
        )
        logger.warning("Model response failed schema validation: %s", problems)
        raise AssessmentError(INVALID_RESPONSE_MESSAGE, kind="invalid", details=problems) from exc


def _mock_fallback(
    error: AssessmentError,
    *,
    image_count: int,
    image_sizes: list[int],
    include_progression: bool,
    rng: Optional[random.Random],
) -> AssessmentResult:
    logger.info("Falling back to mock assessment after %s failure", error.kind)
    payload = build_mock_assessment(
        image_count=image_count,
        image_sizes=image_sizes,
        include_progression=include_progression,
        rng=rng,
    )
    return AssessmentResult.model_validate(payload)


def resolve_provider(scope: str) -> ai_router.ResolvedConfig:
    """Resolve the provider for *scope*; a missing key becomes a 500 ``AssessmentError``."""
    try:
        return ai_router.resolve(scope)
    except ProviderNotConfiguredError as exc:
        alert_tracker.record("AI_PROVIDER_NOT_CONFIGURED", {"provider": exc.provider})
        raise AssessmentError(exc.message, kind="not_configured") from exc


async def _run_assessment(
    *,
    scope: str,
    prompt: str,
    images: list[PreparedImage],
    include_progression: bool,
    started_at: float,
    config: Optional[ai_router.ResolvedConfig] = None,
    rng: Optional[random.Random] = None,
) -> AssessmentServiceResult:
    settings = get_settings()

    if config is None:
        config = resolve_provider(scope)

    provider_name = config.provider.name
    display = PROVIDER_DISPLAY_NAMES.get(provider_name, provider_name)
    parts = [ImagePart(data_base64=image.base64, mime_type=image.content_type) for image in images]
    image_sizes = [image.original_size for image in images]

    logger.info("Sending %d image(s) to %s (scope=%s)", len(parts), provider_name, scope)

    provider_result: Optional[ProviderResult] = None
    try:
        try:
            provider_result = await config.provider.generate(
                prompt,
                images=parts,
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                timeout_seconds=config.timeout_seconds,
            )
        except ProviderError as exc:
            alert_tracker.record("AI_PROVIDER_FAILED", {"provider": provider_name, "status": exc.status_code})
            logger.error("%s call failed: %s", provider_name, exc.message)
            classification = classify_error_message(exc.message, provider_display=display)
            if classification.kind == "payload_too_large" and scope == "assessment_batch":
                raise AssessmentError(
                    "Images too large for batch processing",
                    status_code=413,
                    kind=classification.kind,
                    details=(
                        "The combined size of your images exceeds the API limit (100MB). The vision API "
                        "cannot process images this large in a single request."
                    ),
                    suggestion=batch_too_large_suggestion(len(images)),
                    technical_details=exc.message,
                ) from exc
            raise AssessmentError(
                classification.message,
                status_code=classification.status_code,
                kind=classification.kind,
                details=exc.message[:300],
            ) from exc

        logger.debug("%s raw response: %s", provider_name, provider_result.raw_text[:200])
        try:
            result = parse_assessment(provider_result.raw_text)
        except AssessmentError:
            alert_tracker.record("AI_RESPONSE_INVALID", {"provider": provider_name})
            raise
    except AssessmentError as error:
        if not settings.ai_mock_fallback_enabled or error.status_code == 413:
            raise
        result = _mock_fallback(
            error,
            image_count=len(images),
            image_sizes=image_sizes,
            include_progression=include_progression,
            rng=rng,
        )
        payload = result.to_response(isMockResult=True, errorMessage=error.message)
        return AssessmentServiceResult(
            payload=payload,
            result=result,
            is_mock=True,
            processing_time_ms=_elapsed_ms(started_at),
            provider_result=provider_result,
        )

    audit = log_ai_run(
        scope=scope,
        provider_result=provider_result,
        prompt_text=prompt,
        extra_meta={"images": len(images), "risk_level": result.risk_level},
    )
    is_mock = provider_name == "mock"
    return AssessmentServiceResult(
        payload=result.to_response(isMockResult=is_mock),
        result=result,
        is_mock=is_mock,
        processing_time_ms=_elapsed_ms(started_at),
        provider_result=provider_result,
        audit=audit,
    )


async def assess_single(
    image: PreparedImage,
    *,
    child_age: Optional[str] = None,
    additional_notes: Optional[str] = None,
    started_at: Optional[float] = None,
    config: Optional[ai_router.ResolvedConfig] = None,
    rng: Optional[random.Random] = None,
) -> AssessmentServiceResult:
    """Assess one photo. Raises ``AssessmentError`` on failure."""
    started_at = started_at if started_at is not None else time.monotonic()
    prompt = build_single_prompt(child_age=child_age, additional_notes=additional_notes)
    return await _run_assessment(
        scope="assessment",
        prompt=prompt,
        images=[image],
        include_progression=False,
        started_at=started_at,
        config=config,
        rng=rng,
    )


async def assess_batch(
    images: list[PreparedImage],
    *,
    child_age: Optional[int] = None,
    gender: Optional[str] = None,
    additional_notes: Optional[str] = None,
    started_at: Optional[float] = None,
    config: Optional[ai_router.ResolvedConfig] = None,
    rng: Optional[random.Random] = None,
) -> AssessmentServiceResult:
    """Assess 1..N photos together; adds ``imagesAnalyzed`` and ``processingTimeMs``."""
    started_at = started_at if started_at is not None else time.monotonic()
    prompt = build_batch_prompt(
        len(images),
        child_age=child_age,
        gender=gender,
        additional_notes=additional_notes,
    )
    outcome = await _run_assessment(
        scope="assessment_batch",
        prompt=prompt,
        images=images,
        include_progression=len(images) > 1,
        started_at=started_at,
        config=config,
        rng=rng,
    )
    outcome.payload["imagesAnalyzed"] = len(images)
    outcome.payload["processingTimeMs"] = outcome.processing_time_ms
    logger.info("Batch assessment of %d image(s) completed in %dms", len(images), outcome.processing_time_ms)
    return outcome
