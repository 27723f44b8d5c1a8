"""Eye assessment endpoints: single photo and batch."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from eyephone.core.config import get_settings
from eyephone.core.image_processing import (
    ImageDecodeError,
    PreparedImage,
    check_upload_size,
    decode_base64_image,
    is_image,
    prepare_image,
)
from eyephone.services.ai.assessment.contracts import AssessRequest, BatchAssessRequest
from eyephone.services.ai.assessment.service import (
    AssessmentError,
    assess_batch,
    assess_single,
    resolve_provider,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


def _validation_details(exc: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()[:5])


async def _prepare(content: bytes, *, filename: Optional[str] = None) -> PreparedImage:
    settings = get_settings()
    return await run_in_threadpool(
        prepare_image,
        content,
        max_dimension=settings.image_max_dimension,
        quality=settings.image_jpeg_quality,
        filename=filename,
    )


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/assess-eyes", summary="Assess one eye photo")
async def assess_eyes(request: Request):
    """Accept JSON (base64 ``image``) or multipart form (``image`` file) plus optional age/notes."""
    settings = get_settings()
    content_type = request.headers.get("content-type", "")

    child_age: Optional[str] = None
    additional_notes: Optional[str] = None
    filename: Optional[str] = None
    raw: Optional[bytes] = None
    encoded: Optional[str] = None

    if "application/json" in content_type:
        body = await _read_json(request)
        if not isinstance(body, dict):
            return _error(400, "Invalid JSON body")
        try:
            parsed = AssessRequest.model_validate(body)
        except ValidationError as exc:
            return _error(400, "Invalid request", details=_validation_details(exc))
        if not parsed.image:
            return _error(400, "No image provided")
        encoded = parsed.image
        child_age = parsed.child_age
        additional_notes = parsed.additional_notes
    else:
        form = await request.form()
        image = form.get("image")
        if image is None or image == "":
            return _error(400, "No image provided")
        if isinstance(image, UploadFile):
            filename = image.filename
            if not is_image(image.content_type, image.filename):
                return _error(400, "File is not a valid image")
            raw = await image.read()
        else:
            encoded = str(image)
        child_age = (str(form.get("childAge") or "").strip()) or None
        additional_notes = (str(form.get("additionalNotes") or "").strip()) or None

    # Provider and key are checked before the image bytes are inspected.
    try:
        config = resolve_provider("assessment")
    except AssessmentError as exc:
        logger.error("Assessment unavailable: %s", exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    try:
        if raw is None:
            raw, _ = decode_base64_image(encoded)
        check_upload_size(
            len(raw),
            index=1,
            min_bytes=settings.min_image_bytes,
            max_bytes=settings.max_image_bytes,
        )
    except ImageDecodeError as exc:
        return _error(400, str(exc))

    prepared = await _prepare(raw, filename=filename)

    try:
        outcome = await assess_single(
            prepared,
            child_age=child_age,
            additional_notes=additional_notes,
            config=config,
        )
    except AssessmentError as exc:
        logger.error("Assessment failed: %s", exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    logger.info("Assessment completed (mock=%s) in %dms", outcome.is_mock, outcome.processing_time_ms)
    return JSONResponse(content=outcome.payload)


@router.post("/assess-eyes-batch", summary="Assess 1-6 eye photos together")
async def assess_eyes_batch(request: Request):
    """JSON ``images`` array of base64 strings / data URLs plus optional childAge, gender, notes."""
    started_at = time.monotonic()
    settings = get_settings()
    too_large = f"Request payload too large. Batch requests support up to {settings.max_batch_payload_bytes // (1024 * 1024)}MB of images."

    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > settings.max_batch_payload_bytes:
        return _error(413, too_large)

    body = await _read_json(request)
    images = body.get("images") if isinstance(body, dict) else None
    if not isinstance(images, list):
        return _error(400, "No images array provided")

    max_images = settings.max_batch_images
    if len(images) == 0 or len(images) > max_images:
        return _error(400, f"Please provide between 1 and {max_images} images")

    encoded_size = sum(len(item) for item in images if isinstance(item, str))
    if encoded_size > settings.max_batch_payload_bytes:
        return _error(413, too_large)

    try:
        parsed = BatchAssessRequest.model_validate(body)
    except ValidationError as exc:
        return _error(400, "Invalid request", details=_validation_details(exc))

    try:
        config = resolve_provider("assessment_batch")
    except AssessmentError as exc:
        logger.error("Batch assessment unavailable: %s", exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(processing_time_ms=_elapsed_ms(started_at)),
        )

    logger.info("Processing batch of %d images", len(parsed.images))

    raw_images: list[bytes] = []
    try:
        for index, item in enumerate(parsed.images, start=1):
            raw, _ = decode_base64_image(item)
            check_upload_size(
                len(raw),
                index=index,
                min_bytes=settings.min_image_bytes,
                max_bytes=settings.max_image_bytes,
            )
            raw_images.append(raw)
    except ImageDecodeError as exc:
        return _error(400, str(exc))

    prepared = [await _prepare(raw) for raw in raw_images]

    try:
        outcome = await assess_batch(
            prepared,
            child_age=parsed.child_age,
            gender=parsed.gender,
            additional_notes=parsed.additional_notes,
            started_at=started_at,
            config=config,
        )
    except AssessmentError as exc:
        logger.error("Batch assessment failed: %s", exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(processing_time_ms=_elapsed_ms(started_at)),
        )

    return JSONResponse(content=outcome.payload)
