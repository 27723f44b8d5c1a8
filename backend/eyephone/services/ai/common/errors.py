"""Map provider failures to user-facing messages and HTTP statuses.

Providers report failures as free text, so classification is substring
based. The order of checks matters: an authentication failure that also
mentions a payload is still reported as an API key problem.
"""

from __future__ import annotations

from dataclasses import dataclass

PAYLOAD_TOO_LARGE_MESSAGE = "Request payload too large. Gemini supports up to 100MB of images."
PARSE_FAILURE_MESSAGE = "Failed to parse AI response. Please try again."
QUOTA_MESSAGE = "API quota exceeded or billing issue"
GENERIC_MESSAGE = "AI service temporarily unavailable"

_API_KEY_MARKERS = ("API key", "authentication", "API_KEY_INVALID", "PERMISSION_DENIED")
_QUOTA_MARKERS = ("quota", "billing", "RESOURCE_EXHAUSTED")
# "Request En" catches truncated "Request Entity Too Large" bodies.
_PAYLOAD_MARKERS = ("request en", "413", "too large", "entity too large", "payload", "request size")


@dataclass(frozen=True)
class ErrorClassification:
    kind: str
    message: str
    status_code: int


def is_payload_too_large(message: str) -> bool:
    lowered = (message or "").lower()
    return any(marker in lowered for marker in _PAYLOAD_MARKERS)


def classify_error_message(message: str, *, provider_display: str = "Google") -> ErrorClassification:
    """Classify *message* into api_key / quota / payload_too_large / parse / other."""
    text = message or ""

    if any(marker in text for marker in _API_KEY_MARKERS):
        return ErrorClassification("api_key", f"{provider_display} API key not configured or invalid", 500)
    if any(marker in text for marker in _QUOTA_MARKERS):
        return ErrorClassification("quota", QUOTA_MESSAGE, 500)
    if is_payload_too_large(text):
        return ErrorClassification("payload_too_large", PAYLOAD_TOO_LARGE_MESSAGE, 413)
    if "JSON" in text:
        return ErrorClassification("parse", PARSE_FAILURE_MESSAGE, 500)
    if not text:
        return ErrorClassification("other", GENERIC_MESSAGE, 500)
    return ErrorClassification("other", f"Error: {text}", 500)


def batch_too_large_suggestion(image_count: int) -> str:
    return (
        f"You uploaded {image_count} images. Try uploading 3 or fewer images, or compress your "
        "images before uploading. Consider reducing image resolution or using JPEG compression."
    )
