"""Google Gemini provider (Generative Language REST API)."""

from __future__ import annotations

import logging
import time

import httpx

from .base import BaseProvider, ImagePart, ProviderError, ProviderResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"[{resp.status_code} {resp.reason_phrase}] {resp.text[:500]}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        status = error.get("status") or ""
        return f"[{resp.status_code} {resp.reason_phrase}] {status} {error.get('message', '')}".strip()
    return f"[{resp.status_code} {resp.reason_phrase}] {resp.text[:500]}"


class GeminiProvider(BaseProvider):
    name = "gemini"
    display_name = "Google"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    async def generate(
        self,
        prompt: str,
        *,
        images: list[ImagePart] | None = None,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 4096,
        timeout_seconds: float = 60.0,
    ) -> ProviderResult:
        model = model or "gemini-2.0-flash-exp"
        t0 = time.monotonic()

        parts: list[dict] = [{"text": prompt}]
        for image in images or []:
            parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.data_base64}})

        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                resp = await client.post(
                    f"{self._base_url}/models/{model}:generateContent",
                    headers={
                        "x-goog-api-key": self._api_key,
                        "Content-Type": "application/json",
                    },
                    json={
                        "contents": [{"role": "user", "parts": parts}],
                        "generationConfig": {
                            "temperature": temperature,
                            "maxOutputTokens": max_tokens,
                        },
                    },
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Gemini request failed: {exc}", provider=self.name) from exc

        if resp.status_code >= 400:
            raise ProviderError(_error_message(resp), provider=self.name, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(
                f"Gemini returned a non-JSON response body: {resp.text[:200]}",
                provider=self.name,
                status_code=resp.status_code,
            ) from exc
        elapsed = (time.monotonic() - t0) * 1000

        try:
            candidates = data.get("candidates") or []
            if not candidates:
                feedback = data.get("promptFeedback") or {}
                raise ProviderError(
                    f"Gemini returned no candidates (blockReason={feedback.get('blockReason', 'unknown')})",
                    provider=self.name,
                )
            content_parts = candidates[0].get("content", {}).get("parts", [])
            text = "".join(part.get("text", "") for part in content_parts)
            usage = data.get("usageMetadata") or {}
        except (AttributeError, TypeError) as exc:
            raise ProviderError(f"Gemini response has an unexpected shape: {exc}", provider=self.name) from exc
        logger.debug("Gemini %s answered in %.0fms (%d chars)", model, elapsed, len(text))

        return ProviderResult(
            raw_text=text,
            model=model,
            provider=self.name,
            prompt_tokens=usage.get("promptTokenCount", 0),
            completion_tokens=usage.get("candidatesTokenCount", 0),
            latency_ms=round(elapsed, 2),
        )
