"""OpenAI provider."""

from __future__ import annotations

import logging
import time

import httpx

from .base import BaseProvider, ImagePart, ProviderError, ProviderResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseProvider):
    name = "openai"
    display_name = "OpenAI"

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
        model = model or "gpt-4o"
        t0 = time.monotonic()

        content: list[dict] = [{"type": "text", "text": prompt}]
        for image in images or []:
            content.append({"type": "image_url", "image_url": {"url": image.data_url}})

        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                resp = await client.post(
                    f"{self._base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": model,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                        "messages": [{"role": "user", "content": content}],
                    },
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"OpenAI request failed: {exc}", provider=self.name) from exc

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error", {}).get("message", "")
            except (ValueError, AttributeError):
                detail = resp.text[:500]
            raise ProviderError(
                f"[{resp.status_code} {resp.reason_phrase}] {detail}".strip(),
                provider=self.name,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"] or ""
            usage = data.get("usage") or {}
        except ValueError as exc:
            raise ProviderError(
                f"OpenAI returned a non-JSON response body: {resp.text[:200]}",
                provider=self.name,
                status_code=resp.status_code,
            ) from exc
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ProviderError(f"OpenAI response has an unexpected shape: {exc!r}", provider=self.name) from exc
        elapsed = (time.monotonic() - t0) * 1000
        logger.debug("OpenAI %s answered in %.0fms (%d chars)", model, elapsed, len(text))

        return ProviderResult(
            raw_text=text,
            model=model,
            provider=self.name,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=round(elapsed, 2),
        )
