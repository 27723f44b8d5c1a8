"""Mock provider: canned assessments for local development, tests and fallback."""

from __future__ import annotations

import json
import random
import time

from .base import BaseProvider, ImagePart, ProviderResult


class MockProvider(BaseProvider):
    name = "mock"
    display_name = "Mock"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng

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
        from eyephone.services.ai.assessment.mock_data import build_mock_assessment

        t0 = time.monotonic()
        images = images or []
        # base64 inflates by 4/3; sizes only steer the weighting.
        sizes = [len(image.data_base64) * 3 // 4 for image in images]
        payload = build_mock_assessment(
            image_count=max(len(images), 1),
            image_sizes=sizes,
            include_progression=len(images) > 1,
            rng=self._rng,
        )
        text = json.dumps(payload)
        elapsed = (time.monotonic() - t0) * 1000
        return ProviderResult(
            raw_text=text,
            model=model or "mock-vision-v1",
            provider=self.name,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=round(elapsed, 2),
        )
