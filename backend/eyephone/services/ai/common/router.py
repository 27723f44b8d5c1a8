"""AI Router: resolves provider + model for a scope from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eyephone.core.config import get_settings

from .providers import BaseProvider, get_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedConfig:
    """Final resolved provider + model for one call."""

    provider: BaseProvider
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: float


def model_for(provider_name: str) -> str:
    settings = get_settings()
    if provider_name == "gemini":
        return settings.ai_gemini_model
    if provider_name == "openai":
        return settings.ai_openai_model
    return ""


def resolve(scope: str, *, provider_name: str | None = None) -> ResolvedConfig:
    """Resolve provider + model for *scope*.

    ``provider_name`` pins the provider (the Gemini test endpoint does this);
    otherwise ``AI_ASSESSMENT_PROVIDER`` decides. Raises
    ``ProviderNotConfiguredError`` when the provider cannot be built.
    """
    settings = get_settings()
    name = (provider_name or settings.ai_assessment_provider or "gemini").lower().strip()

    provider = get_provider(name)
    model = model_for(name)
    logger.debug("Resolved scope=%s provider=%s model=%s", scope, name, model or "-")

    return ResolvedConfig(
        provider=provider,
        model=model,
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
        timeout_seconds=settings.ai_timeout_seconds,
    )
