"""Provider factory: returns the configured provider or raises when it cannot be used."""

from __future__ import annotations

import logging

from eyephone.core.config import get_settings

from .base import BaseProvider, ImagePart, ProviderError, ProviderNotConfiguredError, ProviderResult
from .mock import MockProvider

logger = logging.getLogger(__name__)

__all__ = [
    "get_provider",
    "BaseProvider",
    "ImagePart",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderResult",
    "MockProvider",
    "PROVIDER_DISPLAY_NAMES",
]

PROVIDER_DISPLAY_NAMES = {"gemini": "Google", "openai": "OpenAI", "mock": "Mock"}


def get_provider(provider_name: str) -> BaseProvider:
    """Return a provider instance for *provider_name*.

    Raises ``ProviderNotConfiguredError`` when the provider is unknown, not
    allowlisted or has no API key.
    """
    settings = get_settings()
    name = provider_name.lower().strip()
    display = PROVIDER_DISPLAY_NAMES.get(name, name or "AI")

    if name not in settings.ai_allowed_providers:
        logger.warning("Provider %r not in allowlist", name)
        raise ProviderNotConfiguredError(f"Provider {name!r} is not enabled", provider=name)

    if name == "mock":
        return MockProvider()

    if name == "gemini":
        if not settings.google_generative_ai_api_key:
            logger.warning("GOOGLE_GENERATIVE_AI_API_KEY not set")
            raise ProviderNotConfiguredError(f"{display} API key not configured", provider=name)
        from .gemini import GeminiProvider

        return GeminiProvider(
            api_key=settings.google_generative_ai_api_key,
            base_url=settings.ai_gemini_base_url,
        )

    if name == "openai":
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY not set")
            raise ProviderNotConfiguredError(f"{display} API key not configured", provider=name)
        from .openai import OpenAIProvider

        return OpenAIProvider(
            api_key=settings.openai_api_key,
            base_url=settings.ai_openai_base_url,
        )

    logger.warning("Unknown provider %r", name)
    raise ProviderNotConfiguredError(f"Unknown provider {name!r}", provider=name)
