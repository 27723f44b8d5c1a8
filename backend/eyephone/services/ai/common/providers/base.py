"""Abstract base for all vision providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass


@dataclass(frozen=True)
class ImagePart:
    """One JPEG (or other) image forwarded to the model as inline data."""

    data_base64: str
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"


@dataclass(frozen=True)
class ProviderResult:
    """Immutable result returned by every provider."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0


class ProviderError(Exception):
    """Raised when a provider call fails; ``message`` keeps the upstream text."""

    def __init__(self, message: str, *, provider: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code


class ProviderNotConfiguredError(ProviderError):
    """The requested provider is unknown, not allowlisted or has no API key."""


class BaseProvider(abc.ABC):
    """Contract that every vision provider must implement."""

    name: str = "base"
    display_name: str = "AI"

    @abc.abstractmethod
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
        """Send *prompt* plus *images* and return a ``ProviderResult``."""
