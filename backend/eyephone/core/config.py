from functools import lru_cache
import json
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SERVICE_NAME = "EyePhone API Service"
APP_VERSION = "1.0.0"
KNOWN_PROVIDERS = ("gemini", "openai", "mock")


def _parse_list_value(value: str) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw == "":
            return []
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except ValueError:
            pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )

    environment: str = Field(default="development", validation_alias=AliasChoices("ENVIRONMENT"))
    log_level: str = "INFO"
    docs_enabled: bool = True
    expose_error_details: bool = False

    openai_api_key: str = ""
    google_generative_ai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_GENERATIVE_AI_API_KEY", "GEMINI_API_KEY"),
    )

    # Raw comma separated list; "*" allows any origin.
    allowed_origin: str = Field(default="*", validation_alias=AliasChoices("ALLOWED_ORIGIN"))

    ai_assessment_provider: str = "gemini"
    ai_allowed_providers_raw: str = Field(
        default="gemini,openai,mock",
        validation_alias=AliasChoices("AI_ALLOWED_PROVIDERS"),
    )
    ai_gemini_model: str = Field(
        default="gemini-2.0-flash-exp",
        validation_alias=AliasChoices("AI_GEMINI_MODEL", "GEMINI_MODEL_NAME"),
    )
    ai_openai_model: str = "gpt-4o"
    ai_gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ai_openai_base_url: str = "https://api.openai.com/v1"
    ai_timeout_seconds: float = 60.0
    ai_temperature: float = 0.3
    ai_max_tokens: int = 4096
    ai_mock_fallback_enabled: bool = False
    ai_debug_store_raw: bool = False

    max_batch_images: int = 6
    max_batch_payload_bytes: int = 100 * 1024 * 1024
    max_image_bytes: int = 10 * 1024 * 1024
    min_image_bytes: int = 1024
    image_max_dimension: int = 1600
    image_jpeg_quality: int = 80

    rate_limit_api_enabled: bool = False
    rate_limit_api_per_min: int = 30
    trusted_proxy_cidrs_raw: str = Field(
        default="",
        validation_alias=AliasChoices("TRUSTED_PROXY_CIDRS"),
    )

    security_headers_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("SECURITY_HEADERS_ENABLED", "SECURE_HEADERS_ENABLED"),
    )

    @field_validator("ai_assessment_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value):
        if value is None:
            return "gemini"
        return str(value).strip().lower() or "gemini"

    @property
    def trusted_proxy_cidrs(self) -> list[str]:
        return _parse_list_value(self.trusted_proxy_cidrs_raw)

    @property
    def allowed_origins(self) -> list[str]:
        origins = [item.strip() for item in (self.allowed_origin or "*").split(",")]
        return [item for item in origins if item] or ["*"]

    @property
    def ai_allowed_providers(self) -> list[str]:
        """Allowlisted providers; ``mock`` is always permitted."""
        providers = [p.lower() for p in _parse_list_value(self.ai_allowed_providers_raw)]
        providers = [p for p in providers if p in KNOWN_PROVIDERS]
        if "mock" not in providers:
            providers.append("mock")
        return providers

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"production", "prod"}

    def provider_api_key(self, provider_name: str) -> str:
        if provider_name == "gemini":
            return self.google_generative_ai_api_key
        if provider_name == "openai":
            return self.openai_api_key
        return ""

    def validate_required_config(self) -> list[str]:
        errors: list[str] = []
        provider = self.ai_assessment_provider
        if provider not in KNOWN_PROVIDERS:
            errors.append(f"AI_ASSESSMENT_PROVIDER={provider!r} is not one of {', '.join(KNOWN_PROVIDERS)}")
        elif provider not in self.ai_allowed_providers:
            errors.append(f"AI_ASSESSMENT_PROVIDER={provider!r} is not in AI_ALLOWED_PROVIDERS")
        if provider == "gemini" and not self.google_generative_ai_api_key:
            errors.append("GOOGLE_GENERATIVE_AI_API_KEY is required for the gemini provider")
        if provider == "openai" and not self.openai_api_key:
            errors.append("OPENAI_API_KEY is required for the openai provider")
        if self.max_batch_images < 1:
            errors.append("MAX_BATCH_IMAGES must be at least 1")
        return errors


@lru_cache
def get_settings() -> Settings:
    return Settings()
