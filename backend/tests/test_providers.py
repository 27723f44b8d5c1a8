"""Provider factory, router and the REST providers against a mocked transport."""

import asyncio
import json
import os
import random
import unittest
from unittest.mock import patch

import httpx

from eyephone.core.config import get_settings
from eyephone.services.ai.assessment.contracts import AssessmentResult
from eyephone.services.ai.common.providers import (
    ImagePart,
    MockProvider,
    ProviderError,
    ProviderNotConfiguredError,
    get_provider,
)
from eyephone.services.ai.common.providers.gemini import GeminiProvider
from eyephone.services.ai.common.providers.openai import OpenAIProvider

IMAGE = ImagePart(data_base64="aGVsbG8=", mime_type="image/jpeg")


class ProviderFactoryTests(unittest.TestCase):
    def setUp(self):
        get_settings.cache_clear()

    def tearDown(self):
        get_settings.cache_clear()

    def test_gemini_without_key_raises(self):
        with patch.dict(os.environ, {"GOOGLE_GENERATIVE_AI_API_KEY": ""}):
            get_settings.cache_clear()
            with self.assertRaises(ProviderNotConfiguredError) as ctx:
                get_provider("gemini")
        self.assertEqual(ctx.exception.message, "Google API key not configured")
        self.assertEqual(ctx.exception.provider, "gemini")

    def test_openai_without_key_raises(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": ""}):
            get_settings.cache_clear()
            with self.assertRaises(ProviderNotConfiguredError) as ctx:
                get_provider("openai")
        self.assertEqual(ctx.exception.message, "OpenAI API key not configured")

    def test_gemini_with_key(self):
        with patch.dict(os.environ, {"GOOGLE_GENERATIVE_AI_API_KEY": "g-key"}):
            get_settings.cache_clear()
            provider = get_provider("gemini")
        self.assertIsInstance(provider, GeminiProvider)

    def test_gemini_api_key_alias(self):
        with patch.dict(os.environ, {"GEMINI_API_KEY": "alias-key"}):
            get_settings.cache_clear()
            self.assertEqual(get_settings().google_generative_ai_api_key, "alias-key")
            self.assertIsInstance(get_provider("gemini"), GeminiProvider)

    def test_openai_with_key(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}):
            get_settings.cache_clear()
            provider = get_provider("openai")
        self.assertIsInstance(provider, OpenAIProvider)

    def test_mock_always_allowed(self):
        with patch.dict(os.environ, {"AI_ALLOWED_PROVIDERS": "gemini"}):
            get_settings.cache_clear()
            self.assertIsInstance(get_provider("mock"), MockProvider)

    def test_not_allowlisted_raises(self):
        with patch.dict(os.environ, {"AI_ALLOWED_PROVIDERS": "gemini,mock", "OPENAI_API_KEY": "sk-test"}):
            get_settings.cache_clear()
            with self.assertRaises(ProviderNotConfiguredError):
                get_provider("openai")

    def test_unknown_provider_raises(self):
        with self.assertRaises(ProviderNotConfiguredError):
            get_provider("claude")


class RouterTests(unittest.TestCase):
    def setUp(self):
        get_settings.cache_clear()

    def tearDown(self):
        get_settings.cache_clear()

    def test_resolve_uses_configured_provider_and_model(self):
        from eyephone.services.ai.common.router import resolve

        env = {"AI_ASSESSMENT_PROVIDER": "gemini", "GOOGLE_GENERATIVE_AI_API_KEY": "k", "GEMINI_MODEL_NAME": "gemini-1.5-pro"}
        with patch.dict(os.environ, env):
            get_settings.cache_clear()
            config = resolve("assessment")
        self.assertEqual(config.provider.name, "gemini")
        self.assertEqual(config.model, "gemini-1.5-pro")
        self.assertEqual(config.temperature, 0.3)

    def test_resolve_pinned_provider(self):
        from eyephone.services.ai.common.router import resolve

        with patch.dict(os.environ, {"AI_ASSESSMENT_PROVIDER": "openai", "GOOGLE_GENERATIVE_AI_API_KEY": "k"}):
            get_settings.cache_clear()
            config = resolve("connectivity_check", provider_name="gemini")
        self.assertEqual(config.provider.name, "gemini")

    def test_provider_name_normalized(self):
        with patch.dict(os.environ, {"AI_ASSESSMENT_PROVIDER": "  MOCK "}):
            get_settings.cache_clear()
            self.assertEqual(get_settings().ai_assessment_provider, "mock")


class MockProviderTests(unittest.TestCase):
    def test_output_validates(self):
        provider = MockProvider(rng=random.Random(0))
        result = asyncio.run(provider.generate("prompt", images=[IMAGE]))
        self.assertEqual(result.provider, "mock")
        self.assertEqual(result.model, "mock-vision-v1")
        parsed = AssessmentResult.model_validate_json(result.raw_text)
        self.assertIsNone(parsed.progression_analysis)

    def test_multiple_images_include_progression(self):
        provider = MockProvider(rng=random.Random(0))
        result = asyncio.run(provider.generate("prompt", images=[IMAGE, IMAGE], model="custom-model"))
        self.assertEqual(result.model, "custom-model")
        self.assertIn("progressionAnalysis", json.loads(result.raw_text))


def _gemini_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "candidates": [{"content": {"parts": [{"text": '{"riskLevel": '}, {"text": '"Low Risk"}'}]}}],
            "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 5},
        },
    )


class GeminiProviderTests(unittest.TestCase):
    def test_request_shape_and_text_join(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return _gemini_ok(request)

        provider = GeminiProvider("g-key", base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(handler))
        result = asyncio.run(
            provider.generate("look", images=[IMAGE], model="gemini-2.0-flash-exp", temperature=0.1, max_tokens=100)
        )

        self.assertEqual(seen["url"], "https://gemini.test/v1beta/models/gemini-2.0-flash-exp:generateContent")
        self.assertEqual(seen["key"], "g-key")
        parts = seen["body"]["contents"][0]["parts"]
        self.assertEqual(parts[0], {"text": "look"})
        self.assertEqual(parts[1], {"inline_data": {"mime_type": "image/jpeg", "data": "aGVsbG8="}})
        self.assertEqual(seen["body"]["generationConfig"], {"temperature": 0.1, "maxOutputTokens": 100})
        self.assertEqual(result.raw_text, '{"riskLevel": "Low Risk"}')
        self.assertEqual(result.prompt_tokens, 12)
        self.assertEqual(result.completion_tokens, 5)

    def test_http_error_carries_status_text(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"error": {"code": 400, "status": "INVALID_ARGUMENT", "message": "API key not valid."}},
            )

        provider = GeminiProvider("bad", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("INVALID_ARGUMENT", ctx.exception.message)
        self.assertIn("API key not valid", ctx.exception.message)

    def test_413_non_json_body(self):
        def handler(request):
            return httpx.Response(413, text="Request Entity Too Large")

        provider = GeminiProvider("k", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertIn("413", ctx.exception.message)

    def test_no_candidates(self):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        provider = GeminiProvider("k", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertIn("SAFETY", ctx.exception.message)

    def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        provider = GeminiProvider("k", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertIn("Gemini request failed", ctx.exception.message)

    def test_non_json_success_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>upstream proxy page</html>")

        provider = GeminiProvider("k", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertEqual(ctx.exception.status_code, 200)
        self.assertIn("non-JSON", ctx.exception.message)

    def test_unexpected_candidate_shape(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": ["not-an-object"]})

        provider = GeminiProvider("k", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertIn("unexpected shape", ctx.exception.message)


class OpenAIProviderTests(unittest.TestCase):
    def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": '{"riskLevel": "High Risk"}'}}],
                    "usage": {"prompt_tokens": 30, "completion_tokens": 8},
                },
            )

        provider = OpenAIProvider("sk-test", transport=httpx.MockTransport(handler))
        result = asyncio.run(provider.generate("look", images=[IMAGE], model="gpt-4o"))

        self.assertEqual(seen["url"], "https://api.openai.com/v1/chat/completions")
        self.assertEqual(seen["auth"], "Bearer sk-test")
        content = seen["body"]["messages"][0]["content"]
        self.assertEqual(content[0], {"type": "text", "text": "look"})
        self.assertEqual(content[1]["image_url"]["url"], "data:image/jpeg;base64,aGVsbG8=")
        self.assertEqual(result.raw_text, '{"riskLevel": "High Risk"}')
        self.assertEqual(result.prompt_tokens, 30)

    def test_http_error_uses_error_message(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

        provider = OpenAIProvider("bad", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIn("Incorrect API key provided", ctx.exception.message)

    def test_empty_choices(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        provider = OpenAIProvider("sk-test", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertIn("unexpected shape", ctx.exception.message)

    def test_non_json_success_body(self):
        def handler(request):
            return httpx.Response(200, text="gateway says hi")

        provider = OpenAIProvider("sk-test", transport=httpx.MockTransport(handler))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.generate("x"))
        self.assertIn("non-JSON", ctx.exception.message)


if __name__ == "__main__":
    unittest.main()
