import hashlib
import os
import unittest
from unittest.mock import patch

from eyephone.core.config import get_settings
from eyephone.services.ai.common.audit import build_ai_run_metadata, log_ai_run
from eyephone.services.ai.common.providers import ProviderResult

RESULT = ProviderResult(
    raw_text='{"riskLevel": "Low Risk"}',
    model="gemini-2.0-flash-exp",
    provider="gemini",
    prompt_tokens=10,
    completion_tokens=4,
    latency_ms=120.5,
)


class AuditTests(unittest.TestCase):
    def setUp(self):
        get_settings.cache_clear()

    def tearDown(self):
        get_settings.cache_clear()

    def test_hashes_without_raw_text(self):
        meta = build_ai_run_metadata(scope="assessment", provider_result=RESULT, prompt_text="prompt")
        self.assertEqual(meta["action"], "AI_EYE_ASSESSMENT")
        self.assertEqual(meta["prompt_hash"], hashlib.sha256(b"prompt").hexdigest())
        self.assertNotIn("prompt_raw", meta)
        self.assertNotIn("response_raw", meta)

    def test_raw_text_when_debug_enabled(self):
        with patch.dict(os.environ, {"AI_DEBUG_STORE_RAW": "true"}):
            get_settings.cache_clear()
            meta = build_ai_run_metadata(scope="assessment_batch", provider_result=RESULT, prompt_text="prompt")
        self.assertEqual(meta["action"], "AI_EYE_ASSESSMENT_BATCH")
        self.assertEqual(meta["prompt_raw"], "prompt")
        self.assertEqual(meta["response_raw"], RESULT.raw_text)

    def test_unknown_scope_and_extra_meta(self):
        meta = build_ai_run_metadata(
            scope="other", provider_result=RESULT, prompt_text="p", extra_meta={"images": 3}
        )
        self.assertEqual(meta["action"], "AI_RUN")
        self.assertEqual(meta["images"], 3)

    def test_log_ai_run_emits_entry(self):
        with self.assertLogs("eyephone.audit", level="INFO") as logs:
            meta = log_ai_run(scope="connectivity_check", provider_result=RESULT, prompt_text="p")
        self.assertEqual(meta["action"], "AI_PROVIDER_CONNECTIVITY_CHECK")
        self.assertIn("AI_PROVIDER_CONNECTIVITY_CHECK", logs.output[0])


if __name__ == "__main__":
    unittest.main()
