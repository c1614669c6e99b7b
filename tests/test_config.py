import os
import unittest
from unittest.mock import patch

import speech_adapter.config as config_mod
from speech_adapter.exceptions import InvalidOptionError, PollingTimeoutError, ServiceError


class TestRetrySpec(unittest.TestCase):
    def test_defaults(self):
        spec = config_mod.RetrySpec()
        self.assertEqual(spec.interval_millis, 5000)
        self.assertEqual(spec.max_attempts, 30)
        self.assertEqual(spec.interval_seconds, 5.0)

    def test_default_predicate_only_retries_timeouts(self):
        spec = config_mod.RetrySpec()
        self.assertTrue(spec.is_retryable(PollingTimeoutError("pending")))
        self.assertFalse(spec.is_retryable(ServiceError("boom", code=500)))
        self.assertFalse(spec.is_retryable(RuntimeError("boom")))

    def test_invalid_values_raise(self):
        with self.assertRaises(ValueError):
            config_mod.RetrySpec(interval_millis=-1)
        with self.assertRaises(ValueError):
            config_mod.RetrySpec(max_attempts=0)

    def test_zero_interval_is_allowed(self):
        self.assertEqual(config_mod.RetrySpec(interval_millis=0).interval_seconds, 0)


class TestRecognitionOptions(unittest.TestCase):
    def test_allowed_set(self):
        self.assertEqual(len(config_mod.RECOGNITION_OPTIONS_ALLOWED), 17)
        self.assertIn("content-type", config_mod.RECOGNITION_OPTIONS_ALLOWED)

    def test_alias_and_none_values(self):
        options = config_mod.normalize_recognition_options({
            "content_type": "audio/flac",
            "timestamps": True,
            "keywords": None,
        })
        self.assertEqual(options, {"content-type": "audio/flac", "timestamps": True})

    def test_unknown_names_rejected(self):
        with self.assertRaises(InvalidOptionError) as ctx:
            config_mod.normalize_recognition_options({"speaker": 1, "word_count": 2, "model": "x"})
        self.assertEqual(ctx.exception.names, ["speaker", "word_count"])


class TestChannelConfig(unittest.TestCase):
    def test_option_split(self):
        c = config_mod.ChannelConfig(
            url="wss://host/v1/recognize",
            options={"model": "m", "base_model_version": "v1", "smart_formatting": True},
        )
        self.assertEqual(c.query_options, {"model": "m", "base_model_version": "v1"})
        self.assertEqual(c.start_options, {"smart_formatting": True})

    def test_invalid_values_raise(self):
        with self.assertRaises(ValueError):
            config_mod.ChannelConfig(url="")
        with self.assertRaises(ValueError):
            config_mod.ChannelConfig(url="wss://host", max_queued_writes=0)
        with self.assertRaises(ValueError):
            config_mod.ChannelConfig(url="wss://host", close_timeout=0)


class TestServiceConfig(unittest.TestCase):
    def test_trailing_slash_removed(self):
        self.assertEqual(config_mod.ServiceConfig(url="https://host/api/").url, "https://host/api")

    def test_invalid_values_raise(self):
        with self.assertRaises(ValueError):
            config_mod.ServiceConfig(url="")
        with self.assertRaises(ValueError):
            config_mod.ServiceConfig(url="https://host", timeout=0)

    @patch('speech_adapter.config.dotenv.load_dotenv')
    @patch.dict(os.environ, {
        "SPEECH_TO_TEXT_URL": "https://host/api",
        "SPEECH_TO_TEXT_BEARER_TOKEN": "token",
        "SPEECH_TO_TEXT_DISABLE_SSL_VERIFICATION": "true",
    })
    def test_from_env(self, mock_load_dotenv):
        c = config_mod.ServiceConfig.from_env()

        mock_load_dotenv.assert_called_once_with(None)
        self.assertEqual(c.url, "https://host/api")
        self.assertEqual(c.headers, {"Authorization": "Bearer token"})
        self.assertFalse(c.verify_tls)

    @patch('speech_adapter.config.dotenv.load_dotenv')
    @patch.dict(os.environ, {"SPEECH_TO_TEXT_URL": "https://host/api"}, clear=True)
    def test_from_env_without_token(self, mock_load_dotenv):
        c = config_mod.ServiceConfig.from_env()

        self.assertEqual(c.headers, {})
        self.assertTrue(c.verify_tls)


if __name__ == "__main__":
    unittest.main()
