"""Tests for Settings configuration model."""

import pytest

from src.config import Settings


class TestGetGeminiKeys:
    def test_keeps_order(self):
        s = Settings(gemini_api_key_1="a", gemini_api_key_2="b", gemini_api_key_3="c")
        assert s.get_gemini_keys() == ["a", "b", "c"]

    def test_skips_blank_keys(self):
        s = Settings(gemini_api_key_1="a", gemini_api_key_2="  ", gemini_api_key_3="c")
        assert s.get_gemini_keys() == ["a", "c"]

    def test_strips_whitespace(self):
        s = Settings(gemini_api_key_2=" b ")
        assert s.get_gemini_keys() == ["b"]

    def test_none_configured(self):
        assert Settings().get_gemini_keys() == []


class TestMissingRequired:
    def test_all_present(self):
        s = Settings(bot_token="123:abc", gemini_api_key_1="k")
        assert s.missing_required() == []

    def test_missing_bot_token(self):
        s = Settings(gemini_api_key_1="k")
        assert s.missing_required() == ["BOT_TOKEN"]

    def test_missing_all_gemini_keys(self):
        s = Settings(bot_token="123:abc")
        assert s.missing_required() == ["GEMINI_API_KEY_1"]

    def test_any_single_key_is_enough(self):
        s = Settings(bot_token="123:abc", gemini_api_key_3="k")
        assert s.missing_required() == []


class TestDefaults:
    def test_default_port(self):
        assert Settings().port == 3000

    def test_polling_by_default(self):
        assert Settings().webhook_enabled is False

    def test_webhook_enabled_with_url(self):
        assert Settings(webhook_url="https://bot.example.com").webhook_enabled is True

    def test_rotation_defaults(self):
        s = Settings()
        assert s.key_attempt_factor == 2
        assert s.key_cooldown_seconds == 60.0
        assert s.gemini_timeout_seconds == 30.0

    def test_no_fallback_model_by_default(self):
        assert Settings().gemini_fallback_model == ""

    def test_session_defaults(self):
        s = Settings()
        assert s.session_history_size == 10
        assert s.context_window_size == 6
        assert s.session_idle_timeout_seconds == 3600.0


class TestExtraForbidden:
    def test_unknown_env_var_raises(self):
        with pytest.raises(ValueError, match="extra_forbidden"):
            Settings(**{"nonexistent_field": "value"})

    def test_attempt_factor_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(key_attempt_factor=0)
