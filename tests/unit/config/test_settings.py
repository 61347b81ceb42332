# tests/unit/config/test_settings.py - v2
"""Tests for config/settings.py - typed Settings and validation rules."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pagedigest.config.settings import ConfigurationError, Settings, load_settings
from pagedigest.llm.errors import TerminalError


class TestSettingsDefaults:
    def test_default_provider(self):
        s = Settings(_env_file=None)
        assert s.llm_provider == "openai"
        assert s.context_window is None

    def test_default_limits(self):
        s = Settings(_env_file=None)
        assert s.temperature == 0.3
        assert s.max_output_tokens == 8192
        assert s.request_timeout_s == 90.0
        assert s.max_retries == 2
        assert s.max_images_per_run == 5
        assert s.max_requested_images == 3
        assert s.max_comments == 20

    def test_default_summary_preferences(self):
        s = Settings(_env_file=None)
        assert s.summary_detail_level == "standard"
        assert s.summary_language == "auto"
        assert s.enable_image_analysis is True


class TestSettingsValidation:
    def test_requested_images_above_run_cap(self):
        with pytest.raises(ConfigurationError, match="MAX_REQUESTED_IMAGES"):
            Settings(_env_file=None, max_requested_images=6, max_images_per_run=5)

    def test_non_positive_context_window(self):
        with pytest.raises(ConfigurationError, match="CONTEXT_WINDOW"):
            Settings(_env_file=None, context_window=0)

    def test_errors_are_combined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, context_window=-1, max_output_tokens=0)
        assert "CONTEXT_WINDOW" in str(exc_info.value)
        assert "MAX_OUTPUT_TOKENS" in str(exc_info.value)

    def test_configuration_error_is_terminal(self):
        assert issubclass(ConfigurationError, TerminalError)

    def test_negative_retries(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_retries=-1)

    def test_zero_timeout(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, request_timeout_s=0)

    def test_zero_retry_delay_allowed(self):
        assert Settings(_env_file=None, retry_base_delay_s=0).retry_base_delay_s == 0

    def test_invalid_detail_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, summary_detail_level="verbose")


class TestSettingsHelpers:
    def test_api_key_for(self):
        s = Settings(_env_file=None, xai_api_key="xk", self_hosted_api_key="local")
        assert s.api_key_for("xai") == "xk"
        assert s.api_key_for("self-hosted") == "local"
        assert s.api_key_for("unknown") == ""

    def test_language_except_list(self):
        s = Settings(_env_file=None, summary_language_except=" ru, de ,,")
        assert s.summary_language_except_list == ["ru", "de"]


class TestEnvLoading:
    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "google")
        monkeypatch.setenv("MAX_COMMENTS", "7")
        s = Settings(_env_file=None)
        assert s.llm_provider == "google"
        assert s.max_comments == 7

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LLM_MODEL", raising=False)
        env = tmp_path / ".env"
        env.write_text("LLM_MODEL=gpt-4.1\nSUMMARY_LANGUAGE=fr\n", encoding="utf-8")
        s = Settings(_env_file=env)
        assert s.llm_model == "gpt-4.1"
        assert s.summary_language == "fr"

    def test_load_settings_overrides(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        s = load_settings(llm_model="o3-mini", summary_detail_level="brief")
        assert s.llm_model == "o3-mini"
        assert s.summary_detail_level == "brief"
