"""
Tests for configuration module.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from iopulse.config import Settings, StageConfig, clear_settings_cache, get_settings


class TestSettingsValidation:
    """Tests for Settings validation."""

    def test_settings_loads_from_env(self, mock_env_vars: dict[str, str]) -> None:
        """Test that settings correctly loads from environment variables."""
        settings = get_settings()

        assert settings.LLM_API_KEY == "io-test-fake-key-1234567890"
        assert settings.LLM_BASE_URL == "http://llm.test/api/v1/"
        assert settings.MAX_TOOL_ROUNDS == 4
        assert settings.TOOL_EXECUTOR == "simulated"
        assert settings.LOG_LEVEL == "DEBUG"

    def test_validation_fails_without_api_key(self) -> None:
        """Test that validation fails if LLM_API_KEY is missing."""
        with patch.dict(os.environ, {}, clear=True):
            clear_settings_cache()

            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            assert "LLM_API_KEY" in str(exc_info.value)

    def test_validation_fails_with_blank_api_key(self) -> None:
        """Test that a whitespace-only key is rejected."""
        with patch.dict(os.environ, {"LLM_API_KEY": "   "}, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            assert "must not be empty" in str(exc_info.value)

    def test_tool_executor_must_be_known(self) -> None:
        """Test that TOOL_EXECUTOR only accepts simulated or live."""
        env_vars = {"LLM_API_KEY": "key", "TOOL_EXECUTOR": "magic"}

        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_temperature_range(self) -> None:
        """Test that temperature outside [0, 1] is rejected."""
        env_vars = {"LLM_API_KEY": "key", "LLM_TEMPERATURE": "1.5"}

        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)


class TestSettingsDefaults:
    """Tests for Settings default values."""

    def test_defaults(self) -> None:
        """Test default values when only the key is set."""
        with patch.dict(os.environ, {"LLM_API_KEY": "key"}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.LLM_MAX_ATTEMPTS == 1
            assert settings.TOOL_EXECUTOR == "simulated"
            assert settings.LLM_TEMPERATURE == 0.1
            assert settings.PRODUCTION_MODE is True
            assert settings.MODEL_PROFILE is None


class TestStageConfig:
    """Tests for per-stage configuration."""

    def test_capability_defaults(self, mock_settings: Settings) -> None:
        """Test reasoning stages and tool stages use their default models."""
        assert mock_settings.stage_config("profile").model == "reasoning-model"
        assert mock_settings.stage_config("committee").model == "reasoning-model"
        assert mock_settings.stage_config("screener").model == "fast-model"
        assert mock_settings.stage_config("qualitative").model == "fast-model"

    def test_stage_override(self, mock_env_vars: dict[str, str]) -> None:
        """Test that a per-stage model overrides the capability default."""
        with patch.dict(os.environ, {"MODEL_SCREENER": "screener-special"}):
            settings = Settings(_env_file=None)

            assert settings.stage_config("screener").model == "screener-special"
            assert settings.stage_config("qualitative").model == "fast-model"

    def test_tool_stages_get_round_budget(self, mock_settings: Settings) -> None:
        """Test that only tool-calling stages carry a round budget."""
        screener = mock_settings.stage_config("screener")
        profile = mock_settings.stage_config("profile")

        assert isinstance(screener, StageConfig)
        assert screener.max_tool_rounds == 4
        assert screener.timeout_s == mock_settings.TIMEOUT_TOOL_STAGE_S
        assert profile.max_tool_rounds == 0

    def test_unknown_stage(self, mock_settings: Settings) -> None:
        """Test that unknown stage names are rejected."""
        with pytest.raises(ValueError, match="Unknown stage"):
            mock_settings.stage_config("quantitative")


class TestSettingsMethods:
    """Tests for Settings methods."""

    def test_redacted_display_hides_key(self, mock_settings: Settings) -> None:
        """Test that redacted_display masks the API key."""
        display = mock_settings.redacted_display()

        key = display["LLM_API_KEY"]
        assert "..." in str(key)
        assert len(str(key)) < len(mock_settings.LLM_API_KEY)
        assert display["LLM_BASE_URL"] == mock_settings.LLM_BASE_URL
        assert display["MAX_TOOL_ROUNDS"] == 4

    def test_redacted_display_short_key(self) -> None:
        """Test that short keys are fully masked."""
        with patch.dict(os.environ, {"LLM_API_KEY": "short"}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.redacted_display()["LLM_API_KEY"] == "***"


class TestSettingsCache:
    """Tests for settings caching."""

    def test_get_settings_returns_same_instance(
        self, mock_env_vars: dict[str, str]
    ) -> None:
        """Test that get_settings returns cached instance."""
        assert get_settings() is get_settings()

    def test_clear_settings_cache_clears_cache(
        self, mock_env_vars: dict[str, str]
    ) -> None:
        """Test that clear_settings_cache clears the cache."""
        settings1 = get_settings()
        clear_settings_cache()
        settings2 = get_settings()

        assert settings1 is not settings2
