"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates required fields and provides typed access to settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class StageConfig:
    """Model and budget configuration for a single pipeline stage.

    Variants of a stage (which model, how many tokens, how long to wait)
    are expressed as data here rather than as separate implementations.
    """

    model: str
    temperature: float
    max_tokens: int
    timeout_s: float
    max_tool_rounds: int = 0


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Required:
        LLM_API_KEY: API key for the OpenAI-compatible model endpoint

    Optional:
        LLM_BASE_URL: Base URL of the model endpoint
        MODEL_FAST / MODEL_REASONING: Default models by capability
        MODEL_PROFILE ... MODEL_COMMITTEE: Per-stage model overrides
        LLM_TEMPERATURE: Sampling temperature for all stages
        LLM_MAX_ATTEMPTS: Gateway attempts per call (1 = no retries)
        MAX_TOOL_ROUNDS: Round budget for tool-calling stages
        TOOL_EXECUTOR: "simulated" or "live" market data
        DATABASE_PATH: SQLite file for strategies and recommendations
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model endpoint
    LLM_API_KEY: str = Field(..., description="API key for the model endpoint")
    LLM_BASE_URL: str = Field(
        default="https://api.intelligence.io.solutions/api/v1/",
        description="OpenAI-compatible chat completions endpoint",
    )

    # Model defaults by capability
    MODEL_FAST: str = Field(
        default="meta-llama/Llama-3.3-70B-Instruct",
        description="Fast instruction-following model",
    )
    MODEL_REASONING: str = Field(
        default="Qwen/Qwen3-235B-A22B-Thinking-2507",
        description="Reasoning model for classification and final decisions",
    )

    # Per-stage overrides (None = capability default)
    MODEL_PROFILE: str | None = Field(default=None)
    MODEL_SCREENER: str | None = Field(default=None)
    MODEL_QUALITATIVE: str | None = Field(default=None)
    MODEL_COMMITTEE: str | None = Field(default=None)

    LLM_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=1.0)
    LLM_MAX_ATTEMPTS: int = Field(
        default=1, ge=1, le=10, description="Gateway attempts per call (1 = single attempt)"
    )

    # Timeouts (seconds)
    TIMEOUT_DEFAULT_S: float = Field(default=60.0, gt=0.0)
    TIMEOUT_TOOL_STAGE_S: float = Field(default=180.0, gt=0.0)

    # Tool loop
    MAX_TOOL_ROUNDS: int = Field(default=8, ge=1, le=50)
    TOOL_EXECUTOR: Literal["simulated", "live"] = Field(default="simulated")

    # Market data
    MARKET_DATA_BASE_URL: str = Field(default="https://api.coingecko.com/api/v3")
    MARKET_DATA_TIMEOUT_S: float = Field(default=10.0, gt=0.0)

    # Persistence
    DATABASE_PATH: Path = Field(default=Path("data/iopulse.db"))

    # Logging and error exposure
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    PRODUCTION_MODE: bool = Field(
        default=True, description="Hide internal error details from callers"
    )

    @field_validator("LLM_API_KEY")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that the API key is not blank."""
        if not v.strip():
            raise ValueError("LLM_API_KEY must not be empty")
        return v

    def stage_config(self, stage: str) -> StageConfig:
        """Build the StageConfig for a named pipeline stage.

        Args:
            stage: One of the model-backed stages: "profile",
                "screener", "qualitative", "committee".

        Returns:
            StageConfig for that stage.
        """
        if stage == "profile":
            return StageConfig(
                model=self.MODEL_PROFILE or self.MODEL_REASONING,
                temperature=self.LLM_TEMPERATURE,
                max_tokens=1000,
                timeout_s=self.TIMEOUT_DEFAULT_S,
            )
        if stage == "screener":
            return StageConfig(
                model=self.MODEL_SCREENER or self.MODEL_FAST,
                temperature=self.LLM_TEMPERATURE,
                max_tokens=500,
                timeout_s=self.TIMEOUT_TOOL_STAGE_S,
                max_tool_rounds=self.MAX_TOOL_ROUNDS,
            )
        if stage == "qualitative":
            return StageConfig(
                model=self.MODEL_QUALITATIVE or self.MODEL_FAST,
                temperature=self.LLM_TEMPERATURE,
                max_tokens=4000,
                timeout_s=self.TIMEOUT_TOOL_STAGE_S,
                max_tool_rounds=self.MAX_TOOL_ROUNDS,
            )
        if stage == "committee":
            return StageConfig(
                model=self.MODEL_COMMITTEE or self.MODEL_REASONING,
                temperature=self.LLM_TEMPERATURE,
                max_tokens=2000,
                timeout_s=self.TIMEOUT_DEFAULT_S * 2,
            )
        raise ValueError(f"Unknown stage: {stage}")

    def redacted_display(self) -> dict[str, str | int | float | bool | None]:
        """Return settings with API keys redacted for display."""
        key = self.LLM_API_KEY
        redacted = f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"

        return {
            "LLM_API_KEY": redacted,
            "LLM_BASE_URL": self.LLM_BASE_URL,
            "MODEL_FAST": self.MODEL_FAST,
            "MODEL_REASONING": self.MODEL_REASONING,
            "MODEL_PROFILE": self.MODEL_PROFILE,
            "MODEL_SCREENER": self.MODEL_SCREENER,
            "MODEL_QUALITATIVE": self.MODEL_QUALITATIVE,
            "MODEL_COMMITTEE": self.MODEL_COMMITTEE,
            "LLM_TEMPERATURE": self.LLM_TEMPERATURE,
            "LLM_MAX_ATTEMPTS": self.LLM_MAX_ATTEMPTS,
            "TIMEOUT_DEFAULT_S": self.TIMEOUT_DEFAULT_S,
            "TIMEOUT_TOOL_STAGE_S": self.TIMEOUT_TOOL_STAGE_S,
            "MAX_TOOL_ROUNDS": self.MAX_TOOL_ROUNDS,
            "TOOL_EXECUTOR": self.TOOL_EXECUTOR,
            "MARKET_DATA_BASE_URL": self.MARKET_DATA_BASE_URL,
            "DATABASE_PATH": str(self.DATABASE_PATH),
            "LOG_LEVEL": self.LOG_LEVEL,
            "PRODUCTION_MODE": self.PRODUCTION_MODE,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        pydantic.ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
