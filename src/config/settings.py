# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: provider
credentials, engine limits, default summary preferences and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pagedigest.llm.errors import TerminalError


class ConfigurationError(TerminalError):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDER ===
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_endpoint: str = ""
    context_window: int | None = None  # None = provider default

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""
    xai_api_key: str = ""
    deepseek_api_key: str = ""
    openrouter_api_key: str = ""
    self_hosted_api_key: str = ""

    # === Engine limits ===
    temperature: float = 0.3
    max_output_tokens: int = 8192
    request_timeout_s: float = 90.0
    max_retries: int = 2
    retry_base_delay_s: float = 1.0
    max_images_per_run: int = 5
    max_requested_images: int = 3
    max_comments: int = 20

    # === Summary defaults ===
    enable_image_analysis: bool = True
    summary_detail_level: Literal["brief", "standard", "detailed"] = "standard"
    summary_language: str = "auto"
    summary_language_except: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("max_retries", "max_images_per_run", "max_requested_images", "max_comments")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("request_timeout_s", "retry_base_delay_s")
    @classmethod
    def validate_positive_duration(cls, v: float, info) -> float:  # noqa: N805
        if v < 0 or (info.field_name == "request_timeout_s" and v == 0):
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.context_window is not None and self.context_window <= 0:
            errors.append("CONTEXT_WINDOW must be positive")

        if self.max_requested_images > self.max_images_per_run:
            errors.append("MAX_REQUESTED_IMAGES must be <= MAX_IMAGES_PER_RUN")

        if self.max_output_tokens <= 0:
            errors.append("MAX_OUTPUT_TOKENS must be positive")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def api_key_for(self, provider: str) -> str:
        """API key configured for *provider* ('' if none)."""
        return getattr(self, f"{provider.replace('-', '_')}_api_key", "")

    @property
    def summary_language_except_list(self) -> list[str]:
        """Parse comma-separated language codes that must not be translated."""
        return [c.strip() for c in self.summary_language_except.split(",") if c.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
