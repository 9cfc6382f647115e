"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file). The intent parser never reads the environment itself: the
settings hand it an explicit `LLMConfig`.
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.intent.llm_parser import DEFAULT_API_BASE, DEFAULT_MODEL, LLMConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram_bot_token: str = Field(alias="TELEGRAM_BOT_TOKEN")
    database_url: str = Field(alias="DATABASE_URL")
    db_timezone: str = Field(default="UTC", alias="DB_TIMEZONE")
    db_pool_max_size: int = Field(default=10, gt=0, alias="DB_POOL_MAX_SIZE")

    llm_enabled: bool = Field(default=True, alias="LLM_ENABLED")
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default=DEFAULT_MODEL, alias="GEMINI_MODEL")
    gemini_api_base: str = Field(default=DEFAULT_API_BASE, alias="GEMINI_API_BASE")
    llm_timeout_s: float = Field(default=15.0, gt=0, alias="LLM_TIMEOUT_S")
    llm_max_output_tokens: int = Field(default=400, gt=0, alias="LLM_MAX_OUTPUT_TOKENS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("db_timezone")
    @classmethod
    def validate_db_timezone_is_utc(cls, value: str) -> str:
        """Transaction timestamps are stored and shown in UTC; reject any other session zone."""

        if value.upper() != "UTC":
            raise ValueError("DB_TIMEZONE must be UTC")
        return "UTC"

    @field_validator("gemini_api_key")
    @classmethod
    def blank_key_is_missing(cls, value: str | None) -> str | None:
        """Treat `GEMINI_API_KEY=` (empty) the same as an unset key."""

        if value is not None and not value.strip():
            return None
        return value

    def llm_config(self) -> LLMConfig | None:
        """Build the remote extractor config, or `None` when the remote path is off.

        A missing key is not an error: commands are then parsed by the rules parser only.
        """

        if not self.llm_enabled or not self.gemini_api_key:
            return None
        return LLMConfig(
            api_key=self.gemini_api_key,
            model=self.gemini_model,
            api_base=self.gemini_api_base,
            timeout_s=self.llm_timeout_s,
            max_output_tokens=self.llm_max_output_tokens,
        )


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
