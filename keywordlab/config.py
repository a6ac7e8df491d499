"""Application configuration using pydantic-settings."""

import json
from ast import literal_eval
from functools import lru_cache
from typing import Annotated, ClassVar, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "KeywordLab"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # API
    api_v1_prefix: str = "/api/v1"
    cors_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # SerpApi (ranking signals + account quota)
    serpapi_api_key: str | None = None
    serpapi_base_url: str = "https://serpapi.com"
    serpapi_timeout: float = 30.0
    serpapi_google_domain: str = "google.com"

    # Stage 1: KGR scoring
    kgr_volume_ceiling: int = 250
    kgr_request_delay_seconds: float = 1.0
    kgr_great_threshold: float = 0.25
    kgr_might_work_threshold: float = 1.0

    # Stage 2: LLM keyword analysis
    analysis_batch_size: int = 3
    analysis_batch_delay_seconds: float = 1.0

    # LLM Configuration
    default_llm_model: str = "groq:llama-3.3-70b-versatile"
    llm_max_retries: int = 3
    llm_temperature: float = 0.3

    # Per-tier model overrides (optional; override the built-in defaults below)
    model_standard: str | None = None
    model_fast: str | None = None

    _MODEL_DEFAULTS: ClassVar[dict[str, dict[str, str]]] = {
        "development": {
            "standard": "groq:llama-3.3-70b-versatile",
            "fast": "groq:llama-3.1-8b-instant",
        },
        "staging": {
            "standard": "groq:llama-3.3-70b-versatile",
            "fast": "groq:llama-3.1-8b-instant",
        },
        "production": {
            "standard": "groq:llama-3.3-70b-versatile",
            "fast": "groq:llama-3.3-70b-versatile",
        },
    }

    def get_model(self, tier: str = "standard") -> str:
        """Resolve the model string for a given tier based on environment.

        Priority: env var override > built-in defaults > default_llm_model fallback.
        """
        override = getattr(self, f"model_{tier}", None)
        if isinstance(override, str) and override:
            return override

        env_defaults = self._MODEL_DEFAULTS.get(self.environment, {})
        return env_defaults.get(tier, self.default_llm_model)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: object) -> object:
        """Accept JSON list/string or comma-separated values for CORS_ORIGINS."""
        if isinstance(value, list):
            return [str(origin).strip() for origin in value if str(origin).strip()]
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            try:
                parsed = literal_eval(raw)
            except (ValueError, SyntaxError):
                return [origin.strip() for origin in raw.split(",") if origin.strip()]

        if isinstance(parsed, str):
            parsed = [parsed]
        if not isinstance(parsed, list | tuple):
            raise ValueError(
                "CORS_ORIGINS must be a JSON array, JSON string, or comma-separated string.",
            )
        return [str(origin).strip() for origin in parsed if str(origin).strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
