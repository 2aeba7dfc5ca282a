"""
Configuration Management for Expense Capture

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Provider credentials are OPTIONAL: a missing key does not stop the
server from starting, it makes that provider report itself unavailable
so the gateway can answer 503 instead of crashing at import time.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_PROVIDERS = ("gemini", "groq")


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (primary, fast provider)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-flash-latest",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=512,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class GroqSettings(BaseSettings):
    """Groq configuration (secondary provider, OpenAI-compatible API)."""

    model_config = SettingsConfigDict(
        env_prefix="GROQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Groq API key"
    )
    model_name: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq-hosted model to use"
    )
    base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible endpoint for Groq"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Request timeout for a single completion"
    )


class CaptureSettings(BaseSettings):
    """
    Timing for the capture screen's channel reconciliation.

    All values are milliseconds measured from screen mount,
    except share_wait_ms which is measured from the moment a
    shared-image handoff is seen.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAPTURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    probe_delays_ms: str = Field(
        default="300,600,1000,1500",
        description="Comma-separated re-probe offsets after mount"
    )
    share_wait_ms: int = Field(
        default=1000,
        ge=0,
        description="How long to wait for OCR after a shared image arrives"
    )
    timeout_ms: int = Field(
        default=3000,
        ge=1,
        description="Give up and navigate away after this long"
    )

    @field_validator("probe_delays_ms")
    @classmethod
    def validate_probe_delays(cls, v: str) -> str:
        """Offsets must be non-negative integers in ascending order."""
        offsets = [int(part) for part in v.split(",") if part.strip()]
        if any(o < 0 for o in offsets):
            raise ValueError("Probe delays must be non-negative")
        if offsets != sorted(offsets):
            raise ValueError("Probe delays must be in ascending order")
        return v

    @property
    def probe_offsets(self) -> list[float]:
        """
        Probe offsets in seconds, including the immediate mount probe
        and the final probe at the hard timeout.
        """
        timeout = self.timeout_ms / 1000
        offsets = [0.0]
        for part in self.probe_delays_ms.split(","):
            if part.strip():
                offset = int(part) / 1000
                if 0 < offset < timeout:
                    offsets.append(offset)
        offsets.append(timeout)
        return offsets

    @property
    def share_wait_seconds(self) -> float:
        return self.share_wait_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level for structured logging"
    )

    # Server
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
    )
    cors_allow_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # Provider routing
    extraction_provider: str = Field(
        default="gemini",
        description="Primary structured extraction provider"
    )
    extraction_fallback_provider: Optional[str] = Field(
        default=None,
        description="Provider to use when the primary one is not configured"
    )

    @field_validator("extraction_provider", "extraction_fallback_provider")
    @classmethod
    def validate_provider(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.strip().lower()
        if v not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unknown extraction provider: {v}. "
                f"Supported: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def groq(self) -> GroqSettings:
        return GroqSettings()

    @property
    def capture(self) -> CaptureSettings:
        return CaptureSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}. Providers count as
    valid only when an API key is present.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        results["gemini"] = bool(settings.gemini.api_key)
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        results["groq"] = bool(settings.groq.api_key)
    except Exception as e:
        results["groq"] = False
        results["groq_error"] = str(e)

    try:
        _ = settings.capture
        results["capture"] = True
    except Exception as e:
        results["capture"] = False
        results["capture_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
