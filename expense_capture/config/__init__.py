"""Configuration package."""

from expense_capture.config.settings import (
    SUPPORTED_PROVIDERS,
    AppSettings,
    CaptureSettings,
    GeminiSettings,
    GroqSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "SUPPORTED_PROVIDERS",
    "AppSettings",
    "CaptureSettings",
    "GeminiSettings",
    "GroqSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
