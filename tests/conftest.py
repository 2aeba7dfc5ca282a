"""
Shared fixtures.

No real API calls in tests: provider SDK objects are replaced with
small fakes exposing the same call shape.
"""

import asyncio
from types import SimpleNamespace

import pytest

from expense_capture.config import CaptureSettings, get_settings
from expense_capture.extractors import StructuredExtractor
from expense_capture.models.expense import ExtractionResult


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; start every test fresh."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fast_capture_settings():
    """Same probe shape as production, scaled down to milliseconds."""
    return CaptureSettings(
        probe_delays_ms="20,40,60",
        share_wait_ms=50,
        timeout_ms=150,
    )


class FakeExtractor(StructuredExtractor):
    """Stands in for a configured LLM backend."""

    name = "fake"

    def __init__(self, result=None, error=None, available=True):
        self._result = result
        self._error = error
        self._available = available
        self.calls = []

    def is_available(self) -> bool:
        return self._available

    async def extract(self, ocr_text: str) -> ExtractionResult:
        self.calls.append(ocr_text)
        if self._error is not None:
            raise self._error
        return self._result


@pytest.fixture
def swiggy_result():
    return ExtractionResult(
        amount=245.0,
        merchant="Swiggy",
        type="debit",
        confidence=95,
    )


def gemini_response(text):
    """Shape of google.generativeai's response object that we read."""
    return SimpleNamespace(text=text)


def groq_completion(content):
    """Shape of an OpenAI-style chat completion that we read."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def run(coro):
    return asyncio.run(coro)
