"""
LLM-backed Structured Extractors

DESIGN DECISION: Two interchangeable providers sit behind the
StructuredExtractor interface:
1. Gemini (primary, fast) through google-generativeai
2. Groq (secondary) through its OpenAI-compatible API with JSON mode

Both send the same prompt contract and parse the reply with the same
strict parser. Which one serves a deployment is a configuration
choice (EXTRACTION_PROVIDER), with an optional fallback used only
when the primary has no credentials. A failed request is NEVER
retried or re-routed: the user re-initiates the capture.
"""

from typing import Optional

import google.generativeai as genai
import structlog
from openai import AsyncOpenAI

from expense_capture.config import GeminiSettings, GroqSettings, get_settings
from expense_capture.extractors.base import (
    MalformedModelOutputError,
    ProviderRequestError,
    ProviderUnavailableError,
    StructuredExtractor,
    parse_model_output,
)
from expense_capture.extractors.prompt import (
    SYSTEM_INSTRUCTIONS,
    build_extraction_prompt,
)
from expense_capture.models.expense import ExtractionResult

logger = structlog.get_logger(__name__)


class GeminiExtractor(StructuredExtractor):
    """
    Structured extraction with Google Gemini.

    The whole contract goes in one user prompt; Gemini is asked for
    JSON only and may still wrap it in a code fence.
    """

    name = "gemini"

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model=None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model
        if self._model is None and self._settings.api_key:
            self._configure_genai()
        elif self._model is None:
            logger.warning("gemini_api_key_missing")

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    def is_available(self) -> bool:
        return self._model is not None

    async def extract(self, ocr_text: str) -> ExtractionResult:
        if not self.is_available():
            raise ProviderUnavailableError(self.name, "Gemini API not configured")

        prompt = build_extraction_prompt(ocr_text)

        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text
        except Exception as e:
            logger.error("gemini_request_failed", error=str(e))
            raise ProviderRequestError(self.name, f"Gemini request failed: {e}")

        try:
            result = parse_model_output(text)
        except MalformedModelOutputError as e:
            logger.error("gemini_output_malformed", error=str(e))
            raise

        logger.info(
            "gemini_parsed_expense",
            amount=result.amount,
            merchant=result.merchant,
            confidence=result.confidence,
        )
        return result


class GroqExtractor(StructuredExtractor):
    """
    Structured extraction with a Groq-hosted model.

    Groq speaks the OpenAI chat-completions protocol, so the official
    openai client is pointed at Groq's base URL. JSON mode is on, and
    the reply still goes through the strict parser.
    """

    name = "groq"

    def __init__(
        self,
        settings: Optional[GroqSettings] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._settings = settings or get_settings().groq
        self._client = client
        if self._client is None and self._settings.api_key:
            self._client = AsyncOpenAI(
                api_key=self._settings.api_key,
                base_url=self._settings.base_url,
                timeout=self._settings.timeout_seconds,
            )
        elif self._client is None:
            logger.warning("groq_api_key_missing")

    def is_available(self) -> bool:
        return self._client is not None

    async def extract(self, ocr_text: str) -> ExtractionResult:
        if not self.is_available():
            raise ProviderUnavailableError(self.name, "Groq API not configured")

        try:
            completion = await self._client.chat.completions.create(
                model=self._settings.model_name,
                messages=[
                    {"role": "system", "content": SYSTEM_INSTRUCTIONS},
                    {"role": "user", "content": ocr_text},
                ],
                response_format={"type": "json_object"},
                temperature=self._settings.temperature,
            )
        except Exception as e:
            logger.error("groq_request_failed", error=str(e))
            raise ProviderRequestError(self.name, f"Groq request failed: {e}")

        content = None
        if completion.choices:
            content = completion.choices[0].message.content

        try:
            result = parse_model_output(content or "")
        except MalformedModelOutputError as e:
            logger.error("groq_output_malformed", error=str(e))
            raise

        logger.info(
            "groq_parsed_expense",
            amount=result.amount,
            merchant=result.merchant,
            confidence=result.confidence,
        )
        return result


EXTRACTOR_CLASSES: dict[str, type[StructuredExtractor]] = {
    GeminiExtractor.name: GeminiExtractor,
    GroqExtractor.name: GroqExtractor,
}


def create_extractor(provider: str) -> StructuredExtractor:
    """Instantiate the extractor registered under `provider`."""
    try:
        extractor_cls = EXTRACTOR_CLASSES[provider]
    except KeyError:
        raise ValueError(f"Unknown extraction provider: {provider}")
    return extractor_cls()


def select_extractor(
    primary: StructuredExtractor,
    fallback: Optional[StructuredExtractor] = None,
) -> StructuredExtractor:
    """
    Pick the extractor that will serve requests.

    The fallback is used only when the primary is not configured.
    If neither is available the primary is returned, so callers see
    the primary's name in the unavailable error.
    """
    if primary.is_available():
        return primary
    if fallback is not None and fallback.is_available():
        logger.info(
            "extraction_provider_fallback",
            primary=primary.name,
            fallback=fallback.name,
        )
        return fallback
    return primary


def build_configured_extractor() -> StructuredExtractor:
    """
    Build the extractor described by AppSettings.

    EXTRACTION_PROVIDER picks the primary backend and
    EXTRACTION_FALLBACK_PROVIDER optionally names a second one.
    """
    app_settings = get_settings().app
    primary = create_extractor(app_settings.extraction_provider)

    fallback = None
    fallback_name = app_settings.extraction_fallback_provider
    if fallback_name and fallback_name != primary.name:
        fallback = create_extractor(fallback_name)

    return select_extractor(primary, fallback)
