"""
Structured Extractor Interface

DESIGN DECISION: Every LLM backend implements the same small capability:
report whether it is configured, and turn OCR text into an
ExtractionResult. The gateway only ever sees this interface, so
backends can be swapped by configuration without touching it.

The model's reply is parsed STRICTLY. We never coerce a string amount
into a number or guess a missing field: a reply that doesn't match
the schema is a failed extraction.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from expense_capture.models.expense import ExtractionResult, TransactionType


class ExtractionError(Exception):
    """Base exception for structured extraction errors."""
    pass


class ProviderUnavailableError(ExtractionError):
    """No credentials configured for the requested provider."""

    def __init__(self, provider: str, message: Optional[str] = None):
        self.provider = provider
        super().__init__(message or f"{provider} API not configured")


class ProviderRequestError(ExtractionError):
    """Transport or SDK failure while talking to the provider."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(message)


class MalformedModelOutputError(ExtractionError):
    """Model reply is not JSON or doesn't match the result schema."""

    def __init__(self, message: str, raw_output: Optional[str] = None):
        self.raw_output = raw_output
        super().__init__(message)


_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def _is_number(value) -> bool:
    # bool is an int subclass, but `true` is not an amount
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_model_output(text: str) -> ExtractionResult:
    """
    Parse a model reply into an ExtractionResult.

    Raises:
        MalformedModelOutputError: reply is not a JSON object, or a
            field has the wrong type or value.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedModelOutputError("Empty response from model", raw_output=text)

    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedModelOutputError(
            f"Model response is not valid JSON: {e}", raw_output=text
        )

    if not isinstance(parsed, dict):
        raise MalformedModelOutputError(
            "Model response is not a JSON object", raw_output=text
        )

    amount = parsed.get("amount")
    merchant = parsed.get("merchant")
    transaction_type = parsed.get("type")
    confidence = parsed.get("confidence")

    if not _is_number(amount):
        raise MalformedModelOutputError(
            "Invalid response structure: amount must be a number", raw_output=text
        )
    if not isinstance(merchant, str):
        raise MalformedModelOutputError(
            "Invalid response structure: merchant must be a string", raw_output=text
        )
    if not isinstance(transaction_type, str):
        raise MalformedModelOutputError(
            "Invalid response structure: type must be a string", raw_output=text
        )
    if transaction_type not in {t.value for t in TransactionType}:
        raise MalformedModelOutputError(
            f"Invalid response structure: unknown type {transaction_type!r}",
            raw_output=text,
        )
    # Model replies always carry a score; only heuristics leave it empty
    if not _is_number(confidence):
        raise MalformedModelOutputError(
            "Invalid response structure: confidence must be a number", raw_output=text
        )

    try:
        return ExtractionResult(
            amount=amount,
            merchant=merchant,
            transaction_type=TransactionType(transaction_type),
            confidence=confidence,
        )
    except ValidationError as e:
        raise MalformedModelOutputError(
            f"Invalid response structure: {e.errors()[0]['msg']}", raw_output=text
        )


class StructuredExtractor(ABC):
    """
    Abstract interface for LLM-backed structured extraction.

    Implementations perform exactly one provider round-trip per call
    and no retries of their own.
    """

    name: str = "unknown"

    @abstractmethod
    def is_available(self) -> bool:
        """True when the provider has credentials configured."""
        pass

    @abstractmethod
    async def extract(self, ocr_text: str) -> ExtractionResult:
        """
        Turn OCR text into a structured expense record.

        Raises:
            ProviderUnavailableError: provider is not configured
            ProviderRequestError: transport/SDK failure
            MalformedModelOutputError: reply failed parsing/validation
        """
        pass
