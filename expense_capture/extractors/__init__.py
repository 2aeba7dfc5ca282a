"""Extractors package."""

from expense_capture.extractors.base import (
    ExtractionError,
    MalformedModelOutputError,
    ProviderRequestError,
    ProviderUnavailableError,
    StructuredExtractor,
    parse_model_output,
    strip_code_fences,
)
from expense_capture.extractors.heuristic import (
    HeuristicTextExtractor,
    suggest_category,
)
from expense_capture.extractors.ocr_heuristic import (
    OcrTextHeuristicExtractor,
    determine_transaction_type,
    extract_ocr_amount,
    extract_ocr_merchant,
)
from expense_capture.extractors.prompt import (
    SYSTEM_INSTRUCTIONS,
    build_extraction_prompt,
)
from expense_capture.extractors.structured import (
    EXTRACTOR_CLASSES,
    GeminiExtractor,
    GroqExtractor,
    build_configured_extractor,
    create_extractor,
    select_extractor,
)

__all__ = [
    # Interface & errors
    "ExtractionError",
    "MalformedModelOutputError",
    "ProviderRequestError",
    "ProviderUnavailableError",
    "StructuredExtractor",
    "parse_model_output",
    "strip_code_fences",
    # Heuristic
    "HeuristicTextExtractor",
    "suggest_category",
    "OcrTextHeuristicExtractor",
    "determine_transaction_type",
    "extract_ocr_amount",
    "extract_ocr_merchant",
    # Prompt contract
    "SYSTEM_INSTRUCTIONS",
    "build_extraction_prompt",
    # LLM backends
    "EXTRACTOR_CLASSES",
    "GeminiExtractor",
    "GroqExtractor",
    "build_configured_extractor",
    "create_extractor",
    "select_extractor",
]
