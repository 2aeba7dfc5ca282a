"""
Extraction Gateway

HTTP front door for structured extraction:

    POST /api/ocr/parse   {"text": "..."}

Responses:
    200 {"success": true, "data": {amount, merchant, type, confidence}}
    400 {"error", "message"}  text missing / not a string / empty
    503 {"error", "message"}  no extraction provider configured
    500 {"error", "message"}  extraction failed

DESIGN DECISION: Provider availability is checked BEFORE extraction.
A missing API key is a deployment problem and gets its own status code
so the app can show "feature unavailable" instead of "try again".
Everything that goes wrong during extraction collapses into one
generic 500: the caller gets no provider-specific detail.
"""

from datetime import datetime
from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from expense_capture.audit import AuditLogger, create_correlation_id
from expense_capture.extractors import (
    ExtractionError,
    ProviderUnavailableError,
    StructuredExtractor,
    build_configured_extractor,
)
from expense_capture.models.audit import AuditEventBuilder
from expense_capture.models.expense import ErrorResponse, ParseSuccessResponse

logger = structlog.get_logger(__name__)

router = APIRouter()

PARSE_FAILED_MESSAGE = "Could not extract expense details from the text"


@lru_cache()
def _configured_extractor() -> StructuredExtractor:
    return build_configured_extractor()


def get_extractor() -> StructuredExtractor:
    """FastAPI dependency: the extractor serving this deployment."""
    return _configured_extractor()


@lru_cache()
def get_audit_logger() -> AuditLogger:
    """FastAPI dependency: shared audit logger."""
    return AuditLogger()


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


def _unavailable_response(extractor: StructuredExtractor) -> JSONResponse:
    return _error_response(
        503,
        "Service unavailable",
        f"{extractor.name.capitalize()} API not configured",
    )


@router.get("/health")
def health(extractor: StructuredExtractor = Depends(get_extractor)):
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "providers": {extractor.name: extractor.is_available()},
    }


@router.post("/api/ocr/parse")
async def parse_ocr_text(
    request: Request,
    extractor: StructuredExtractor = Depends(get_extractor),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """
    Turn OCR or SMS text into a structured expense record.

    No auth: the native app calls this straight after on-device OCR.
    """
    correlation_id = create_correlation_id()

    # Parse the body by hand so bad input is a 400, not FastAPI's 422
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    text = payload.get("text") if isinstance(payload, dict) else None
    if not text or not isinstance(text, str):
        return _error_response(400, "Invalid request", "Text field is required")

    if not extractor.is_available():
        await audit_logger.log(
            AuditEventBuilder.provider_unavailable(extractor.name, correlation_id)
        )
        return _unavailable_response(extractor)

    try:
        result = await extractor.extract(text)
    except ProviderUnavailableError:
        await audit_logger.log(
            AuditEventBuilder.provider_unavailable(extractor.name, correlation_id)
        )
        return _unavailable_response(extractor)
    except ExtractionError as e:
        await audit_logger.log(
            AuditEventBuilder.extraction_failed(
                provider=extractor.name,
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
        )
        return _error_response(500, "Parsing failed", PARSE_FAILED_MESSAGE)
    except Exception as e:
        logger.exception("ocr_parse_unexpected_error", correlation_id=str(correlation_id))
        await audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
            details={"provider": extractor.name},
            correlation_id=correlation_id,
        )
        return _error_response(500, "Parsing failed", PARSE_FAILED_MESSAGE)

    await audit_logger.log(
        AuditEventBuilder.extraction_completed(
            provider=extractor.name,
            confidence=result.confidence,
            correlation_id=correlation_id,
        )
    )
    return ParseSuccessResponse(data=result.to_wire()).model_dump()
