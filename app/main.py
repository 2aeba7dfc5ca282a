"""
API Server for Expense Capture

Serves the extraction gateway that the mobile app calls after
on-device OCR:

    POST /api/ocr/parse
    GET  /health

Run with:
    python -m app.main
or:
    uvicorn app.main:app --port 3000
"""

import structlog
import uvicorn

from expense_capture.api import create_app
from expense_capture.audit import configure_logging
from expense_capture.config import get_settings, validate_all_settings

settings = get_settings().app
configure_logging(settings.log_level)

logger = structlog.get_logger(__name__)

app = create_app(settings)


def main():
    status = validate_all_settings()
    logger.info(
        "server_starting",
        environment=settings.app_environment,
        port=settings.port,
        provider=settings.extraction_provider,
        fallback_provider=settings.extraction_fallback_provider,
        providers_configured={
            name: status.get(name, False) for name in ("gemini", "groq")
        },
    )

    if not (status.get("gemini") or status.get("groq")):
        logger.warning(
            "no_extraction_provider_configured",
            hint="Set GEMINI_API_KEY or GROQ_API_KEY; /api/ocr/parse will answer 503",
        )

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
