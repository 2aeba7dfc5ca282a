"""
FastAPI application factory.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from expense_capture import __version__
from expense_capture.api.gateway import router as gateway_router
from expense_capture.config import AppSettings, get_settings


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Build the API app with CORS and the extraction gateway mounted."""
    settings = settings or get_settings().app

    app = FastAPI(
        title="Expense Capture API",
        version=__version__,
        debug=settings.debug_mode,
    )

    # The mobile WebView and the native OCR processor both call in
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(gateway_router)

    return app
