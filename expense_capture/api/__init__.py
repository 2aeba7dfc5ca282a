"""HTTP API package."""

from expense_capture.api.app import create_app
from expense_capture.api.gateway import (
    get_audit_logger,
    get_extractor,
    router,
)

__all__ = [
    "create_app",
    "get_audit_logger",
    "get_extractor",
    "router",
]
