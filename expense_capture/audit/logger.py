"""
Audit Logger

DESIGN DECISION: Every significant step of a capture is logged.
This provides:
1. Traceability of which channel delivered what
2. Debugging capability for flaky native handoffs
3. A record of why a save was blocked

The audit logger:
- Is async so it can sit inside the capture coroutines
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_capture.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route stdlib logging (and therefore structlog) to stdout.

    structlog's level filter defers to the stdlib logger, so without
    this only warnings and above would ever be printed.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log. Audit events are not
    persisted anywhere else.
    """

    def __init__(self, logger_name: str = "expense_capture.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written. Never raises.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value == "error":
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never take down a capture
            print(f"audit logging failed: {e}", file=sys.stderr)
            return False

        return True

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a capture session or a gateway request.
    Pass it through all subsequent operations.
    """
    return uuid4()
