"""
Audit Models for Expense Capture

Every significant step of a capture is recorded as an event:
which channel delivered, how the envelope was judged, why a
save was refused. Events are emitted as structured log lines.

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Capture session
    CAPTURE_STARTED = "capture_started"
    CHANNEL_RECEIVED = "channel_received"
    CHANNEL_PAYLOAD_MALFORMED = "channel_payload_malformed"
    SHARE_WAIT_STARTED = "share_wait_started"
    CAPTURE_RESOLVED = "capture_resolved"
    CAPTURE_TIMED_OUT = "capture_timed_out"
    CAPTURE_CANCELLED = "capture_cancelled"
    MANUAL_ENTRY_REQUESTED = "manual_entry_requested"

    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    LOCAL_FALLBACK_USED = "local_fallback_used"
    SMS_SKIPPED = "sms_skipped"

    # Save
    DRAFT_REJECTED = "draft_rejected"
    EXPENSE_SAVED = "expense_saved"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one capture session or request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.channel_received("session_ocr", correlation_id)
        event = AuditEventBuilder.capture_timed_out(3.0, correlation_id)
    """

    @staticmethod
    def capture_started(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_STARTED,
            correlation_id=correlation_id,
            description="Capture screen mounted, probing channels",
        )

    @staticmethod
    def channel_received(
        channel: str,
        payload_kind: str,
        correlation_id: UUID,
        discarded: Optional[list[str]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHANNEL_RECEIVED,
            correlation_id=correlation_id,
            description=f"Capture payload received on {channel}",
            details={
                "channel": channel,
                "payload_kind": payload_kind,
                "discarded_channels": discarded or [],
            },
        )

    @staticmethod
    def channel_payload_malformed(
        channel: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHANNEL_PAYLOAD_MALFORMED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Malformed payload on {channel}",
            error_message=error_message,
            details={"channel": channel},
        )

    @staticmethod
    def share_wait_started(
        wait_seconds: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_WAIT_STARTED,
            correlation_id=correlation_id,
            description="Shared image seen, waiting for OCR result",
            details={"wait_seconds": wait_seconds},
        )

    @staticmethod
    def capture_resolved(
        status: str,
        correlation_id: UUID,
        amount: Optional[Any] = None,
        confidence: Optional[float] = None,
    ) -> AuditEvent:
        severity = (
            AuditSeverity.WARNING
            if status in ("error", "no-amount")
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_RESOLVED,
            severity=severity,
            correlation_id=correlation_id,
            description=f"Capture resolved to {status}",
            details={
                "status": status,
                "amount": amount,
                "confidence": confidence,
            },
        )

    @staticmethod
    def capture_timed_out(
        timeout_seconds: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_TIMED_OUT,
            correlation_id=correlation_id,
            description=f"No capture payload after {timeout_seconds:.1f}s, leaving screen",
            details={"timeout_seconds": timeout_seconds},
        )

    @staticmethod
    def capture_cancelled(
        status: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CANCELLED,
            correlation_id=correlation_id,
            description="Capture session closed, channels cleared",
            details={"status_at_cancel": status},
            is_user_action=True,
        )

    @staticmethod
    def manual_entry_requested(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANUAL_ENTRY_REQUESTED,
            correlation_id=correlation_id,
            description="User chose to enter the amount manually",
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        provider: str,
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            correlation_id=correlation_id,
            description=f"Structured extraction completed by {provider}",
            details={
                "provider": provider,
                "confidence": confidence,
            },
        )

    @staticmethod
    def extraction_failed(
        provider: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Structured extraction failed ({error_type})",
            error_message=error_message,
            details={
                "provider": provider,
                "error_type": error_type,
            },
        )

    @staticmethod
    def provider_unavailable(
        provider: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROVIDER_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Extraction provider {provider} is not configured",
            details={"provider": provider},
        )

    @staticmethod
    def local_fallback_used(
        reason: str,
        amount: float,
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_FALLBACK_USED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"On-device OCR parser used instead of the LLM ({reason})",
            details={
                "reason": reason,
                "amount": amount,
                "confidence": confidence,
            },
        )

    @staticmethod
    def sms_skipped(sender: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SMS_SKIPPED,
            severity=AuditSeverity.DEBUG,
            description="SMS does not look like an expense",
            details={"sender": sender},
        )

    @staticmethod
    def draft_rejected(
        field: Optional[str],
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_REJECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="Save blocked by draft validation",
            details={"field": field, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def expense_saved(
        expense_id: UUID,
        description: str,
        amount: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            correlation_id=correlation_id,
            description=f"Expense saved: {description} - ₹{amount:,.2f}",
            details={
                "expense_id": str(expense_id),
                "description": description,
                "amount": amount,
            },
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Expense store rejected the save",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
