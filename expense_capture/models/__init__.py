"""
Data Models Package

This package contains all Pydantic models used by Expense Capture.
All data flowing through the system must conform to these schemas.
"""

from expense_capture.models.expense import (
    CaptureChannelName,
    CaptureEnvelope,
    CaptureStatus,
    ConfidenceBand,
    DraftValidation,
    EnvelopeStatus,
    ErrorResponse,
    Expense,
    ExpenseDraft,
    ExpenseSource,
    ExtractionResult,
    ParseSuccessResponse,
    SharedImageRef,
    SmsSuggestion,
    TransactionType,
    band_for_confidence,
)
from expense_capture.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CaptureChannelName",
    "CaptureEnvelope",
    "CaptureStatus",
    "ConfidenceBand",
    "DraftValidation",
    "EnvelopeStatus",
    "ErrorResponse",
    "Expense",
    "ExpenseDraft",
    "ExpenseSource",
    "ExtractionResult",
    "ParseSuccessResponse",
    "SharedImageRef",
    "SmsSuggestion",
    "TransactionType",
    "band_for_confidence",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
