"""
Core Data Models for Expense Capture

These models define the schemas for everything flowing between the
extractors, the gateway, the capture channels and the save action.

DESIGN DECISION: ExtractionResult is strict (it is what an extractor
PROMISES), while CaptureEnvelope keeps its payload loosely typed. The
reconciler must be able to look at an unusable amount (missing, text,
zero) and choose the no-amount state instead of blowing up.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money movement."""
    DEBIT = "debit"
    CREDIT = "credit"


class ConfidenceBand(str, Enum):
    """
    Heuristic certainty band self-reported by the LLM extractor.

    This is a UX hint only. It NEVER decides whether a result is accepted.
    """
    HIGH = "high"            # 90-100: currency symbol + unambiguous merchant
    MEDIUM = "medium"        # 70-89: no currency marker, or unclear merchant
    LOW = "low"              # 50-69: amount inferred purely from context
    UNCERTAIN = "uncertain"  # 0-49: several plausible amounts / ambiguous


class EnvelopeStatus(str, Enum):
    """Channel-level success/failure signal."""
    SUCCESS = "success"
    ERROR = "error"


class CaptureChannelName(str, Enum):
    """
    Delivery channels, listed in probe priority order.
    """
    NATIVE_BRIDGE = "native_bridge"
    SESSION_OCR = "session_ocr"
    SHARED_IMAGE = "shared_image"


class CaptureStatus(str, Enum):
    """
    Capture session status.

    PROCESSING is the initial state. READY, ERROR and NO_AMOUNT are the
    user-facing terminal states. TIMED_OUT and CANCELLED are exits that
    take the user away from the capture screen.
    """
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"
    NO_AMOUNT = "no-amount"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class ExpenseSource(str, Enum):
    """Where a saved expense originated."""
    OCR = "OCR"
    SMS = "SMS"


# =============================================================================
# EXTRACTION
# =============================================================================

def band_for_confidence(confidence: float) -> ConfidenceBand:
    """Map a 0-100 score onto its confidence band."""
    if confidence >= 90:
        return ConfidenceBand.HIGH
    if confidence >= 70:
        return ConfidenceBand.MEDIUM
    if confidence >= 50:
        return ConfidenceBand.LOW
    return ConfidenceBand.UNCERTAIN


class ExtractionResult(BaseModel):
    """
    Structured expense record produced by exactly one extractor.

    `amount` is in base currency units with no symbol. `confidence` is
    present for LLM extractions and None for heuristic ones.
    """
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(
        ...,
        description="Amount in base currency units"
    )
    merchant: str = Field(
        ...,
        description="Merchant / payee name"
    )
    transaction_type: TransactionType = Field(
        default=TransactionType.DEBIT,
        alias="type",
        description="debit for money out, credit for money in"
    )
    confidence: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Extractor certainty (0-100), None for heuristics"
    )

    @property
    def confidence_band(self) -> Optional[ConfidenceBand]:
        if self.confidence is None:
            return None
        return band_for_confidence(self.confidence)

    def to_wire(self) -> dict:
        """Serialize with wire field names (`type`), dropping empty confidence."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# =============================================================================
# CHANNEL PAYLOADS
# =============================================================================

class CaptureEnvelope(BaseModel):
    """
    Wire/channel wrapper around an extraction result.

    `data` stays a plain dict; see the module docstring.
    """
    model_config = ConfigDict(extra="ignore")

    status: EnvelopeStatus
    data: Optional[dict[str, Any]] = None

    @classmethod
    def success(cls, result: ExtractionResult) -> "CaptureEnvelope":
        return cls(status=EnvelopeStatus.SUCCESS, data=result.to_wire())

    @classmethod
    def failure(cls) -> "CaptureEnvelope":
        return cls(status=EnvelopeStatus.ERROR)


class SharedImageRef(BaseModel):
    """Image handed to the app by the share target before OCR ran."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uri: str = Field(..., min_length=1)
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


# =============================================================================
# DRAFT & EXPENSE
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    User-confirmed subset of an extraction plus a selected category.

    Amount and category are optional here; DraftValidator decides
    whether the draft may be saved.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[float] = None
    merchant: str = ""
    category_id: Optional[int] = None
    transaction_type: TransactionType = TransactionType.DEBIT
    source: ExpenseSource = ExpenseSource.OCR


class Expense(BaseModel):
    """
    Record handed to the expense CRUD collaborator.

    Only built from a draft that passed DraftValidator.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    amount: float = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    category_id: int
    date: datetime = Field(default_factory=datetime.utcnow)
    transaction_type: TransactionType = Field(
        default=TransactionType.DEBIT,
        alias="type",
    )
    source: ExpenseSource = ExpenseSource.OCR

    @field_validator("amount")
    @classmethod
    def amount_must_be_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v


class DraftValidation(BaseModel):
    """Outcome of draft validation: ok, or the first reason it failed."""

    ok: bool
    reason: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def passed(cls) -> "DraftValidation":
        return cls(ok=True)

    @classmethod
    def failed(cls, field: str, reason: str) -> "DraftValidation":
        return cls(ok=False, field=field, reason=reason)


class SmsSuggestion(BaseModel):
    """A bank SMS the heuristic extractor recognised, awaiting confirmation."""

    body: str
    result: ExtractionResult
    suggested_category: str

# =============================================================================
# WIRE MODELS (gateway)
# =============================================================================

class ParseSuccessResponse(BaseModel):
    """200 body of POST /api/ocr/parse."""

    success: bool = True
    data: dict[str, Any]


class ErrorResponse(BaseModel):
    """4xx/5xx body of POST /api/ocr/parse."""

    error: str
    message: str
