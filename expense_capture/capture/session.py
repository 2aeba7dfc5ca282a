"""
Capture Session

State for one visit to the capture screen: where reconciliation has got
to, the payload that won, and the fields the user is editing.

State machine:

    processing --> ready
               --> error
               --> no-amount --(manual entry)--> ready
               --> timed_out
               --> cancelled

Only PROCESSING can move to a resolved state. Cancelling a session that
already resolved keeps its outcome.
"""

import math
from typing import Any, Optional, Union
from uuid import UUID

from expense_capture.audit import create_correlation_id
from expense_capture.models.expense import (
    CaptureEnvelope,
    CaptureStatus,
    ConfidenceBand,
    EnvelopeStatus,
    ExpenseDraft,
    ExpenseSource,
    TransactionType,
    band_for_confidence,
)


class CaptureStateError(Exception):
    """Transition not allowed from the session's current status."""
    pass


def _usable_amount(value: Any) -> Optional[float]:
    """The amount as a float if it is a finite number > 0, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)


def _format_amount(value: float) -> str:
    """Shortest text that parses back to exactly `value`, without a trailing .0"""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def parse_amount_input(text: Optional[str]) -> Optional[float]:
    """
    Parse what the user typed into the amount field.

    Thousands separators and a leading rupee sign are accepted. Anything
    that is not a finite number comes back as None.
    """
    if text is None:
        return None
    cleaned = text.strip().lstrip("₹").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


class CaptureSession:
    """
    One capture-screen session.

    Created on mount, handed to the reconciler, and read by the UI.
    """

    def __init__(self, correlation_id: Optional[UUID] = None):
        self.correlation_id = correlation_id or create_correlation_id()
        self.status = CaptureStatus.PROCESSING
        self.envelope: Optional[CaptureEnvelope] = None
        self.confidence: Optional[float] = None

        # Draft fields the user can edit
        self.amount: Optional[float] = None
        self.amount_text: str = ""
        self.merchant: str = ""
        self.category_id: Optional[int] = None
        self.transaction_type = TransactionType.DEBIT

    @property
    def is_resolved(self) -> bool:
        return self.status != CaptureStatus.PROCESSING

    @property
    def confidence_band(self) -> Optional[ConfidenceBand]:
        if self.confidence is None:
            return None
        return band_for_confidence(self.confidence)

    def _require_processing(self) -> None:
        if self.is_resolved:
            raise CaptureStateError(
                f"Capture session already resolved ({self.status.value})"
            )

    def apply_envelope(self, envelope: CaptureEnvelope) -> CaptureStatus:
        """
        Run the decision tree on the winning envelope.

        error envelope         -> ERROR
        unusable data.amount   -> NO_AMOUNT (merchant kept)
        otherwise              -> READY with the draft pre-filled
        """
        self._require_processing()
        self.envelope = envelope

        if envelope.status == EnvelopeStatus.ERROR:
            self.status = CaptureStatus.ERROR
            return self.status

        data = envelope.data or {}

        merchant = data.get("merchant")
        if isinstance(merchant, str):
            self.merchant = merchant.strip()

        tx_type = data.get("type")
        if tx_type in (TransactionType.DEBIT.value, TransactionType.CREDIT.value):
            self.transaction_type = TransactionType(tx_type)

        confidence = data.get("confidence")
        if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
            if math.isfinite(confidence) and 0 <= confidence <= 100:
                self.confidence = float(confidence)

        amount = _usable_amount(data.get("amount"))
        if amount is None:
            self.status = CaptureStatus.NO_AMOUNT
            return self.status

        self.amount = amount
        self.amount_text = _format_amount(amount)
        self.status = CaptureStatus.READY
        return self.status

    def mark_timed_out(self) -> None:
        self._require_processing()
        self.status = CaptureStatus.TIMED_OUT

    def mark_cancelled(self) -> bool:
        """Cancel if still processing. Returns whether the status changed."""
        if self.is_resolved:
            return False
        self.status = CaptureStatus.CANCELLED
        return True

    def enter_amount_manually(self) -> None:
        """User gave up on the detected amount: no-amount -> ready, amount blank."""
        if self.status != CaptureStatus.NO_AMOUNT:
            raise CaptureStateError(
                f"Manual entry is only offered from no-amount, not {self.status.value}"
            )
        self.amount = None
        self.amount_text = ""
        self.status = CaptureStatus.READY

    def set_amount(self, value: Union[str, float, None]) -> None:
        if isinstance(value, str):
            self.amount_text = value
            self.amount = parse_amount_input(value)
        else:
            self.amount = value
            self.amount_text = "" if value is None else _format_amount(value)

    def select_category(self, category_id: Optional[int]) -> None:
        self.category_id = category_id

    def to_draft(self, source: ExpenseSource = ExpenseSource.OCR) -> ExpenseDraft:
        return ExpenseDraft(
            amount=self.amount,
            merchant=self.merchant,
            category_id=self.category_id,
            transaction_type=self.transaction_type,
            source=source,
        )
