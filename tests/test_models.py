"""
Tests for Expense Capture

Test strategy:
1. Unit tests for individual components (models, extractors, validator)
2. Integration tests for flows (with faked providers and channels)
3. No real API calls in tests (use fakes)
"""

import math
from uuid import uuid4

import pytest

from expense_capture.models.expense import (
    CaptureEnvelope,
    CaptureStatus,
    ConfidenceBand,
    DraftValidation,
    EnvelopeStatus,
    Expense,
    ExpenseDraft,
    ExpenseSource,
    ExtractionResult,
    SharedImageRef,
    TransactionType,
    band_for_confidence,
)
from expense_capture.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExtractionResult:
    """Tests for the structured extraction record."""

    def test_accepts_wire_field_name(self):
        """Test `type` populates transaction_type."""
        result = ExtractionResult(amount=500, merchant="Swiggy", type="credit")
        assert result.transaction_type == TransactionType.CREDIT

    def test_accepts_python_field_name(self):
        result = ExtractionResult(
            amount=500,
            merchant="Swiggy",
            transaction_type=TransactionType.DEBIT,
        )
        assert result.transaction_type == TransactionType.DEBIT

    def test_defaults_to_debit_without_confidence(self):
        result = ExtractionResult(amount=10, merchant="Bank Transaction")
        assert result.transaction_type == TransactionType.DEBIT
        assert result.confidence is None
        assert result.confidence_band is None

    def test_confidence_bounds(self):
        """Test confidence must be within 0-100."""
        with pytest.raises(ValueError):
            ExtractionResult(amount=1, merchant="x", confidence=101)
        with pytest.raises(ValueError):
            ExtractionResult(amount=1, merchant="x", confidence=-1)

    def test_to_wire_uses_type_and_drops_missing_confidence(self):
        result = ExtractionResult(amount=99.5, merchant="Zomato")
        assert result.to_wire() == {
            "amount": 99.5,
            "merchant": "Zomato",
            "type": "debit",
        }

    def test_to_wire_keeps_confidence(self):
        result = ExtractionResult(
            amount=245, merchant="Store", type="debit", confidence=80
        )
        assert result.to_wire()["confidence"] == 80


class TestConfidenceBands:
    """Tests for confidence banding."""

    @pytest.mark.parametrize("score,band", [
        (100, ConfidenceBand.HIGH),
        (90, ConfidenceBand.HIGH),
        (89, ConfidenceBand.MEDIUM),
        (70, ConfidenceBand.MEDIUM),
        (69, ConfidenceBand.LOW),
        (50, ConfidenceBand.LOW),
        (49, ConfidenceBand.UNCERTAIN),
        (0, ConfidenceBand.UNCERTAIN),
    ])
    def test_band_edges(self, score, band):
        assert band_for_confidence(score) == band

    def test_result_exposes_band(self):
        result = ExtractionResult(amount=245, merchant="x", confidence=75)
        assert result.confidence_band == ConfidenceBand.MEDIUM


class TestEnvelopeModels:
    """Tests for channel payload models."""

    def test_success_envelope_carries_wire_data(self):
        result = ExtractionResult(amount=245, merchant="Swiggy", confidence=95)
        envelope = CaptureEnvelope.success(result)
        assert envelope.status == EnvelopeStatus.SUCCESS
        assert envelope.data == {
            "amount": 245.0,
            "merchant": "Swiggy",
            "type": "debit",
            "confidence": 95.0,
        }

    def test_failure_envelope_has_no_data(self):
        envelope = CaptureEnvelope.failure()
        assert envelope.status == EnvelopeStatus.ERROR
        assert envelope.data is None

    def test_envelope_keeps_unusable_amount(self):
        """An envelope must hold data the decision tree will reject."""
        envelope = CaptureEnvelope.model_validate(
            {"status": "success", "data": {"amount": "abc", "merchant": "X"}}
        )
        assert envelope.data["amount"] == "abc"

    def test_envelope_rejects_unknown_status(self):
        with pytest.raises(ValueError):
            CaptureEnvelope.model_validate({"status": "pending"})

    def test_shared_image_ref_alias(self):
        ref = SharedImageRef.model_validate(
            {"uri": "content://media/1", "mimeType": "image/png"}
        )
        assert ref.mime_type == "image/png"

    def test_shared_image_ref_requires_uri(self):
        with pytest.raises(ValueError):
            SharedImageRef.model_validate({"uri": ""})


class TestExpenseModels:
    """Tests for draft and saved expense models."""

    def test_draft_defaults(self):
        draft = ExpenseDraft()
        assert draft.amount is None
        assert draft.merchant == ""
        assert draft.category_id is None
        assert draft.source == ExpenseSource.OCR

    def test_draft_strips_merchant(self):
        draft = ExpenseDraft(merchant="  Swiggy  ")
        assert draft.merchant == "Swiggy"

    def test_expense_creation(self):
        expense = Expense(amount=245, description="Swiggy", category_id=3)
        assert expense.transaction_type == TransactionType.DEBIT
        assert expense.source == ExpenseSource.OCR
        assert expense.id is not None

    def test_expense_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            Expense(amount=0, description="x", category_id=1)

    def test_expense_rejects_infinite_amount(self):
        with pytest.raises(ValueError):
            Expense(amount=math.inf, description="x", category_id=1)

    def test_expense_rejects_empty_description(self):
        with pytest.raises(ValueError):
            Expense(amount=1, description="", category_id=1)

    def test_draft_validation_helpers(self):
        assert DraftValidation.passed().ok is True
        failed = DraftValidation.failed("amount", "Please enter an amount")
        assert failed.ok is False
        assert failed.field == "amount"


class TestCaptureStatus:
    """Tests for capture status values."""

    def test_ui_state_values(self):
        assert CaptureStatus.PROCESSING.value == "processing"
        assert CaptureStatus.READY.value == "ready"
        assert CaptureStatus.ERROR.value == "error"
        assert CaptureStatus.NO_AMOUNT.value == "no-amount"


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.CAPTURE_STARTED,
            description="Capture screen mounted",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dict."""
        correlation_id = uuid4()
        event = AuditEventBuilder.capture_timed_out(3.0, correlation_id)
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "capture_timed_out"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_channel_received_records_discarded(self):
        event = AuditEventBuilder.channel_received(
            "native_bridge",
            "CaptureEnvelope",
            uuid4(),
            discarded=["session_ocr"],
        )
        assert event.details["discarded_channels"] == ["session_ocr"]

    def test_resolved_to_no_amount_is_warning(self):
        event = AuditEventBuilder.capture_resolved("no-amount", uuid4())
        assert event.severity == AuditSeverity.WARNING

    def test_draft_rejected_is_user_action(self):
        event = AuditEventBuilder.draft_rejected(
            "category_id", "Please select a category", uuid4()
        )
        assert event.is_user_action is True
        assert event.details["field"] == "category_id"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
