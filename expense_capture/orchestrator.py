"""
Main Orchestrator for Expense Capture

This module ties together all the components and defines the
end-to-end flows for:
1. Screenshot capture (OCR text -> extractor -> channel -> reconcile -> confirm -> save)
2. SMS import (SMS bodies -> heuristics -> confirm -> save)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No expense persists without passing DraftValidator
- No extraction result is applied twice
- Every step is audited
"""

from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from expense_capture.audit import AuditLogger, create_correlation_id
from expense_capture.capture import (
    CaptureChannelReconciler,
    CaptureChannels,
    CaptureSession,
)
from expense_capture.config import CaptureSettings
from expense_capture.extractors import (
    ExtractionError,
    HeuristicTextExtractor,
    OcrTextHeuristicExtractor,
    StructuredExtractor,
    build_configured_extractor,
    suggest_category,
)
from expense_capture.models.audit import AuditEventBuilder
from expense_capture.models.expense import (
    CaptureEnvelope,
    DraftValidation,
    Expense,
    ExpenseDraft,
    ExpenseSource,
    SmsSuggestion,
)
from expense_capture.services.storage import (
    ExpenseStorageInterface,
    InMemoryExpenseStorage,
    StorageError,
)
from expense_capture.validation import DraftValidator


QUICK_SAVE_DESCRIPTION = "Quick Save"


async def save_draft(
    draft: ExpenseDraft,
    validator: DraftValidator,
    storage: Optional[ExpenseStorageInterface],
    audit_logger: AuditLogger,
    correlation_id: UUID,
) -> tuple[DraftValidation, Optional[Expense]]:
    """
    Validate a draft and hand it to the expense store.

    Returns:
        (validation, expense). The expense is None when validation failed.

    Raises:
        StorageError: If the store rejects the expense
    """
    validation = validator.validate(draft)
    if not validation.ok:
        await audit_logger.log(
            AuditEventBuilder.draft_rejected(
                validation.field,
                validation.reason,
                correlation_id,
            )
        )
        return validation, None

    expense = Expense(
        amount=draft.amount,
        description=draft.merchant[:200] or QUICK_SAVE_DESCRIPTION,
        category_id=draft.category_id,
        transaction_type=draft.transaction_type,
        source=draft.source,
    )

    if storage is not None:
        try:
            await storage.save_expense(expense)
        except StorageError as e:
            await audit_logger.log(
                AuditEventBuilder.save_failed(str(e), correlation_id)
            )
            raise

        await audit_logger.log(
            AuditEventBuilder.expense_saved(
                expense_id=expense.id,
                description=expense.description,
                amount=expense.amount,
                correlation_id=correlation_id,
            )
        )

    return validation, expense


class CaptureFlow:
    """
    Orchestrates the screenshot capture flow.

    Flow:
    1. Host side: OCR text -> structured extractor -> envelope on a channel
    2. Screen mount: reconcile channels into a CaptureSession
    3. Review: user edits amount / merchant / category
    4. Save: validate the draft, then persist

    The reconciler never saves. Saving only happens on confirm_and_save.
    """

    def __init__(
        self,
        channels: Optional[CaptureChannels] = None,
        extractor: Optional[StructuredExtractor] = None,
        validator: Optional[DraftValidator] = None,
        expense_storage: Optional[ExpenseStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        capture_settings: Optional[CaptureSettings] = None,
        ocr_fallback: Optional[OcrTextHeuristicExtractor] = None,
    ):
        self.channels = channels or CaptureChannels()
        self._extractor = extractor
        self._ocr_fallback = ocr_fallback
        self._validator = validator or DraftValidator()
        self._expense_storage = expense_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._capture_settings = capture_settings
        self._reconciler: Optional[CaptureChannelReconciler] = None

    async def deliver_ocr_text(
        self,
        ocr_text: str,
        correlation_id: Optional[UUID] = None,
    ) -> CaptureEnvelope:
        """
        Run structured extraction and publish the envelope to the OCR slot.

        This is the host's half of the handoff. Extraction failures are
        published as an error envelope, not raised. With an OCR fallback
        configured, the on-device parser's result is published instead.
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._extractor is None and self._ocr_fallback is None:
            raise ValueError("No structured extractor configured for capture")

        if self._extractor is None:
            envelope = await self._extract_locally(
                ocr_text, "no structured extractor", correlation_id
            )
            self.channels.session_ocr.publish(envelope)
            return envelope

        try:
            result = await self._extractor.extract(ocr_text)
        except ExtractionError as e:
            await self._audit_logger.log(
                AuditEventBuilder.extraction_failed(
                    provider=self._extractor.name,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            )
            if self._ocr_fallback is None:
                envelope = CaptureEnvelope.failure()
            else:
                envelope = await self._extract_locally(
                    ocr_text, type(e).__name__, correlation_id
                )
        else:
            await self._audit_logger.log(
                AuditEventBuilder.extraction_completed(
                    provider=self._extractor.name,
                    confidence=result.confidence,
                    correlation_id=correlation_id,
                )
            )
            envelope = CaptureEnvelope.success(result)

        self.channels.session_ocr.publish(envelope)
        return envelope

    async def _extract_locally(
        self,
        ocr_text: str,
        reason: str,
        correlation_id: UUID,
    ) -> CaptureEnvelope:
        result = self._ocr_fallback.extract(ocr_text)
        if result is None:
            return CaptureEnvelope.failure()

        await self._audit_logger.log(
            AuditEventBuilder.local_fallback_used(
                reason=reason,
                amount=result.amount,
                confidence=result.confidence,
                correlation_id=correlation_id,
            )
        )
        return CaptureEnvelope.success(result)

    async def capture(
        self,
        on_exit: Optional[Callable[[], Any]] = None,
    ) -> CaptureSession:
        """Mount the capture screen and reconcile until it resolves."""
        self._reconciler = CaptureChannelReconciler(
            self.channels,
            settings=self._capture_settings,
            audit_logger=self._audit_logger,
            on_exit=on_exit,
        )
        return await self._reconciler.run()

    async def cancel(self) -> None:
        """Screen unmounted: stop probing and wipe every channel."""
        if self._reconciler is not None:
            await self._reconciler.cancel()
        else:
            self.channels.clear_all()

    async def request_manual_entry(self, session: CaptureSession) -> None:
        session.enter_amount_manually()
        await self._audit_logger.log(
            AuditEventBuilder.manual_entry_requested(session.correlation_id)
        )

    async def confirm_and_save(
        self,
        session: CaptureSession,
        store: Optional[ExpenseStorageInterface] = None,
    ) -> tuple[DraftValidation, Optional[Expense]]:
        """
        Save what the user confirmed on the capture screen.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Args:
            session: The resolved capture session
            store: Expense store override, defaults to the flow's store

        Returns:
            (validation, expense). The expense is None if validation failed.
        """
        return await save_draft(
            session.to_draft(source=ExpenseSource.OCR),
            self._validator,
            store if store is not None else self._expense_storage,
            self._audit_logger,
            session.correlation_id,
        )


class SmsImportFlow:
    """
    Orchestrates the bank SMS import flow.

    Heuristic extraction only: no network, no confidence score.
    Messages that are not expense-like are skipped silently.
    """

    def __init__(
        self,
        extractor: Optional[HeuristicTextExtractor] = None,
        validator: Optional[DraftValidator] = None,
        expense_storage: Optional[ExpenseStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._extractor = extractor or HeuristicTextExtractor()
        self._validator = validator or DraftValidator()
        self._expense_storage = expense_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def scan(
        self,
        bodies: Iterable[str],
        sender: Optional[str] = None,
    ) -> list[SmsSuggestion]:
        """
        Turn SMS bodies into suggestions for the user to confirm.

        Repeats of the same (amount, merchant) are dropped.
        """
        suggestions = []
        seen: set[tuple[float, str]] = set()

        for body in bodies:
            result = self._extractor.extract(body)
            if result is None:
                await self._audit_logger.log(AuditEventBuilder.sms_skipped(sender))
                continue

            key = (result.amount, result.merchant)
            if key in seen:
                continue
            seen.add(key)

            suggestions.append(SmsSuggestion(
                body=body,
                result=result,
                suggested_category=suggest_category(body, result.merchant),
            ))

        return suggestions

    async def confirm_and_save(
        self,
        suggestion: SmsSuggestion,
        category_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[DraftValidation, Optional[Expense]]:
        """Save a confirmed SMS suggestion under the chosen category."""
        draft = ExpenseDraft(
            amount=suggestion.result.amount,
            merchant=suggestion.result.merchant,
            category_id=category_id,
            transaction_type=suggestion.result.transaction_type,
            source=ExpenseSource.SMS,
        )
        return await save_draft(
            draft,
            self._validator,
            self._expense_storage,
            self._audit_logger,
            correlation_id or create_correlation_id(),
        )


def create_app_components(
    extractor: Optional[StructuredExtractor] = None,
    use_storage: bool = True,
    use_ocr_fallback: bool = False,
) -> tuple[CaptureFlow, SmsImportFlow, Optional[ExpenseStorageInterface]]:
    """
    Factory function to create all application components.

    Args:
        extractor: Structured extractor for screenshot captures.
                   Defaults to the configured provider.
        use_storage: Whether to attach the in-memory expense store.
                     Set to False to run the flows without persistence.
        use_ocr_fallback: Parse screenshot text on-device when the
                          structured extractor fails.

    Returns:
        (capture_flow, sms_flow, expense_storage)
    """
    if extractor is None:
        extractor = build_configured_extractor()

    expense_storage = InMemoryExpenseStorage() if use_storage else None
    audit_logger = AuditLogger()

    capture_flow = CaptureFlow(
        extractor=extractor,
        expense_storage=expense_storage,
        audit_logger=audit_logger,
        ocr_fallback=OcrTextHeuristicExtractor() if use_ocr_fallback else None,
    )

    sms_flow = SmsImportFlow(
        expense_storage=expense_storage,
        audit_logger=audit_logger,
    )

    return capture_flow, sms_flow, expense_storage
