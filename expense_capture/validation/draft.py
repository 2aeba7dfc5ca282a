"""
Draft Validation

The last gate before the save action reaches the expense store.

IMPORTANT: Validation NEVER silently fixes issues.
A draft with a missing amount is rejected, not defaulted to zero.
The first failing rule is reported so the UI can point at one field.
"""

import math

from expense_capture.models.expense import DraftValidation, ExpenseDraft


class DraftValidator:
    """
    Validates a user-confirmed draft.

    Synchronous and side-effect free.
    """

    def validate(self, draft: ExpenseDraft) -> DraftValidation:
        amount = draft.amount

        if amount is None:
            return DraftValidation.failed("amount", "Please enter an amount")

        if isinstance(amount, bool) or not math.isfinite(amount):
            return DraftValidation.failed("amount", "Amount must be a valid number")

        if amount <= 0:
            return DraftValidation.failed("amount", "Amount must be greater than zero")

        if draft.category_id is None:
            return DraftValidation.failed("category_id", "Please select a category")

        return DraftValidation.passed()
