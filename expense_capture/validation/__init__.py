"""Validation package."""

from expense_capture.validation.draft import DraftValidator

__all__ = ["DraftValidator"]
