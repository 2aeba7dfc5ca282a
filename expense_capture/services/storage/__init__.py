"""
Storage Services Package

Provides the abstract expense store seam and an in-memory implementation.
"""

from expense_capture.services.storage.interface import (
    DuplicateError,
    ExpenseStorageInterface,
    StorageError,
)
from expense_capture.services.storage.memory import InMemoryExpenseStorage

__all__ = [
    # Interface
    "ExpenseStorageInterface",
    # Exceptions
    "DuplicateError",
    "StorageError",
    # In-memory implementation
    "InMemoryExpenseStorage",
]
