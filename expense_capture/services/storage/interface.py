"""
Abstract Storage Interface

DESIGN DECISION: The expense CRUD layer is an external collaborator.
The capture pipeline only needs to hand it a validated Expense, so
this interface is deliberately small. It allows us to:
1. Plug in the real expenses API client
2. Use in-memory storage for testing
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from expense_capture.models.expense import Expense


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Save a validated expense.

        Args:
            expense: The expense to save

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Expense]:
        """
        List expenses, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
