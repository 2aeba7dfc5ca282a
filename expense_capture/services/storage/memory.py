"""
In-Memory Expense Storage

Used for local development and tests, and as the default store when
no CRUD backend is wired in. Contents are lost when the process exits.
"""

from typing import Optional
from uuid import UUID

from expense_capture.models.expense import Expense
from expense_capture.services.storage.interface import (
    DuplicateError,
    ExpenseStorageInterface,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Dict-backed implementation of ExpenseStorageInterface."""

    def __init__(self):
        self._expenses: dict[UUID, Expense] = {}

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense {expense.id} already exists")
        self._expenses[expense.id] = expense
        return True

    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        return self._expenses.get(expense_id)

    async def list_expenses(
        self,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Expense]:
        expenses = sorted(
            self._expenses.values(),
            key=lambda e: e.date,
            reverse=True,
        )
        return expenses[offset:offset + limit]

    def __len__(self) -> int:
        return len(self._expenses)
