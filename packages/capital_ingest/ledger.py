"""Collaborator protocols and an in-memory ledger implementing them.

The engine reads and writes domain state only through these protocols:

- :class:`TransactionStore`: commit one transaction, list committed ones.
- :class:`CategoryStore`: read-only category list.
- :class:`BackupSink`: one insert method per backup collection.
- :class:`DocumentTextLayer`: async page texts of a statement document.

:class:`InMemoryLedger` implements the first three for the CLI and tests. It
enforces the commit-time rules: a category, when set, must exist and match
the transaction's type. It is not a storage backend; the CLI persists it as a
backup document.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Sequence
from decimal import Decimal
from typing import Protocol, runtime_checkable

from .categories import CategoryBook
from .errors import CategoryTypeMismatchError
from .logging_setup import get_logger
from .models import (
    BudgetCategory,
    BudgetExpense,
    CanonicalTransaction,
    Category,
    DomainState,
    Goal,
    Investment,
    TransactionType,
)

_logger = get_logger("capital_ingest.ledger")


@runtime_checkable
class TransactionStore(Protocol):
    def create_transaction(self, record: CanonicalTransaction) -> CanonicalTransaction: ...

    def list_transactions(self) -> Sequence[CanonicalTransaction]: ...


@runtime_checkable
class CategoryStore(Protocol):
    def list_categories(self) -> Sequence[Category]: ...


@runtime_checkable
class BackupSink(Protocol):
    def add_transaction(self, record: CanonicalTransaction) -> CanonicalTransaction: ...

    def add_category(self, category: Category) -> Category: ...

    def add_goal(self, goal: Goal) -> Goal: ...

    def add_investment(self, investment: Investment) -> Investment: ...

    def add_budget_category(self, category: BudgetCategory) -> BudgetCategory: ...

    def add_budget_expense(self, expense: BudgetExpense) -> BudgetExpense: ...


@runtime_checkable
class DocumentTextLayer(Protocol):
    def pages(self) -> AsyncIterator[str]: ...


def _require_positive(value: Decimal, field: str) -> None:
    if value <= 0:
        raise ValueError(f"{field} must be positive, got {value}")


def _require_text(value: str, field: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{field} cannot be empty")


class InMemoryLedger:
    """Process-local domain state.

    Parameters
    ----------
    categories:
        User categories to start with, appended after the defaults.
    state:
        Optional snapshot whose collections are loaded as-is (categories are
        merged into the defaults). Transactions in it are validated like any
        other commit.
    """

    def __init__(
        self,
        categories: Iterable[Category] = (),
        *,
        state: DomainState | None = None,
    ) -> None:
        self._book = CategoryBook(categories)
        self._transactions: list[CanonicalTransaction] = []
        self._goals: list[Goal] = []
        self._investments: list[Investment] = []
        self._budget_categories: list[BudgetCategory] = []
        self._budget_expenses: list[BudgetExpense] = []
        if state is not None:
            for cat in state.categories:
                self._book.add(cat)
            for tx in state.transactions:
                self.create_transaction(tx)
            self._goals.extend(state.goals)
            self._investments.extend(state.investments)
            self._budget_categories.extend(state.budget_categories)
            self._budget_expenses.extend(state.budget_expenses)

    # ---- TransactionStore -------------------------------------------------

    def create_transaction(self, record: CanonicalTransaction) -> CanonicalTransaction:
        if record.category is not None:
            category = self._book.get(record.category)
            if category.type != record.type:
                raise CategoryTypeMismatchError(record.category, category.type, record.type)
        self._transactions.append(record)
        _logger.debug(
            "committed %s %s on %s (%s)", record.type, record.amount, record.date, record.category
        )
        return record

    def list_transactions(self) -> Sequence[CanonicalTransaction]:
        return tuple(self._transactions)

    # ---- CategoryStore ----------------------------------------------------

    def list_categories(self) -> Sequence[Category]:
        return tuple(self._book)

    def create_category(
        self,
        name: str,
        type: TransactionType,
        *,
        icon: str | None = None,
        color: str | None = None,
    ) -> Category:
        return self._book.create(name, type, icon=icon, color=color)

    def delete_category(self, category_id: str) -> None:
        self._book.delete(
            category_id,
            is_referenced=lambda cid: any(t.category == cid for t in self._transactions),
        )

    # ---- BackupSink -------------------------------------------------------

    def add_transaction(self, record: CanonicalTransaction) -> CanonicalTransaction:
        return self.create_transaction(record)

    def add_category(self, category: Category) -> Category:
        return self._book.add(category)

    def add_goal(self, goal: Goal) -> Goal:
        _require_text(goal.name, "goal name")
        _require_positive(goal.target_amount, "targetAmount")
        if goal.current_amount < 0:
            raise ValueError("currentAmount cannot be negative")
        self._goals.append(goal)
        return goal

    def add_investment(self, investment: Investment) -> Investment:
        _require_text(investment.name, "investment name")
        _require_positive(investment.quantity, "quantity")
        if investment.purchase_price < 0:
            raise ValueError("purchasePrice cannot be negative")
        self._investments.append(investment)
        return investment

    def add_budget_category(self, category: BudgetCategory) -> BudgetCategory:
        _require_text(category.name, "budget category name")
        _require_positive(category.monthly_limit, "monthlyLimit")
        self._budget_categories.append(category)
        return category

    def add_budget_expense(self, expense: BudgetExpense) -> BudgetExpense:
        _require_text(expense.category_id, "categoryId")
        _require_positive(expense.amount, "amount")
        self._budget_expenses.append(expense)
        return expense

    # ---- Snapshot ---------------------------------------------------------

    def snapshot(self) -> DomainState:
        return DomainState(
            transactions=tuple(self._transactions),
            categories=tuple(self._book),
            goals=tuple(self._goals),
            investments=tuple(self._investments),
            budget_categories=tuple(self._budget_categories),
            budget_expenses=tuple(self._budget_expenses),
        )


__all__ = [
    "TransactionStore",
    "CategoryStore",
    "BackupSink",
    "DocumentTextLayer",
    "InMemoryLedger",
]
