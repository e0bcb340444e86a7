"""Data models for ``capital_ingest``.

The canonical record produced by every ingestion path is
:class:`CanonicalTransaction`. Parsers emit candidates (not yet committed);
the orchestrator classifies, optionally de-duplicates and commits them through
a transaction store (see :mod:`capital_ingest.ledger`).

Row-level and item-level problems are plain values (:class:`RowError`,
:class:`ItemError`) rather than exceptions so that a batch keeps going.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def sign(self) -> int:
        return 1 if self is TransactionType.INCOME else -1


class TransactionSource(StrEnum):
    MANUAL = "manual"
    AGGREGATOR = "aggregator"
    IMPORT = "import"


# Values written by earlier exports of the app. Backups and aggregator payloads
# may still carry them.
TYPE_ALIASES: dict[str, TransactionType] = {
    "receita": TransactionType.INCOME,
    "despesa": TransactionType.EXPENSE,
}
SOURCE_ALIASES: dict[str, TransactionSource] = {
    "importacao": TransactionSource.IMPORT,
    "open-finance": TransactionSource.AGGREGATOR,
}


# ---------------------------------------------------------------------------
# Canonical transaction
# ---------------------------------------------------------------------------

DESCRIPTION_MAX_LEN = 100
_CENT = Decimal("0.01")


def cap_description(text: str, *, limit: int = DESCRIPTION_MAX_LEN) -> str:
    """Trim ``text`` and ellipsize it when longer than ``limit`` characters."""

    s = text.strip()
    if len(s) > limit:
        return s[:limit] + "..."
    return s


def quantize_amount(value: Decimal) -> Decimal:
    """Return ``abs(value)`` rounded half-up to cents."""

    return abs(value).quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class SourceDetails:
    """Provenance of an imported transaction."""

    file_name: str | None = None
    bank: str | None = None
    account: str | None = None
    card: str | None = None


@dataclass(frozen=True, slots=True)
class CanonicalTransaction:
    """A single normalized transaction.

    ``amount`` is always positive; the direction of money lives in ``type``.
    ``category`` stays ``None`` until the classifier assigns one.
    """

    type: TransactionType
    description: str
    amount: Decimal
    date: date
    source: TransactionSource = TransactionSource.IMPORT
    category: str | None = None
    source_details: SourceDetails | None = None
    tags: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise TypeError("CanonicalTransaction.amount must be a Decimal")
        if self.amount <= 0:
            raise ValueError(f"amount must be positive, got {self.amount}")
        if len(self.description) > DESCRIPTION_MAX_LEN + 3:
            raise ValueError("description exceeds the 100 character cap")

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.type.sign

    def with_category(self, category: str | None) -> CanonicalTransaction:
        return dataclasses.replace(self, category=category)

    def with_tags(self, tags: Iterable[str]) -> CanonicalTransaction:
        return dataclasses.replace(self, tags=self.tags | frozenset(tags))


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    type: TransactionType
    icon: str | None = None
    color: str | None = None


# ---------------------------------------------------------------------------
# Other collections carried by backups
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Goal:
    name: str
    category: str
    target_amount: Decimal
    current_amount: Decimal
    deadline: date
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Investment:
    type: str
    name: str
    quantity: Decimal
    purchase_price: Decimal
    purchase_date: date


@dataclass(frozen=True, slots=True)
class BudgetCategory:
    name: str
    monthly_limit: Decimal
    description: str | None = None
    icon: str | None = None
    color: str | None = None


@dataclass(frozen=True, slots=True)
class BudgetExpense:
    category_id: str
    amount: Decimal
    description: str
    date: date
    transaction_id: str | None = None


@dataclass(frozen=True, slots=True)
class DomainState:
    """Read-only snapshot of every collection a backup covers."""

    transactions: tuple[CanonicalTransaction, ...] = ()
    categories: tuple[Category, ...] = ()
    goals: tuple[Goal, ...] = ()
    investments: tuple[Investment, ...] = ()
    budget_categories: tuple[BudgetCategory, ...] = ()
    budget_expenses: tuple[BudgetExpense, ...] = ()


# ---------------------------------------------------------------------------
# Batch outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RowError:
    """A data row that was skipped; ``line`` is 1-based within the file."""

    line: int
    reason: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.reason}"


@dataclass(frozen=True, slots=True)
class ItemError:
    """A backup entry (or a candidate at commit time) that could not be applied."""

    collection: str
    label: str
    reason: str

    def __str__(self) -> str:
        return f"{self.collection} {self.label!r}: {self.reason}"


@dataclass(frozen=True, slots=True)
class RowOutcome:
    line: int
    ok: bool
    reason: str | None = None


@dataclass(slots=True)
class ImportBatch:
    """Ephemeral record of one tabular file being parsed.

    ``rows`` and ``outcomes`` are parallel: ``outcomes[i]`` describes
    ``rows[i]``.
    """

    file_name: str
    format_id: str
    rows: list[list[str]] = field(default_factory=list)
    outcomes: list[RowOutcome] = field(default_factory=list)

    def record(self, line: int, cells: list[str], reason: str | None = None) -> None:
        self.rows.append(cells)
        self.outcomes.append(RowOutcome(line=line, ok=reason is None, reason=reason))

    @property
    def errors(self) -> list[RowError]:
        return [
            RowError(line=o.line, reason=o.reason or "skipped") for o in self.outcomes if not o.ok
        ]


__all__ = [
    "TransactionType",
    "TransactionSource",
    "TYPE_ALIASES",
    "SOURCE_ALIASES",
    "DESCRIPTION_MAX_LEN",
    "cap_description",
    "quantize_amount",
    "SourceDetails",
    "CanonicalTransaction",
    "Category",
    "Goal",
    "Investment",
    "BudgetCategory",
    "BudgetExpense",
    "DomainState",
    "RowError",
    "ItemError",
    "RowOutcome",
    "ImportBatch",
]
