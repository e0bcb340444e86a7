"""Conversion of bank-aggregator (Open Finance) transactions to candidates.

Aggregator payloads are untrusted JSON. Each transaction is validated with a
pydantic model (unknown keys ignored) before conversion; invalid entries are
reported as :class:`~capital_ingest.models.ItemError` values.

Conversion rules:

- ``amount > 0`` is income, anything else an expense; the stored amount is
  the absolute value.
- The date is ``accounting_date``.
- The description goes through :func:`capital_ingest.duplicates.clean_description`
  so it compares cleanly against earlier syncs.
- The aggregator's own category label is mapped onto the default taxonomy
  when it is specific enough; otherwise ``category`` stays ``None`` and the
  keyword classifier decides later.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..duplicates import clean_description
from ..logging_setup import get_logger
from ..models import (
    CanonicalTransaction,
    ItemError,
    SourceDetails,
    TransactionSource,
    TransactionType,
    quantize_amount,
)

_logger = get_logger("capital_ingest.ingest.aggregator")

AGGREGATOR_TAG = "belvo"
CREDIT_CARD_TAG = "cartao-credito"


class AggregatorAccount(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str
    name: str = ""
    type: str | None = None
    category: str | None = None


class AggregatorMerchant(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str | None = None


class AggregatorCreditCard(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    bill_name: str | None = None


class AggregatorTransaction(BaseModel):
    """The subset of an aggregator transaction this engine reads."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str | None = None
    account: AggregatorAccount
    accounting_date: date
    amount: Decimal
    description: str = ""
    category: str = ""
    subcategory: str | None = None
    merchant: AggregatorMerchant | None = None
    credit_card_data: AggregatorCreditCard | None = None

    @field_validator("accounting_date", mode="before")
    @classmethod
    def _date_only(cls, v: Any) -> Any:
        # Some institutions send a full timestamp here.
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v

    @field_validator("amount")
    @classmethod
    def _finite_non_zero(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v == 0:
            raise ValueError("amount must be a finite, non-zero number")
        return v

    @field_validator("description", "category", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


# ---------------------------------------------------------------------------
# Category hint mapping
# ---------------------------------------------------------------------------

_INCOME_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("salario", ("salary", "salario")),
    ("investimentos", ("transfer", "investment")),
)
_EXPENSE_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("alimentacao", ("food", "restaurant", "alimentacao")),
    ("transporte", ("transport", "uber", "transporte")),
    ("moradia", ("rent", "utilities", "moradia")),
    ("saude", ("health", "medical", "saude")),
    ("educacao", ("education", "educacao")),
    ("entretenimento", ("entertainment", "leisure", "entretenimento")),
    ("compras", ("shopping", "retail", "compras")),
    ("servicos", ("service", "subscription", "servicos")),
)


def map_category(label: str, type: TransactionType) -> str | None:
    """Map an aggregator category label to a default category id, if any matches."""

    text = (label or "").lower()
    hints = _INCOME_HINTS if type is TransactionType.INCOME else _EXPENSE_HINTS
    for category, words in hints:
        if any(w in text for w in words):
            return category
    return None


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def _tags(tx: AggregatorTransaction) -> frozenset[str]:
    tags = [
        tx.account.type,
        tx.subcategory,
        tx.merchant.name if tx.merchant else None,
        CREDIT_CARD_TAG if tx.credit_card_data and tx.credit_card_data.bill_name else None,
        AGGREGATOR_TAG,
    ]
    return frozenset(t for t in tags if t)


def convert_transaction(tx: AggregatorTransaction) -> CanonicalTransaction:
    type_ = TransactionType.INCOME if tx.amount > 0 else TransactionType.EXPENSE
    return CanonicalTransaction(
        type=type_,
        description=clean_description(tx.description),
        amount=quantize_amount(tx.amount),
        date=tx.accounting_date,
        source=TransactionSource.AGGREGATOR,
        category=map_category(tx.category, type_),
        source_details=SourceDetails(
            bank=tx.account.name or None,
            account=tx.account.id,
            card=tx.credit_card_data.bill_name if tx.credit_card_data else None,
        ),
        tags=_tags(tx),
    )


class AggregatorConversion(NamedTuple):
    candidates: list[CanonicalTransaction]
    errors: list[ItemError]


def convert_payload(payload: Iterable[Mapping[str, Any]]) -> AggregatorConversion:
    """Validate and convert every entry of ``payload``; bad entries become errors."""

    candidates: list[CanonicalTransaction] = []
    errors: list[ItemError] = []
    for pos, raw in enumerate(payload):
        label = str(pos)
        if isinstance(raw, Mapping):
            label = str(raw.get("id") or raw.get("description") or pos)
        try:
            tx = AggregatorTransaction.model_validate(raw)
            candidates.append(convert_transaction(tx))
        except (ValidationError, ValueError) as exc:
            _logger.warning("skipping aggregator transaction %s: %s", label, exc)
            errors.append(ItemError("transactions", label, _short_reason(exc)))
    return AggregatorConversion(candidates=candidates, errors=errors)


def _short_reason(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        msg = first.get("msg", "invalid value")
        return f"{loc}: {msg}" if loc else msg
    return str(exc)


class ConversionStats(NamedTuple):
    total: int
    income: int
    expenses: int
    categories: dict[str, int]
    date_range: tuple[date, date] | None


def conversion_stats(candidates: Iterable[CanonicalTransaction]) -> ConversionStats:
    """Summarize converted candidates (counts per type and category, date span)."""

    items = list(candidates)
    if not items:
        return ConversionStats(0, 0, 0, {}, None)
    by_category = Counter(c.category or "sem-categoria" for c in items)
    income = sum(1 for c in items if c.type is TransactionType.INCOME)
    dates = sorted(c.date for c in items)
    return ConversionStats(
        total=len(items),
        income=income,
        expenses=len(items) - income,
        categories=dict(by_category),
        date_range=(dates[0], dates[-1]),
    )


__all__ = [
    "AggregatorTransaction",
    "AggregatorConversion",
    "ConversionStats",
    "map_category",
    "convert_transaction",
    "convert_payload",
    "conversion_stats",
]
