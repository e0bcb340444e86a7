"""Backup Codec: full-state JSON export and best-effort restore.

Document shape (keys are camelCase on the wire)::

    {
      "version": "2.0",
      "exportDate": "2025-07-01T12:00:00Z",
      "summary": {"totalTransactions": 3, "totalIncome": 300.0, ...},
      "data": {
        "transactions": [...], "categories": [...], "goals": [...],
        "investments": [...], "budgetCategories": [...], "budgetExpenses": [...]
      }
    }

Export (:func:`serialize` then :func:`dump`) is pure. Restore
(:func:`deserialize`) checks the ``version``/``data`` envelope, then validates
and inserts every item on its own: a bad item becomes an
:class:`~capital_ingest.models.ItemError` and the rest keep going. Restored
transactions are tagged ``backup-restaurado``.

Older exports wrote ``receita``/``despesa`` and ``importacao``; both are
accepted on restore.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
import json
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from typing import Annotated, Any, NamedTuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .errors import InvalidBackupError
from .logging_setup import get_logger
from .models import (
    SOURCE_ALIASES,
    TYPE_ALIASES,
    BudgetCategory,
    BudgetExpense,
    CanonicalTransaction,
    Category,
    DomainState,
    Goal,
    Investment,
    ItemError,
    SourceDetails,
    TransactionSource,
    TransactionType,
    cap_description,
    quantize_amount,
)
from .ledger import BackupSink

_logger = get_logger("capital_ingest.backup")

BACKUP_VERSION = "2.0"
RESTORED_TAG = "backup-restaurado"

# Amounts travel as JSON numbers.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _coerce_type(v: Any) -> Any:
    if isinstance(v, str):
        return TYPE_ALIASES.get(v.strip().lower(), v)
    return v


class _Item(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Leaf item models
# ---------------------------------------------------------------------------


class SourceDetailsItem(_Item):
    file_name: str | None = None
    bank: str | None = None
    account: str | None = None
    card: str | None = None


class TransactionItem(_Item):
    type: TransactionType
    category: str | None = None
    category_name: str | None = None
    description: str = Field(min_length=1)
    amount: Money = Field(gt=0)
    date: dt.date
    source: TransactionSource = TransactionSource.IMPORT
    source_details: SourceDetailsItem | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _legacy_type(cls, v: Any) -> Any:
        return _coerce_type(v)

    @field_validator("source", mode="before")
    @classmethod
    def _legacy_source(cls, v: Any) -> Any:
        if v is None or v == "":
            return TransactionSource.IMPORT
        if isinstance(v, str):
            return SOURCE_ALIASES.get(v.strip().lower(), v)
        return v

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category(cls, v: Any) -> Any:
        return v or None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_domain(self) -> CanonicalTransaction:
        details = None
        if self.source_details is not None:
            details = SourceDetails(**self.source_details.model_dump())
        return CanonicalTransaction(
            type=self.type,
            category=self.category,
            description=cap_description(self.description),
            amount=quantize_amount(self.amount),
            date=self.date,
            source=self.source,
            source_details=details,
            tags=frozenset(self.tags) | {RESTORED_TAG},
        )


class CategoryItem(_Item):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: TransactionType
    icon: str | None = None
    color: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _legacy_type(cls, v: Any) -> Any:
        return _coerce_type(v)

    def to_domain(self) -> Category:
        return Category(self.id, self.name, self.type, self.icon, self.color)


class GoalItem(_Item):
    name: str = Field(min_length=1)
    category: str
    target_amount: Money
    current_amount: Money = Decimal("0")
    deadline: dt.date
    description: str | None = None

    def to_domain(self) -> Goal:
        return Goal(
            name=self.name,
            category=self.category,
            target_amount=self.target_amount,
            current_amount=self.current_amount,
            deadline=self.deadline,
            description=self.description,
        )


class InvestmentItem(_Item):
    type: str
    name: str = Field(min_length=1)
    quantity: Money
    purchase_price: Money
    purchase_date: dt.date | None = None

    def to_domain(self, today: dt.date) -> Investment:
        return Investment(
            type=self.type,
            name=self.name,
            quantity=self.quantity,
            purchase_price=self.purchase_price,
            purchase_date=self.purchase_date or today,
        )


class BudgetCategoryItem(_Item):
    name: str = Field(min_length=1)
    monthly_limit: Money
    description: str | None = None
    icon: str | None = None
    color: str | None = None

    def to_domain(self) -> BudgetCategory:
        return BudgetCategory(
            name=self.name,
            monthly_limit=self.monthly_limit,
            description=self.description,
            icon=self.icon,
            color=self.color,
        )


class BudgetExpenseItem(_Item):
    category_id: str
    amount: Money
    description: str = ""
    date: dt.date
    transaction_id: str | None = None

    def to_domain(self) -> BudgetExpense:
        return BudgetExpense(
            category_id=self.category_id,
            amount=self.amount,
            description=self.description,
            date=self.date,
            transaction_id=self.transaction_id,
        )


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class BackupSummary(_Item):
    total_transactions: int = 0
    total_income: Money = Decimal("0")
    total_expenses: Money = Decimal("0")
    total_goals: int = 0
    total_investments: int = 0
    total_budget_categories: int = 0
    total_budget_expenses: int = 0


class BackupData(_Item):
    transactions: list[TransactionItem] = Field(default_factory=list)
    categories: list[CategoryItem] = Field(default_factory=list)
    goals: list[GoalItem] = Field(default_factory=list)
    investments: list[InvestmentItem] = Field(default_factory=list)
    budget_categories: list[BudgetCategoryItem] = Field(default_factory=list)
    budget_expenses: list[BudgetExpenseItem] = Field(default_factory=list)


class BackupDocument(_Item):
    version: str = BACKUP_VERSION
    export_date: dt.datetime
    summary: BackupSummary
    data: BackupData


def _transaction_item(tx: CanonicalTransaction, names: Mapping[str, str]) -> TransactionItem:
    details = None
    if tx.source_details is not None:
        d = tx.source_details
        details = SourceDetailsItem(
            file_name=d.file_name, bank=d.bank, account=d.account, card=d.card
        )
    return TransactionItem(
        type=tx.type,
        category=tx.category,
        category_name=names.get(tx.category) if tx.category else None,
        description=tx.description,
        amount=tx.amount,
        date=tx.date,
        source=tx.source,
        source_details=details,
        tags=sorted(tx.tags),
    )


def serialize(state: DomainState, *, now: dt.datetime) -> BackupDocument:
    """Wrap every collection of ``state`` into a versioned backup document."""

    names = {c.id: c.name for c in state.categories}
    income = sum(
        (t.amount for t in state.transactions if t.type is TransactionType.INCOME), Decimal("0")
    )
    expenses = sum(
        (t.amount for t in state.transactions if t.type is TransactionType.EXPENSE), Decimal("0")
    )
    return BackupDocument(
        version=BACKUP_VERSION,
        export_date=now,
        summary=BackupSummary(
            total_transactions=len(state.transactions),
            total_income=income,
            total_expenses=expenses,
            total_goals=len(state.goals),
            total_investments=len(state.investments),
            total_budget_categories=len(state.budget_categories),
            total_budget_expenses=len(state.budget_expenses),
        ),
        data=BackupData(
            transactions=[_transaction_item(t, names) for t in state.transactions],
            categories=[
                CategoryItem(id=c.id, name=c.name, type=c.type, icon=c.icon, color=c.color)
                for c in state.categories
            ],
            goals=[
                GoalItem(
                    name=g.name,
                    category=g.category,
                    target_amount=g.target_amount,
                    current_amount=g.current_amount,
                    deadline=g.deadline,
                    description=g.description,
                )
                for g in state.goals
            ],
            investments=[
                InvestmentItem(
                    type=i.type,
                    name=i.name,
                    quantity=i.quantity,
                    purchase_price=i.purchase_price,
                    purchase_date=i.purchase_date,
                )
                for i in state.investments
            ],
            budget_categories=[
                BudgetCategoryItem(
                    name=b.name,
                    monthly_limit=b.monthly_limit,
                    description=b.description,
                    icon=b.icon,
                    color=b.color,
                )
                for b in state.budget_categories
            ],
            budget_expenses=[
                BudgetExpenseItem(
                    category_id=e.category_id,
                    amount=e.amount,
                    description=e.description,
                    date=e.date,
                    transaction_id=e.transaction_id,
                )
                for e in state.budget_expenses
            ],
        ),
    )


def dump(document: BackupDocument) -> str:
    """Render ``document`` as indented UTF-8 JSON text."""

    return document.model_dump_json(by_alias=True, indent=2)


def export_filename(now: dt.datetime) -> str:
    return f"capital-backup-completo-{now:%Y-%m-%d}.json"


CSV_HEADER: tuple[str, ...] = ("Data", "Tipo", "Categoria", "Descrição", "Valor", "Fonte", "Tags")
_TYPE_LABELS = {TransactionType.INCOME: "Receita", TransactionType.EXPENSE: "Despesa"}


def export_csv(
    transactions: Iterable[CanonicalTransaction], categories: Iterable[Category]
) -> str:
    """Render ``transactions`` as a spreadsheet-friendly CSV.

    Dates are ``DD/MM/YYYY`` and amounts use a decimal comma. Category ids
    become display names when ``categories`` knows them. The text starts with a
    UTF-8 BOM, like the CSV templates.
    """

    names = {c.id: c.name for c in categories}
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for tx in transactions:
        writer.writerow(
            [
                f"{tx.date:%d/%m/%Y}",
                _TYPE_LABELS[tx.type],
                names.get(tx.category, tx.category) if tx.category else "",
                tx.description,
                str(tx.amount).replace(".", ","),
                str(tx.source),
                ", ".join(sorted(tx.tags)),
            ]
        )
    return "\ufeff" + buf.getvalue()


def csv_export_filename(now: dt.datetime) -> str:
    return f"capital-transacoes-{now:%Y-%m-%d}.csv"


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


class RestoreResult(NamedTuple):
    items_applied: int
    errors: list[ItemError]
    applied: dict[str, int]


def _load(payload: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise InvalidBackupError(f"Backup is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise InvalidBackupError("Backup must be a JSON object")
    if not payload.get("version") or not isinstance(payload.get("data"), Mapping):
        raise InvalidBackupError("JSON document is not a valid backup (missing version or data)")
    return payload


def _label(raw: Any, *keys: str) -> str:
    if isinstance(raw, Mapping):
        for key in keys:
            value = raw.get(key)
            if value:
                return str(value)
    return "N/A"


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = err.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def deserialize(
    payload: str | bytes | Mapping[str, Any],
    sink: BackupSink,
    *,
    today: dt.date | None = None,
) -> RestoreResult:
    """Restore every item of a backup document through ``sink``.

    Raises :class:`InvalidBackupError` (nothing applied) when the document
    lacks a ``version`` or ``data`` envelope. Otherwise each item is validated
    and inserted independently. Categories go first so restored transactions
    can reference user categories. ``today`` fills a missing investment
    purchase date.
    """

    doc = _load(payload)
    data = doc["data"]
    fill_date = today or dt.date.today()

    steps: tuple[tuple[str, type[_Item], Callable[[Any], Any], tuple[str, ...]], ...] = (
        ("categories", CategoryItem, lambda m: sink.add_category(m.to_domain()), ("name",)),
        (
            "transactions",
            TransactionItem,
            lambda m: sink.add_transaction(m.to_domain()),
            ("description",),
        ),
        ("goals", GoalItem, lambda m: sink.add_goal(m.to_domain()), ("name",)),
        (
            "investments",
            InvestmentItem,
            lambda m: sink.add_investment(m.to_domain(fill_date)),
            ("name",),
        ),
        (
            "budgetCategories",
            BudgetCategoryItem,
            lambda m: sink.add_budget_category(m.to_domain()),
            ("name",),
        ),
        (
            "budgetExpenses",
            BudgetExpenseItem,
            lambda m: sink.add_budget_expense(m.to_domain()),
            ("description", "categoryId"),
        ),
    )

    errors: list[ItemError] = []
    applied: dict[str, int] = {}
    for collection, model, insert, label_keys in steps:
        items = data.get(collection)
        if not isinstance(items, list):
            continue
        count = 0
        for raw in items:
            label = _label(raw, *label_keys)
            try:
                insert(model.model_validate(raw))
            except ValidationError as exc:
                errors.append(ItemError(collection, label, _first_error(exc)))
                continue
            except Exception as exc:
                _logger.warning("restore failed for %s item %r: %s", collection, label, exc)
                errors.append(ItemError(collection, label, str(exc) or type(exc).__name__))
                continue
            count += 1
        applied[collection] = count

    total = sum(applied.values())
    _logger.info(
        "restored %d item(s) from backup version %s; %d error(s)",
        total,
        doc.get("version"),
        len(errors),
    )
    return RestoreResult(items_applied=total, errors=errors, applied=applied)


__all__ = [
    "BACKUP_VERSION",
    "RESTORED_TAG",
    "TransactionItem",
    "CategoryItem",
    "GoalItem",
    "InvestmentItem",
    "BudgetCategoryItem",
    "BudgetExpenseItem",
    "BackupSummary",
    "BackupData",
    "BackupDocument",
    "serialize",
    "dump",
    "export_filename",
    "CSV_HEADER",
    "export_csv",
    "csv_export_filename",
    "RestoreResult",
    "deserialize",
]
