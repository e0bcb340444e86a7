"""Category domain helpers.

Exports
-------
- ``DEFAULT_CATEGORIES``: the fixed set every ledger starts with.
- ``normalize_name(...)`` and ``validate_name(...)``: name checks shared by
  category creation and backup restore.
- ``CategoryBook``: an ordered, in-memory category collection enforcing the
  creation and deletion rules (defaults are permanent; referenced categories
  cannot be deleted).
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from .errors import CategoryInUseError, UnknownCategoryError
from .models import Category, TransactionType

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    # Income
    Category("salario", "Salário", TransactionType.INCOME, "💼", "#10B981"),
    Category("freelance", "Freelance", TransactionType.INCOME, "💻", "#059669"),
    Category("investimentos", "Rendimentos", TransactionType.INCOME, "📈", "#047857"),
    Category("outros-receitas", "Outras Receitas", TransactionType.INCOME, "💰", "#065F46"),
    # Expenses
    Category("alimentacao", "Alimentação", TransactionType.EXPENSE, "🍽️", "#EF4444"),
    Category("transporte", "Transporte", TransactionType.EXPENSE, "🚗", "#DC2626"),
    Category("moradia", "Moradia", TransactionType.EXPENSE, "🏠", "#B91C1C"),
    Category("saude", "Saúde", TransactionType.EXPENSE, "⚕️", "#991B1B"),
    Category("educacao", "Educação", TransactionType.EXPENSE, "📚", "#7F1D1D"),
    Category("entretenimento", "Entretenimento", TransactionType.EXPENSE, "🎬", "#F97316"),
    Category("compras", "Compras", TransactionType.EXPENSE, "🛍️", "#EA580C"),
    Category("servicos", "Serviços", TransactionType.EXPENSE, "🔧", "#C2410C"),
    Category("outros-despesas", "Outras Despesas", TransactionType.EXPENSE, "📝", "#9A3412"),
)

DEFAULT_CATEGORY_IDS: frozenset[str] = frozenset(c.id for c in DEFAULT_CATEGORIES)

# Catch-all bucket per transaction type
FALLBACK_CATEGORY: dict[TransactionType, str] = {
    TransactionType.INCOME: "outros-receitas",
    TransactionType.EXPENSE: "outros-despesas",
}


# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[\w &\-/]+$")


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``."""

    return " ".join(name.strip().split())


def fold(text: str) -> str:
    """Lower-case ``text`` and strip diacritics (``"Saúde"`` -> ``"saude"``)."""

    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Validate a category display name.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: letters (accents included), numbers, spaces, and
      ``& - /``.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n) or "_" in n:
        return NameValidation(False, "Only letters, numbers, spaces, and & - / are allowed")
    return NameValidation(True, None)


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", fold(name)).strip("-") or "categoria"


# ---------------------------
# Category collection
# ---------------------------


class CategoryBook:
    """Ordered category collection: defaults first, user categories appended."""

    def __init__(self, extra: Iterable[Category] = ()) -> None:
        self._items: dict[str, Category] = {c.id: c for c in DEFAULT_CATEGORIES}
        for cat in extra:
            self.add(cat)

    def __iter__(self) -> Iterator[Category]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._items

    def get(self, category_id: str) -> Category:
        try:
            return self._items[category_id]
        except KeyError:
            raise UnknownCategoryError(category_id) from None

    def find(self, category_id: str) -> Category | None:
        return self._items.get(category_id)

    def find_by_name(self, name: str) -> Category | None:
        wanted = fold(name)
        for cat in self._items.values():
            if fold(cat.name) == wanted:
                return cat
        return None

    def add(self, category: Category) -> Category:
        """Append ``category``; returns the existing one on a case-insensitive name clash.

        Raises ``ValueError`` for an invalid name or an id already taken by a
        category with a different name.
        """

        check = validate_name(category.name)
        if not check.ok:
            raise ValueError(f"Invalid category name: {check.reason}")
        existing = self.find_by_name(category.name)
        if existing is not None and existing.type == category.type:
            return existing
        if category.id in self._items:
            raise ValueError(f"Category id already in use: {category.id!r}")
        self._items[category.id] = category
        return category

    def create(
        self,
        name: str,
        type: TransactionType,
        *,
        icon: str | None = None,
        color: str | None = None,
    ) -> Category:
        """Create a user category with an id derived from ``name``."""

        base = _slugify(name)
        cid = base
        n = 2
        while cid in self._items:
            cid = f"{base}-{n}"
            n += 1
        return self.add(Category(cid, normalize_name(name), type, icon, color))

    def delete(self, category_id: str, *, is_referenced: Callable[[str], bool]) -> None:
        """Remove a user category that no transaction references."""

        self.get(category_id)
        if category_id in DEFAULT_CATEGORY_IDS:
            raise CategoryInUseError(f"Default category cannot be deleted: {category_id!r}")
        if is_referenced(category_id):
            raise CategoryInUseError(f"Category is referenced by transactions: {category_id!r}")
        del self._items[category_id]


__all__ = [
    "DEFAULT_CATEGORIES",
    "DEFAULT_CATEGORY_IDS",
    "FALLBACK_CATEGORY",
    "normalize_name",
    "fold",
    "validate_name",
    "NameValidation",
    "CategoryBook",
]
