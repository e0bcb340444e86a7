"""Keyword-rule category classifier.

Public API:
    - :class:`KeywordRule`
    - :data:`DEFAULT_RULES`
    - :class:`CategoryClassifier`

Rules are evaluated top to bottom against the folded (lower-cased,
diacritics-stripped) description; the first rule with any keyword contained in
the text wins. There is no scoring. Several keyword sets overlap on purpose
(``"bar"`` is a food keyword and also part of an entertainment phrase), so the
order of :data:`DEFAULT_RULES` is part of the behavior.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .categories import DEFAULT_CATEGORIES, FALLBACK_CATEGORY, fold
from .logging_setup import get_logger
from .models import Category, TransactionType

_logger = get_logger("capital_ingest.categorize")


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Map any of ``keywords`` to ``category`` unless an ``excludes`` word is present."""

    category: str
    keywords: tuple[str, ...]
    excludes: tuple[str, ...] = ()

    def matches(self, folded_text: str) -> bool:
        if not any(k in folded_text for k in self.keywords):
            return False
        return not any(x in folded_text for x in self.excludes)


DEFAULT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "alimentacao",
        (
            "uber eats",
            "ifood",
            "delivery",
            "restaurante",
            "lanche",
            "mercado",
            "supermercado",
            "padaria",
            "bar",
            "conversa afiada",
            "vila amazonas",
        ),
    ),
    KeywordRule(
        "transporte",
        (
            "uber trip",
            "uber",
            "taxi",
            "combustivel",
            "gasolina",
            "posto",
            "metro",
            "onibus",
            "estacionamento",
            "99",
        ),
    ),
    KeywordRule(
        "entretenimento",
        (
            "conversa afiada bar",
            "bar e",
            "cinema",
            "netflix",
            "spotify",
            "show",
            "entretenimento",
        ),
    ),
    KeywordRule(
        "servicos",
        ("pagamento de fatura", "pagamento da fatura", "fatura", "cartao", "99negocia"),
    ),
    KeywordRule(
        "moradia",
        ("aluguel", "condominio", "energia", "agua", "gas", "internet", "telefone"),
    ),
    KeywordRule(
        "saude",
        (
            "farmacia",
            "medico",
            "hospital",
            "consulta",
            "exame",
            "plano de saude",
            "dmav",
            "dimave",
        ),
    ),
    KeywordRule(
        "compras",
        ("pacaki", "loja", "shopping", "amazon", "mercado livre", "magazine"),
    ),
    KeywordRule(
        "salario",
        ("transferencia recebida", "pix recebido", "salario", "deposito", "freelance"),
    ),
    KeywordRule("salario", ("transferencia",), excludes=("enviada",)),
)


class CategoryClassifier:
    """Deterministic text -> category id mapping.

    Parameters
    ----------
    rules:
        Ordered rules; keywords are folded once at construction so callers can
        write them with accents.
    default:
        Category id returned when no rule matches.
    """

    def __init__(
        self,
        rules: Sequence[KeywordRule] = DEFAULT_RULES,
        *,
        default: str = FALLBACK_CATEGORY[TransactionType.EXPENSE],
    ) -> None:
        self._rules: tuple[KeywordRule, ...] = tuple(
            KeywordRule(
                r.category,
                tuple(fold(k) for k in r.keywords),
                tuple(fold(x) for x in r.excludes),
            )
            for r in rules
        )
        self._default = default

    @property
    def rules(self) -> tuple[KeywordRule, ...]:
        return self._rules

    def classify(self, text: str) -> str:
        """Return the category id for ``text``; never raises."""

        folded = fold(text or "")
        for rule in self._rules:
            if rule.matches(folded):
                return rule.category
        return self._default

    def classify_for(
        self,
        text: str,
        type: TransactionType,
        categories: Iterable[Category] = DEFAULT_CATEGORIES,
    ) -> str:
        """Classify ``text`` and reconcile the result with ``type``.

        The rule result is resolved against ``categories`` by id, then by the
        default category's display name (stores may use their own ids). When
        the resolved category is missing or belongs to the other type, the
        catch-all for ``type`` is used instead.
        """

        known = list(categories)
        slug = self.classify(text)
        resolved = _resolve(known, slug)
        if resolved is not None and resolved.type == type:
            return resolved.id
        fallback = _resolve(known, FALLBACK_CATEGORY[type])
        _logger.debug(
            "category %r does not fit a %s transaction; using %r",
            slug,
            type,
            fallback.id if fallback else FALLBACK_CATEGORY[type],
        )
        return fallback.id if fallback is not None else FALLBACK_CATEGORY[type]


_DEFAULT_NAMES = {c.id: c.name for c in DEFAULT_CATEGORIES}


def _resolve(known: Sequence[Category], slug: str) -> Category | None:
    for cat in known:
        if cat.id == slug:
            return cat
    name = _DEFAULT_NAMES.get(slug)
    if name is None:
        return None
    wanted = fold(name)
    for cat in known:
        if fold(cat.name) == wanted:
            return cat
    return None


__all__ = ["KeywordRule", "DEFAULT_RULES", "CategoryClassifier"]
