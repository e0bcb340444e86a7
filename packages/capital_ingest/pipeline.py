"""Ingestion Orchestrator: file or payload in, committed transactions out.

One batch runs through these phases::

    SELECTED -> DETECTING -> PARSING (csv) | EXTRACTING (pdf) | DECODING_BACKUP (json)
             -> COMMITTING -> DONE

Structural errors stop a batch in the phase where they happen and become a
failed :class:`IngestResult`; nothing has been committed at that point.
Row and item errors are collected and the batch goes on. During COMMITTING
the transaction store is called once per candidate and a failing commit does
not stop the others. Already-committed items are never rolled back.

Batches are serialized by an ``asyncio.Lock`` so duplicate partitioning and
commits always see a consistent transaction list.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from pathlib import Path, PurePath
from typing import Any

from .backup import deserialize
from .categorize import CategoryClassifier
from .config import IngestSettings
from .documents import PdfTextLayer, read_document_text
from .duplicates import SIMILARITY_THRESHOLD, is_duplicate, partition
from .errors import (
    FormatNotFoundError,
    IngestError,
    StructuralError,
    UnsupportedFormatError,
)
from .formats import BankType, FormatDescriptor, FormatRegistry, default_registry, detect_bank
from .ingest.adapters import parse_csv
from .ingest.aggregator import convert_payload
from .ingest.statement_text import extract_transactions
from .ledger import BackupSink, CategoryStore, DocumentTextLayer, TransactionStore
from .logging_setup import get_logger
from .models import CanonicalTransaction, Category, ItemError, TransactionType

_logger = get_logger("capital_ingest.pipeline")

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".csv", ".pdf", ".json")


class IngestPhase(StrEnum):
    SELECTED = "selected"
    DETECTING = "detecting"
    PARSING = "parsing"
    EXTRACTING = "extracting"
    DECODING_BACKUP = "decoding_backup"
    COMMITTING = "committing"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of one batch.

    ``errors`` holds at most ``max_display_errors`` messages; ``error_count``
    is the full number. ``phase`` is where the batch stopped (``DONE`` unless
    a structural error ended it early).
    """

    success: bool
    message: str
    committed: int = 0
    duplicates: int = 0
    errors: tuple[str, ...] = ()
    error_count: int = 0
    phase: IngestPhase = IngestPhase.DONE

    @property
    def errors_truncated(self) -> bool:
        return self.error_count > len(self.errors)


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def format_brl(value: Decimal) -> str:
    """Format ``value`` as Brazilian reais: ``R$ 1.234,56`` / ``-R$ 85,50``."""

    q = abs(value).quantize(Decimal("0.01"))
    whole, _, cents = f"{q:.2f}".partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    text = f"R$ {'.'.join(groups)},{cents}"
    return f"-{text}" if value < 0 else text


def _summary(committed: Sequence[CanonicalTransaction]) -> tuple[int, int, Decimal]:
    income = sum(1 for t in committed if t.type is TransactionType.INCOME)
    net = sum((t.signed_amount for t in committed), Decimal("0"))
    return income, len(committed) - income, net


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Older bank exports are Latin-1.
        _logger.debug("input is not UTF-8; decoding as Latin-1")
        return data.decode("latin-1")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class IngestionEngine:
    """Drive files and aggregator payloads into a transaction store.

    Parameters
    ----------
    store:
        Receives one ``create_transaction`` call per committed candidate.
    categories:
        Category list used to resolve classifier results. Defaults to
        ``store`` when it also implements :class:`CategoryStore`.
    backup_sink:
        Target for JSON backup restores. Defaults to ``store`` when it
        implements :class:`BackupSink`; without one, JSON files fail.
    text_layer:
        Factory ``(data, name) -> DocumentTextLayer`` for statement documents.
    """

    def __init__(
        self,
        store: TransactionStore,
        categories: CategoryStore | None = None,
        *,
        registry: FormatRegistry | None = None,
        classifier: CategoryClassifier | None = None,
        settings: IngestSettings | None = None,
        backup_sink: BackupSink | None = None,
        text_layer: Callable[[bytes, str], DocumentTextLayer] | None = None,
    ) -> None:
        if categories is None:
            if not isinstance(store, CategoryStore):
                raise TypeError("categories is required when store has no list_categories()")
            categories = store
        if backup_sink is None and isinstance(store, BackupSink):
            backup_sink = store
        self._store = store
        self._categories = categories
        self._registry = registry or default_registry()
        self._classifier = classifier or CategoryClassifier()
        self._settings = settings or IngestSettings()
        self._backup_sink = backup_sink
        self._text_layer = text_layer or (lambda data, name: PdfTextLayer(data, name=name))
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> IngestSettings:
        return self._settings

    # ---- public entrypoints ---------------------------------------------

    async def ingest_file(
        self,
        name: str,
        reader: Callable[[], bytes],
        *,
        bank: BankType | str | None = None,
    ) -> IngestResult:
        """Ingest one file; ``reader`` returns its bytes and runs off the loop."""

        async with self._lock:
            return await self._ingest_file(name, reader, bank=bank)

    async def ingest_path(self, path: Path, *, bank: BankType | str | None = None) -> IngestResult:
        return await self.ingest_file(path.name, path.read_bytes, bank=bank)

    async def ingest_aggregator(self, payload: Iterable[Mapping[str, Any]]) -> IngestResult:
        """Convert, classify and de-duplicate aggregator transactions, then commit new ones."""

        async with self._lock:
            conversion = convert_payload(payload)
            known = list(self._categories.list_categories())
            candidates = [self._classify(c, known) for c in conversion.candidates]

            existing = list(self._store.list_transactions())
            split = partition(candidates, existing, threshold=SIMILARITY_THRESHOLD)
            fresh: list[CanonicalTransaction] = []
            duplicates = len(split.duplicates)
            # Repeats inside one payload are duplicates too.
            for cand in split.new:
                if any(is_duplicate(cand, f) for f in fresh):
                    duplicates += 1
                else:
                    fresh.append(cand)

            committed, commit_errors = self._commit(fresh)
            errors = [*map(str, conversion.errors), *map(str, commit_errors)]
            income, expenses, net = _summary(committed)
            if committed:
                message = (
                    f"{len(committed)} nova(s) transação(ões) sincronizada(s): "
                    f"{income} receitas, {expenses} despesas. Saldo líquido: {format_brl(net)}"
                )
            elif duplicates:
                message = "Nenhuma transação nova: todas já estavam registradas"
            else:
                message = "Nenhuma transação válida foi recebida"
            if duplicates:
                message += f". {duplicates} duplicada(s) ignorada(s)"
            _logger.info(
                "aggregator sync: %d committed, %d duplicate(s), %d error(s)",
                len(committed),
                duplicates,
                len(errors),
            )
            return self._result(
                bool(committed), message, errors, committed=len(committed), duplicates=duplicates
            )

    # ---- file pipeline ----------------------------------------------------

    async def _ingest_file(
        self, name: str, reader: Callable[[], bytes], *, bank: BankType | str | None
    ) -> IngestResult:
        phase = IngestPhase.SELECTED
        row_errors: list[str] = []
        try:
            phase = IngestPhase.DETECTING
            ext = PurePath(name).suffix.lower()
            if ext not in SUPPORTED_EXTENSIONS:
                raise UnsupportedFormatError(name)
            data = await asyncio.to_thread(reader)

            if ext == ".json":
                phase = IngestPhase.DECODING_BACKUP
                return self._restore(name, data)

            if ext == ".csv":
                phase = IngestPhase.PARSING
                text = _decode(data)
                descriptor = self._resolve_format(bank, text)
                parsed = parse_csv(text, descriptor, file_name=name)
                candidates = parsed.candidates
                row_errors = [str(e) for e in parsed.errors]
                origin = descriptor.name
            else:
                phase = IngestPhase.EXTRACTING
                text = await read_document_text(self._text_layer(data, name))
                candidates = extract_transactions(
                    text, file_name=name, window=self._settings.statement_window
                )
                origin = "PDF"
        except IngestError as exc:
            _logger.warning("%s: rejected during %s: %s", name, phase, exc)
            return self._result(False, str(exc), [], phase=phase)
        except OSError as exc:
            _logger.warning("%s: could not be read: %s", name, exc)
            return self._result(False, f"Could not read {name}: {exc}", [], phase=phase)

        known = list(self._categories.list_categories())
        classified = [self._classify(c, known) for c in candidates]

        phase = IngestPhase.COMMITTING
        _logger.debug("%s: %s %d candidate(s)", name, phase, len(classified))
        committed, commit_errors = self._commit(classified)
        errors = [*row_errors, *map(str, commit_errors)]
        income, expenses, net = _summary(committed)
        if committed:
            message = (
                f"{len(committed)} transação(ões) importada(s) de {origin}: "
                f"{income} receitas, {expenses} despesas. Saldo líquido: {format_brl(net)}"
            )
        else:
            message = "Nenhuma transação válida foi encontrada"
        if errors:
            message += f". {len(errors)} linha(s) com erro"
        return self._result(bool(committed), message, errors, committed=len(committed))

    def _resolve_format(self, bank: BankType | str | None, text: str) -> FormatDescriptor:
        wanted = bank or self._settings.default_bank or detect_bank(text)
        try:
            return self._registry.lookup(str(wanted))
        except FormatNotFoundError:
            _logger.warning("no descriptor for bank %r; using the generic layout", str(wanted))
            return self._registry.lookup(BankType.GENERIC)

    def _restore(self, name: str, data: bytes) -> IngestResult:
        if self._backup_sink is None:
            raise StructuralError(f"Cannot restore {name}: no backup sink configured")
        restored = deserialize(_decode(data), self._backup_sink)
        return self._result(
            restored.items_applied > 0,
            _restore_message(restored.items_applied, restored.applied, len(restored.errors)),
            [str(e) for e in restored.errors],
            committed=restored.items_applied,
        )

    # ---- shared steps -----------------------------------------------------

    def _classify(
        self, candidate: CanonicalTransaction, known: Sequence[Category]
    ) -> CanonicalTransaction:
        if candidate.category is not None:
            hint = next((c for c in known if c.id == candidate.category), None)
            if hint is not None and hint.type == candidate.type:
                return candidate
        category = self._classifier.classify_for(candidate.description, candidate.type, known)
        return candidate.with_category(category)

    def _commit(
        self, candidates: Sequence[CanonicalTransaction]
    ) -> tuple[list[CanonicalTransaction], list[ItemError]]:
        committed: list[CanonicalTransaction] = []
        errors: list[ItemError] = []
        for cand in candidates:
            try:
                committed.append(self._store.create_transaction(cand))
            except Exception as exc:
                _logger.warning("commit failed for %r: %s", cand.description, exc)
                errors.append(ItemError("transactions", cand.description, str(exc)))
        return committed, errors

    def _result(
        self,
        success: bool,
        message: str,
        errors: Sequence[str],
        *,
        committed: int = 0,
        duplicates: int = 0,
        phase: IngestPhase = IngestPhase.DONE,
    ) -> IngestResult:
        cap = self._settings.max_display_errors
        return IngestResult(
            success=success,
            message=message,
            committed=committed,
            duplicates=duplicates,
            errors=tuple(errors[:cap]),
            error_count=len(errors),
            phase=phase,
        )


_COLLECTION_LABELS: dict[str, str] = {
    "categories": "categorias",
    "transactions": "transações",
    "goals": "objetivos",
    "investments": "investimentos",
    "budgetCategories": "categorias de orçamento",
    "budgetExpenses": "despesas de orçamento",
}


def _restore_message(total: int, applied: Mapping[str, int], error_count: int) -> str:
    if total == 0 and error_count == 0:
        return "Backup não contém itens para restaurar"
    parts = [f"{n} {_COLLECTION_LABELS.get(k, k)}" for k, n in applied.items() if n]
    message = f"Backup restaurado: {total} item(ns) importado(s)"
    if parts:
        message += " (" + ", ".join(parts) + ")"
    if error_count:
        message += f". {error_count} erro(s) encontrado(s)"
    return message


__all__ = [
    "SUPPORTED_EXTENSIONS",
    "IngestPhase",
    "IngestResult",
    "IngestionEngine",
    "format_brl",
]
