"""Delimited-text parsing shared by every bank CSV adapter.

Pipeline for one file:

1. :func:`split_lines` drops blank lines and keeps 1-based line numbers.
2. :func:`split_line` tokenizes a line honoring double quotes (a delimiter
   inside quotes is literal; ``""`` inside quotes is an escaped quote).
3. :func:`resolve_columns` maps the header onto the ``date``, ``amount`` and
   ``description`` roles using the descriptor's expected column names, then
   keyword fallbacks.
4. :class:`TabularParser` turns each data row into a
   :class:`~capital_ingest.models.CanonicalTransaction` or a
   :class:`~capital_ingest.models.RowError`.

Bank quirks (sign conventions, income phrases) live in subclasses under
:mod:`capital_ingest.ingest.adapters`. A row problem never aborts the batch:
the only structural failure is a file with fewer than two non-blank lines.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

from ..categories import fold
from ..errors import TooShortFileError
from ..formats import DateFormat, FormatDescriptor
from ..logging_setup import get_logger
from ..models import (
    CanonicalTransaction,
    ImportBatch,
    RowError,
    SourceDetails,
    TransactionSource,
    TransactionType,
    cap_description,
    quantize_amount,
)

_logger = get_logger("capital_ingest.ingest.tabular")

# ---------------------------------------------------------------------------
# Tokenizing
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[tuple[int, str]]:
    """Return ``(line_number, line)`` pairs for non-blank lines of ``text``."""

    text = text.lstrip("\ufeff")
    out: list[tuple[int, str]] = []
    for n, raw in enumerate(text.split("\n"), start=1):
        line = raw.rstrip("\r")
        if line.strip():
            out.append((n, line))
    return out


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one delimited line into trimmed cells."""

    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current).strip())
    return cells


# ---------------------------------------------------------------------------
# Column resolution
# ---------------------------------------------------------------------------

_ROLE_PATTERNS: dict[str, tuple[str, ...]] = {
    "date": ("data", "date"),
    "amount": ("valor", "amount"),
    "description": ("descri", "historic", "lancamento", "title", "transac"),
}


class ColumnMap(NamedTuple):
    date: int | None
    amount: int | None
    description: int | None

    def missing_required(self) -> list[str]:
        return [name for name in ("date", "amount") if getattr(self, name) is None]

    def max_index(self) -> int:
        return max(i for i in self if i is not None) if any(i is not None for i in self) else -1


def _role_of(name: str) -> str | None:
    for role, patterns in _ROLE_PATTERNS.items():
        if any(p in name for p in patterns):
            return role
    return None


def resolve_columns(header: Sequence[str], descriptor: FormatDescriptor) -> ColumnMap:
    """Locate the date/amount/description columns in ``header``.

    Names are compared case- and accent-insensitively. Each column the
    descriptor expects is looked up by containment; roles still unresolved
    afterwards fall back to keyword patterns (``data``/``date``,
    ``valor``/``amount``, ``descri``/``historic``/``lançamento``/``title``).
    """

    folded = [fold(h) for h in header]
    found: dict[str, int] = {}

    for expected in descriptor.columns:
        exp = fold(expected)
        role = _role_of(exp)
        if role is None or role in found:
            continue
        patterns = _ROLE_PATTERNS[role]
        for idx, h in enumerate(folded):
            if exp in h or any(p in h for p in patterns):
                found[role] = idx
                break

    for role, patterns in _ROLE_PATTERNS.items():
        if role in found:
            continue
        for idx, h in enumerate(folded):
            if idx in found.values():
                continue
            if any(p in h for p in patterns):
                found[role] = idx
                break

    return ColumnMap(
        date=found.get("date"),
        amount=found.get("amount"),
        description=found.get("description"),
    )


# ---------------------------------------------------------------------------
# Value conversion
# ---------------------------------------------------------------------------

_CURRENCY_RE = re.compile(r"R\$|US\$|\$|€|£|\s")
_SPLIT_DECIMAL_RE = re.compile(r"\d{1,2}")
_BARE_INTEGER_AMOUNT_RE = re.compile(r"[-+]?\s*(R\$)?\s*[\d.]+")


def parse_date(raw: str, date_format: DateFormat) -> date:
    """Convert ``raw`` to a date according to ``date_format``.

    ``DD/MM/YYYY`` accepts one-digit day/month and two-digit years (``25`` ->
    ``2025``). Raises ``ValueError`` when the text is not a valid date.
    """

    s = raw.strip()
    if not s:
        raise ValueError("empty date")
    if date_format is DateFormat.ISO:
        return date.fromisoformat(s.split("T", 1)[0].split()[0])
    parts = s.split()[0].split("/")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"invalid DD/MM/YYYY date: {raw!r}")
    day, month, year = parts
    if len(year) <= 2:
        year = "20" + year.zfill(2)
    return date(int(year), int(month), int(day))


def parse_amount(raw: str, *, decimal_separator: str = ",") -> Decimal:
    """Convert a bank amount cell to a signed ``Decimal``.

    Currency symbols and whitespace are removed; a leading ``-``/``+`` or
    surrounding parentheses carry the sign. With ``decimal_separator=","``
    dots are thousands separators (``1.200,50``); with ``"."`` commas are.
    """

    s = _CURRENCY_RE.sub("", raw or "")
    if not s:
        raise ValueError("empty amount")
    negative = False
    while s and s[0] in "+-(":
        if s[0] == "-":
            negative = True
        elif s[0] == "(" and s.endswith(")"):
            negative = True
            s = s[:-1]
        s = s[1:]
    if decimal_separator == ",":
        s = s.replace(".", "").replace(",", ".")
    else:
        s = s.replace(",", "")
    try:
        value = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not value.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -value if negative else value


def repair_split_decimal(cells: list[str], header_len: int, amount_idx: int) -> list[str]:
    """Rejoin an unquoted decimal-comma amount that the tokenizer split in two.

    ``03/06/2025,-85,50,id,desc`` tokenizes to one cell too many; when the cell
    after the amount is one or two digits the pair is merged back into
    ``-85,50``.
    """

    if len(cells) <= header_len or amount_idx + 1 >= len(cells):
        return cells
    head, tail = cells[amount_idx], cells[amount_idx + 1]
    if _BARE_INTEGER_AMOUNT_RE.fullmatch(head) and _SPLIT_DECIMAL_RE.fullmatch(tail):
        return [*cells[:amount_idx], f"{head},{tail}", *cells[amount_idx + 2 :]]
    return cells


# ---------------------------------------------------------------------------
# Type inference (default heuristics)
# ---------------------------------------------------------------------------

INCOME_HINTS: tuple[str, ...] = (
    "transferencia recebida",
    "recebida",
    "salario",
    "deposito",
    "freelance",
    "renda",
    "pagamento da fatura",
    "credito",
)
EXPENSE_HINTS: tuple[str, ...] = (
    "transferencia enviada",
    "enviada",
    "uber",
    "ifood",
    "pagamento de fatura",
    "99negocia",
)


def infer_type(amount: Decimal, description: str) -> TransactionType:
    """Default direction rule for signed bank exports.

    A positive amount with an income phrase is income; a negative amount or an
    expense phrase is an expense; any other positive amount is income.
    """

    text = fold(description)
    if amount > 0 and any(k in text for k in INCOME_HINTS):
        return TransactionType.INCOME
    if amount < 0 or any(k in text for k in EXPENSE_HINTS):
        return TransactionType.EXPENSE
    return TransactionType.INCOME


# ---------------------------------------------------------------------------
# Base parser
# ---------------------------------------------------------------------------


class TabularResult(NamedTuple):
    candidates: list[CanonicalTransaction]
    errors: list[RowError]
    batch: ImportBatch


class TabularParser:
    """Parse delimited text laid out per a :class:`FormatDescriptor`.

    Subclasses override :meth:`infer_type` (and, rarely, :meth:`tags`) to
    encode a bank's sign convention.
    """

    min_columns = 2

    def parse(
        self, text: str, descriptor: FormatDescriptor, *, file_name: str = ""
    ) -> TabularResult:
        lines = split_lines(text)
        if len(lines) < 2:
            raise TooShortFileError(len(lines))

        header = split_line(lines[0][1], descriptor.delimiter)
        columns = resolve_columns(header, descriptor)
        batch = ImportBatch(file_name=file_name, format_id=str(descriptor.id))
        candidates: list[CanonicalTransaction] = []

        missing = columns.missing_required()
        if missing:
            _logger.warning(
                "%s: header %r lacks required column(s) %s", file_name or "<text>", header, missing
            )

        for position, (line_no, line) in enumerate(lines[1:], start=1):
            cells = split_line(line, descriptor.delimiter)
            if missing:
                batch.record(line_no, cells, f"missing required column(s): {', '.join(missing)}")
                continue
            if descriptor.delimiter == "," and columns.amount is not None:
                cells = repair_split_decimal(cells, len(header), columns.amount)
            try:
                tx = self.parse_row(
                    cells, columns, descriptor, file_name=file_name, position=position
                )
            except ValueError as exc:
                batch.record(line_no, cells, str(exc))
                continue
            batch.record(line_no, cells)
            candidates.append(tx)

        errors = batch.errors
        _logger.info(
            "%s: parsed %d candidate(s), skipped %d row(s) using format %s",
            file_name or "<text>",
            len(candidates),
            len(errors),
            descriptor.id,
        )
        return TabularResult(candidates=candidates, errors=errors, batch=batch)

    def parse_row(
        self,
        cells: Sequence[str],
        columns: ColumnMap,
        descriptor: FormatDescriptor,
        *,
        file_name: str,
        position: int,
    ) -> CanonicalTransaction:
        """Convert one row; raises ``ValueError`` with a human-readable reason."""

        needed = max(columns.max_index() + 1, self.min_columns)
        if len(cells) < needed:
            raise ValueError(f"row has {len(cells)} column(s), expected at least {needed}")

        if columns.date is None or columns.amount is None:
            raise ValueError(f"missing required column(s): {', '.join(columns.missing_required())}")
        try:
            when = parse_date(cells[columns.date], descriptor.date_format)
        except ValueError as exc:
            raise ValueError(f"invalid date {cells[columns.date]!r}") from exc

        raw_amount = cells[columns.amount]
        try:
            signed = parse_amount(raw_amount, decimal_separator=descriptor.decimal_separator)
        except ValueError as exc:
            raise ValueError(f"invalid amount {raw_amount!r}") from exc
        if signed == 0:
            raise ValueError("zero amount")

        description = ""
        if columns.description is not None:
            description = cells[columns.description].strip()
        if not description:
            description = f"Transação {position}"

        return CanonicalTransaction(
            type=self.infer_type(signed, raw_amount, description),
            description=cap_description(description),
            amount=quantize_amount(signed),
            date=when,
            source=TransactionSource.IMPORT,
            source_details=SourceDetails(file_name=file_name or None, bank=descriptor.name),
            tags=frozenset(self.tags(descriptor)),
        )

    def infer_type(self, amount: Decimal, raw_amount: str, description: str) -> TransactionType:
        return infer_type(amount, description)

    def tags(self, descriptor: FormatDescriptor) -> tuple[str, ...]:
        return ("importado", "csv", str(descriptor.id))


__all__ = [
    "split_lines",
    "split_line",
    "ColumnMap",
    "resolve_columns",
    "parse_date",
    "parse_amount",
    "repair_split_decimal",
    "INCOME_HINTS",
    "EXPENSE_HINTS",
    "infer_type",
    "TabularResult",
    "TabularParser",
]
