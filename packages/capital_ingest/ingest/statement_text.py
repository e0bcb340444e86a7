"""Transaction extraction from linearized statement text.

Credit-card statements arrive as plain text (one string for all pages, already
pulled out of the document by a text layer, see :mod:`capital_ingest.documents`).
There is no table structure to rely on, so extraction is a line heuristic:

- A line starting with ``DD/MM/YYYY`` sets the current date. The following
  lines (up to ``window`` of them, stopping at the next date line) are
  scanned for a ``R$`` amount; the text before the amount is the description.
- A line of the form ``DD/MM/YYYY <description> <amount>`` is also a
  transaction on its own.
- ``+`` before the amount or the word "pagamento" on the line marks income;
  anything else is an expense.

Wrapped lines often repeat a transaction, so exact
``(date, description, amount)`` repeats are dropped, keeping the first.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

from ..categories import fold
from ..errors import NoTransactionsRecognizedError, UnreadableSourceError
from ..formats import DateFormat
from ..logging_setup import get_logger
from ..models import (
    CanonicalTransaction,
    SourceDetails,
    TransactionSource,
    TransactionType,
    cap_description,
    quantize_amount,
)
from .tabular import parse_amount, parse_date

_logger = get_logger("capital_ingest.ingest.statement_text")

DEFAULT_WINDOW = 9
STATEMENT_TAGS: tuple[str, ...] = ("importado", "pdf", "fatura")
MIN_DESCRIPTION_LEN = 3

_DATE_LINE_RE = re.compile(r"^(\d{2}/\d{2}/\d{4})")
_AMOUNT = r"[-+]?\s*R\$\s*[\d.,]+"
_AMOUNT_RE = re.compile(f"({_AMOUNT})")
_AMOUNT_TAIL_RE = re.compile(f"({_AMOUNT}).*")
_SAME_LINE_RE = re.compile(rf"^(\d{{2}}/\d{{2}}/\d{{4}})\s+(.+?)\s+({_AMOUNT})")
_INCOME_WORD = "pagamento"


def _amount_of(token: str) -> Decimal | None:
    try:
        value = parse_amount(token.rstrip(".,"), decimal_separator=",")
    except ValueError:
        return None
    return value if value != 0 else None


def _is_credit(token: str, text: str) -> bool:
    return token.lstrip().startswith("+") or _INCOME_WORD in fold(text)


class _Collector:
    """Accumulate candidates, dropping exact ``(date, description, amount)`` repeats."""

    def __init__(self, file_name: str) -> None:
        self.items: list[CanonicalTransaction] = []
        self._seen: set[tuple[date, str, Decimal]] = set()
        self._details = SourceDetails(file_name=file_name or None)

    def add(self, when: date, description: str, token: str, context: str) -> None:
        raw = _amount_of(token)
        if raw is None:
            return
        desc = cap_description(description)
        if len(desc) < MIN_DESCRIPTION_LEN:
            return
        amount = quantize_amount(raw)
        if amount <= 0:
            _logger.debug("ignoring sub-cent statement amount %r", token)
            return
        key = (when, desc, amount)
        if key in self._seen:
            _logger.debug("dropping repeated statement line %s %r %s", when, desc, amount)
            return
        self._seen.add(key)
        credit = _is_credit(token, context)
        self.items.append(
            CanonicalTransaction(
                type=TransactionType.INCOME if credit else TransactionType.EXPENSE,
                description=desc,
                amount=amount,
                date=when,
                source=TransactionSource.IMPORT,
                source_details=self._details,
                tags=frozenset(STATEMENT_TAGS),
            )
        )


def _date_of(token: str) -> date | None:
    try:
        return parse_date(token, DateFormat.BRAZILIAN)
    except ValueError:
        _logger.debug("ignoring invalid statement date %r", token)
        return None


def extract_transactions(
    text: str, *, file_name: str = "", window: int = DEFAULT_WINDOW
) -> list[CanonicalTransaction]:
    """Return candidate transactions recognized in statement ``text``.

    Raises
    ------
    UnreadableSourceError
        ``text`` is empty or whitespace only (protected or image-only source).
    NoTransactionsRecognizedError
        Text was present but nothing in it looked like a transaction.
    """

    if not text or not text.strip():
        raise UnreadableSourceError(
            "No text could be extracted from the document. "
            "It may be password-protected or image-only."
        )

    lines = [ln.strip() for ln in text.split("\n")]
    lines = [ln for ln in lines if ln]
    out = _Collector(file_name)

    for i, line in enumerate(lines):
        m = _DATE_LINE_RE.match(line)
        if m is None:
            continue
        when = _date_of(m.group(1))
        if when is None:
            continue

        for follow in lines[i + 1 : i + 1 + window]:
            if _DATE_LINE_RE.match(follow):
                break
            amount = _AMOUNT_RE.search(follow)
            if amount is None:
                continue
            description = _AMOUNT_TAIL_RE.sub("", follow, count=1).strip()
            out.add(when, description, amount.group(1), follow)

        same = _SAME_LINE_RE.match(line)
        if same is not None:
            out.add(when, same.group(2).strip(), same.group(3), same.group(2))

    if not out.items:
        raise NoTransactionsRecognizedError(
            "No valid transactions were found in the document. "
            "Check that it is a credit-card invoice or bank statement."
        )
    _logger.info(
        "%s: recognized %d statement transaction(s) in %d line(s)",
        file_name or "<text>",
        len(out.items),
        len(lines),
    )
    return out.items


__all__ = [
    "DEFAULT_WINDOW",
    "STATEMENT_TAGS",
    "MIN_DESCRIPTION_LEN",
    "extract_transactions",
]
