"""Adapter for Nubank credit-card CSV exports.

Header (exact): ``date,title,amount`` with ISO dates and dot decimals.

Nubank inverts the usual sign: purchases are positive and payments or refunds
received on the card are negative. A negative amount, or a title that reads
like money coming in, is therefore income; everything else is an expense.
"""

from __future__ import annotations

from decimal import Decimal

from ...categories import fold
from ...models import TransactionType
from ..tabular import TabularParser

INCOME_TITLES: tuple[str, ...] = (
    "pagamento recebido",
    "transferencia recebida",
    "pix recebido",
    "salario",
    "deposito",
)


class NubankCsvParser(TabularParser):
    min_columns = 3

    def infer_type(self, amount: Decimal, raw_amount: str, description: str) -> TransactionType:
        title = fold(description)
        if amount < 0 or any(k in title for k in INCOME_TITLES):
            return TransactionType.INCOME
        return TransactionType.EXPENSE


__all__ = ["NubankCsvParser", "INCOME_TITLES"]
