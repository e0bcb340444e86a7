"""Adapter for RecargaPay card invoices exported as CSV.

Header: ``Data,Transação,Valor``; amounts look like ``- R$ 84,69`` or
``+ R$ 232,75``. The explicit ``+`` prefix marks a credit. Invoice payments
are also credits even when the prefix is missing.
"""

from __future__ import annotations

from decimal import Decimal

from ...categories import fold
from ...models import TransactionType
from ..tabular import TabularParser

CREDIT_PHRASES: tuple[str, ...] = ("pagamento da fatura", "pagamento recebido")


class RecargaPayCsvParser(TabularParser):
    min_columns = 3

    def infer_type(self, amount: Decimal, raw_amount: str, description: str) -> TransactionType:
        compact = "".join(raw_amount.split()).replace("R$", "")
        title = fold(description)
        if compact.startswith("+") or any(p in title for p in CREDIT_PHRASES):
            return TransactionType.INCOME
        return TransactionType.EXPENSE


__all__ = ["RecargaPayCsvParser", "CREDIT_PHRASES"]
