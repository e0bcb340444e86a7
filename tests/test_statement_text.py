from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from capital_ingest.errors import NoTransactionsRecognizedError, UnreadableSourceError
from capital_ingest.ingest.statement_text import extract_transactions
from capital_ingest.models import TransactionType


def test_same_line_transaction_with_plus_prefix_is_income():
    [tx] = extract_transactions("10/06/2025 Pagamento Da Fatura + R$ 232,75\n")
    assert tx.type is TransactionType.INCOME
    assert tx.amount == Decimal("232.75")
    assert tx.date == date(2025, 6, 10)
    assert tx.description == "Pagamento Da Fatura"


def test_amount_lines_after_a_date_line():
    text = "\n".join(
        [
            "FATURA RECARGAPAY",
            "22/06/2025",
            "Ifd Camila Liziene Lel - R$ 84,69",
            "Uber Uber Trip Help.u - R$ 21,63",
            "23/06/2025",
            "99negocia 23jun 07 - R$ 3,00",
        ]
    )
    items = extract_transactions(text, file_name="fatura.pdf")

    assert [(t.date, t.description, t.amount) for t in items] == [
        (date(2025, 6, 22), "Ifd Camila Liziene Lel", Decimal("84.69")),
        (date(2025, 6, 22), "Uber Uber Trip Help.u", Decimal("21.63")),
        (date(2025, 6, 23), "99negocia 23jun 07", Decimal("3.00")),
    ]
    assert all(t.type is TransactionType.EXPENSE for t in items)
    assert all(t.tags == frozenset({"importado", "pdf", "fatura"}) for t in items)
    assert items[0].source_details is not None
    assert items[0].source_details.file_name == "fatura.pdf"


def test_repeated_lines_are_reported_once():
    text = "\n".join(
        [
            "05/06/2025",
            "Farmacia Sao Joao - R$ 56,96",
            "Farmacia Sao Joao - R$ 56,96",
            "05/06/2025",
            "Farmacia Sao Joao - R$ 56,96",
        ]
    )
    items = extract_transactions(text)
    assert len(items) == 1


def test_scan_is_bounded_by_window():
    text = "\n".join(
        [
            "05/06/2025",
            "Loja A - R$ 10,00",
            "Loja B - R$ 20,00",
            "Loja C - R$ 30,00",
        ]
    )
    items = extract_transactions(text, window=2)
    assert [t.description for t in items] == ["Loja A", "Loja B"]


def test_pagamento_on_the_line_marks_income():
    text = "01/07/2025\nPagamento efetuado R$ 500,00\nNotebook R$ 3.499,90"
    payment, purchase = extract_transactions(text)
    assert payment.type is TransactionType.INCOME
    assert payment.amount == Decimal("500.00")
    assert purchase.type is TransactionType.EXPENSE
    assert purchase.amount == Decimal("3499.90")


@pytest.mark.parametrize("text", ["", "   \n \n"])
def test_empty_text_is_unreadable(text: str):
    with pytest.raises(UnreadableSourceError):
        extract_transactions(text)


@pytest.mark.parametrize(
    "text",
    [
        "Resumo da fatura\nTotal R$ 100,00",
        "05/06/2025\nab - R$ 10,00",
        "05/06/2025\nSem valor nesta linha",
    ],
)
def test_text_without_transactions(text: str):
    with pytest.raises(NoTransactionsRecognizedError):
        extract_transactions(text)


def test_amount_rounding_to_zero_is_skipped():
    text = "10/06/2025 Tarifa avulsa R$ 0,004\n11/06/2025 Uber Trip R$ 21,63\n"

    [item] = extract_transactions(text)

    assert item.description == "Uber Trip"
    assert item.amount == Decimal("21.63")
    assert item.date == date(2025, 6, 11)


def test_default_window_scans_nine_following_lines():
    text = "\n".join(["05/06/2025", *(f"Loja {n:02d} R$ {n},00" for n in range(1, 11))])

    items = extract_transactions(text)

    assert len(items) == 9
    assert items[-1].description == "Loja 09"
