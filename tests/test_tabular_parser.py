from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from capital_ingest.categorize import CategoryClassifier
from capital_ingest.errors import TooShortFileError
from capital_ingest.formats import BankType, DateFormat, default_registry
from capital_ingest.ingest.adapters import (
    NubankCsvParser,
    RecargaPayCsvParser,
    SignedCsvParser,
    parse_csv,
    parser_for,
)
from capital_ingest.ingest.tabular import ColumnMap, parse_amount, parse_date, split_line
from capital_ingest.models import TransactionSource, TransactionType

GENERIC_HEADER = "Data,Valor,Identificador,Descrição"


def _descriptor(bank: str):
    return default_registry().lookup(bank)


def test_unquoted_decimal_comma_is_rejoined():
    text = f'{GENERIC_HEADER}\n03/06/2025,-85,50,id1,"Uber Trip Help.u"\n'
    result = parse_csv(text, _descriptor("generic"), file_name="extrato.csv")

    assert result.errors == []
    [tx] = result.candidates
    assert tx.type is TransactionType.EXPENSE
    assert tx.amount == Decimal("85.50")
    assert tx.date == date(2025, 6, 3)
    assert tx.description == "Uber Trip Help.u"
    assert tx.source is TransactionSource.IMPORT
    assert tx.category is None
    assert CategoryClassifier().classify(tx.description) == "transporte"


def test_every_data_line_is_a_candidate_or_an_error():
    text = "\n".join(
        [
            GENERIC_HEADER,
            '03/06/2025,"-85,50",a,Uber',
            '32/13/2025,"10,00",b,Bad date',
            "04/06/2025,abc,c,Bad amount",
            "",
            '05/06/2025,"0,00",d,Zero',
            "06/06/2025",
        ]
    )
    result = parse_csv(text, _descriptor("generic"))

    assert len(result.candidates) == 1
    assert [e.line for e in result.errors] == [3, 4, 6, 7]
    assert len(result.candidates) + len(result.errors) == 5
    assert "invalid date" in result.errors[0].reason
    assert "invalid amount" in result.errors[1].reason
    assert result.errors[2].reason == "zero amount"
    assert len(result.batch.rows) == len(result.batch.outcomes) == 5


@pytest.mark.parametrize("text", ["", "   \n\n", GENERIC_HEADER + "\n"])
def test_fewer_than_two_lines_is_structural(text: str):
    with pytest.raises(TooShortFileError):
        parse_csv(text, _descriptor("generic"))


def test_header_without_required_columns_rejects_every_row():
    result = parse_csv("Foo,Bar\n1,2\n3,4", _descriptor("generic"))
    assert result.candidates == []
    assert len(result.errors) == 2
    assert "date, amount" in result.errors[0].reason


def test_parse_row_without_amount_column_is_a_row_error():
    columns = ColumnMap(date=0, amount=None, description=1)
    with pytest.raises(ValueError, match="missing required column"):
        SignedCsvParser().parse_row(
            ["03/06/2025", "Uber"], columns, _descriptor("generic"), file_name="", position=1
        )


def test_blank_description_gets_positional_placeholder():
    text = f'{GENERIC_HEADER}\n03/06/2025,"-10,00",x,\n'
    [tx] = parse_csv(text, _descriptor("generic")).candidates
    assert tx.description == "Transação 1"


def test_long_description_is_capped_with_ellipsis():
    text = f'{GENERIC_HEADER}\n03/06/2025,"-10,00",x,{"a" * 150}\n'
    [tx] = parse_csv(text, _descriptor("generic")).candidates
    assert len(tx.description) == 103
    assert tx.description.endswith("...")


def test_provenance_and_tags():
    text = f'{GENERIC_HEADER}\n03/06/2025,"-10,00",x,Padaria\n'
    [tx] = parse_csv(text, _descriptor("generic"), file_name="junho.csv").candidates
    assert tx.source_details is not None
    assert tx.source_details.file_name == "junho.csv"
    assert tx.source_details.bank == "Formato Genérico"
    assert tx.tags == frozenset({"importado", "csv", "generic"})


def test_positive_amount_with_expense_phrase_is_expense():
    text = f'{GENERIC_HEADER}\n04/06/2025,"50,00",x,Uber viagem\n04/06/2025,"50,00",y,Reembolso'
    first, second = parse_csv(text, _descriptor("generic")).candidates
    assert first.type is TransactionType.EXPENSE
    assert second.type is TransactionType.INCOME


def test_itau_semicolon_rows_with_thousands_separator():
    text = "Data;Lançamento;Valor;Saldo\n01/06/2025;PIX RECEBIDO;1.500,00;2.300,50\n"
    [tx] = parse_csv(text, _descriptor("itau")).candidates
    assert tx.type is TransactionType.INCOME
    assert tx.amount == Decimal("1500.00")
    assert tx.description == "PIX RECEBIDO"


def test_nubank_negative_amount_is_income():
    text = "date,title,amount\n2025-06-10,Pagamento recebido,-1591.93\n"
    [tx] = parse_csv(text, _descriptor("nubank")).candidates
    assert tx.type is TransactionType.INCOME
    assert tx.amount == Decimal("1591.93")
    assert tx.date == date(2025, 6, 10)


def test_nubank_positive_purchase_is_expense():
    text = "date,title,amount\n2025-07-02,Conversa Afiada Bar e,24.50\n"
    [tx] = parse_csv(text, _descriptor("nubank")).candidates
    assert tx.type is TransactionType.EXPENSE
    assert tx.amount == Decimal("24.50")


def test_recargapay_prefix_decides_direction():
    text = "\n".join(
        [
            "Data,Transação,Valor",
            '"10/06/2025","Estorno loja","+ R$ 232,75"',
            '"22/06/2025","Ifd Camila Liziene Lel","- R$ 84,69"',
        ]
    )
    credit, debit = parse_csv(text, _descriptor("recargapay")).candidates
    assert credit.type is TransactionType.INCOME
    assert credit.amount == Decimal("232.75")
    assert debit.type is TransactionType.EXPENSE
    assert debit.amount == Decimal("84.69")


@pytest.mark.parametrize(
    ("bank", "expected"),
    [
        (BankType.NUBANK, NubankCsvParser),
        ("recargapay", RecargaPayCsvParser),
        ("santander", SignedCsvParser),
        ("itau", SignedCsvParser),
        ("no-such-bank", SignedCsvParser),
    ],
)
def test_parser_for_resolves_strategy(bank, expected):
    assert type(parser_for(bank)) is expected


def test_split_line_honors_quotes():
    assert split_line('a,"b,c","say ""hi"""') == ["a", "b,c", 'say "hi"']
    assert split_line(" x ; y ", ";") == ["x", "y"]


def test_split_line_quote_toggles_anywhere_in_a_cell():
    assert split_line('a, "b,c"') == ["a", "b,c"]
    assert split_line('Loja "Centro, SP",10') == ["Loja Centro, SP", "10"]


@pytest.mark.parametrize(
    ("raw", "separator", "expected"),
    [
        ("1.200,50", ",", Decimal("1200.50")),
        ("R$ -85,50", ",", Decimal("-85.50")),
        ("- R$ 3,00", ",", Decimal("-3.00")),
        ("(12,00)", ",", Decimal("-12.00")),
        ("1,591.93", ".", Decimal("1591.93")),
        ("-24.50", ".", Decimal("-24.50")),
    ],
)
def test_parse_amount(raw: str, separator: str, expected: Decimal):
    assert parse_amount(raw, decimal_separator=separator) == expected


@pytest.mark.parametrize("raw", ["", "R$", "abc", "1,2,3"])
def test_parse_amount_rejects_garbage(raw: str):
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_parse_date_formats():
    assert parse_date("3/6/25", DateFormat.BRAZILIAN) == date(2025, 6, 3)
    assert parse_date("03/06/2025 10:00", DateFormat.BRAZILIAN) == date(2025, 6, 3)
    assert parse_date("2025-06-10T00:00:00", DateFormat.ISO) == date(2025, 6, 10)
    with pytest.raises(ValueError):
        parse_date("2025-06-10", DateFormat.BRAZILIAN)
