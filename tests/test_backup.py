from __future__ import annotations

import json
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from capital_ingest.backup import (
    BACKUP_VERSION,
    RESTORED_TAG,
    CSV_HEADER,
    csv_export_filename,
    deserialize,
    dump,
    export_csv,
    export_filename,
    serialize,
)
from capital_ingest.categories import DEFAULT_CATEGORIES
from capital_ingest.errors import InvalidBackupError
from capital_ingest.ledger import InMemoryLedger
from capital_ingest.models import (
    BudgetCategory,
    BudgetExpense,
    CanonicalTransaction,
    Goal,
    Investment,
    SourceDetails,
    TransactionSource,
    TransactionType,
)

NOW = datetime(2025, 7, 1, 12, 0, tzinfo=UTC)


def _populated_ledger() -> InMemoryLedger:
    ledger = InMemoryLedger()
    ledger.create_category("Pets", TransactionType.EXPENSE)
    ledger.create_transaction(
        CanonicalTransaction(
            type=TransactionType.EXPENSE,
            description="Uber Trip Help.u",
            amount=Decimal("85.50"),
            date=date(2025, 6, 3),
            category="transporte",
            source_details=SourceDetails(file_name="extrato.csv", bank="Formato Genérico"),
            tags=frozenset({"importado", "csv"}),
        )
    )
    ledger.create_transaction(
        CanonicalTransaction(
            type=TransactionType.INCOME,
            description="Salário",
            amount=Decimal("3000.00"),
            date=date(2025, 6, 5),
            category="salario",
            source=TransactionSource.MANUAL,
        )
    )
    ledger.create_transaction(
        CanonicalTransaction(
            type=TransactionType.EXPENSE,
            description="Ração",
            amount=Decimal("120.00"),
            date=date(2025, 6, 7),
            category="pets",
        )
    )
    ledger.add_goal(
        Goal("Viagem", "viagem", Decimal("5000.00"), Decimal("1200.00"), date(2026, 1, 31))
    )
    ledger.add_investment(
        Investment("acao", "PETR4", Decimal("10"), Decimal("38.50"), date(2025, 5, 2))
    )
    ledger.add_budget_category(BudgetCategory("Mercado", Decimal("800.00"), icon="🛒"))
    ledger.add_budget_expense(
        BudgetExpense("Mercado", Decimal("150.00"), "Compra do mês", date(2025, 6, 8))
    )
    return ledger


def test_round_trip_preserves_every_collection():
    source = _populated_ledger()
    text = dump(serialize(source.snapshot(), now=NOW))

    target = InMemoryLedger()
    result = deserialize(text, target)
    before, after = source.snapshot(), target.snapshot()

    assert result.errors == []
    assert len(after.transactions) == len(before.transactions) == 3
    assert len(after.categories) == len(before.categories) == len(DEFAULT_CATEGORIES) + 1
    assert after.goals == before.goals
    assert after.investments == before.investments
    assert after.budget_categories == before.budget_categories
    assert after.budget_expenses == before.budget_expenses
    assert result.applied == {
        "categories": len(DEFAULT_CATEGORIES) + 1,
        "transactions": 3,
        "goals": 1,
        "investments": 1,
        "budgetCategories": 1,
        "budgetExpenses": 1,
    }

    restored = after.transactions[0]
    first = before.transactions[0]
    assert restored.amount == first.amount
    assert restored.date == first.date
    assert restored.category == first.category
    assert restored.source_details == first.source_details
    assert restored.tags == first.tags | {RESTORED_TAG}


def test_document_shape():
    doc = json.loads(dump(serialize(_populated_ledger().snapshot(), now=NOW)))

    assert doc["version"] == BACKUP_VERSION
    assert doc["exportDate"].startswith("2025-07-01T12:00:00")
    assert doc["summary"] == {
        "totalTransactions": 3,
        "totalIncome": 3000.0,
        "totalExpenses": 205.5,
        "totalGoals": 1,
        "totalInvestments": 1,
        "totalBudgetCategories": 1,
        "totalBudgetExpenses": 1,
    }
    assert set(doc["data"]) == {
        "transactions",
        "categories",
        "goals",
        "investments",
        "budgetCategories",
        "budgetExpenses",
    }
    tx = doc["data"]["transactions"][0]
    assert tx["amount"] == 85.5
    assert tx["categoryName"] == "Transporte"
    assert tx["sourceDetails"]["fileName"] == "extrato.csv"
    assert tx["tags"] == ["csv", "importado"]


def test_export_filename():
    assert export_filename(NOW) == "capital-backup-completo-2025-07-01.json"
    assert csv_export_filename(NOW) == "capital-transacoes-2025-07-01.csv"


def test_transactions_csv_uses_display_names_and_decimal_commas():
    transactions = [
        CanonicalTransaction(
            type=TransactionType.EXPENSE,
            description='Padaria "Pão Quente"',
            amount=Decimal("12.50"),
            date=date(2025, 6, 1),
            category="alimentacao",
            tags=frozenset({"pdf", "importado"}),
        ),
        CanonicalTransaction(
            type=TransactionType.INCOME,
            description="Freela",
            amount=Decimal("300.00"),
            date=date(2025, 6, 5),
            source=TransactionSource.MANUAL,
            category="nao-existe",
        ),
        CanonicalTransaction(
            type=TransactionType.EXPENSE,
            description="Sem categoria",
            amount=Decimal("7.00"),
            date=date(2025, 6, 6),
        ),
    ]

    text = export_csv(transactions, DEFAULT_CATEGORIES)

    assert text.startswith("\ufeff")
    assert text[1:].splitlines() == [
        ",".join(CSV_HEADER),
        '01/06/2025,Despesa,Alimentação,"Padaria ""Pão Quente""","12,50",import,"importado, pdf"',
        '05/06/2025,Receita,nao-existe,Freela,"300,00",manual,',
        '06/06/2025,Despesa,,Sem categoria,"7,00",import,',
    ]


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[1, 2]",
        json.dumps({"data": {"transactions": []}}),
        json.dumps({"version": "2.0"}),
        json.dumps({"version": "2.0", "data": []}),
    ],
)
def test_invalid_envelope_applies_nothing(payload: str):
    ledger = InMemoryLedger()
    with pytest.raises(InvalidBackupError):
        deserialize(payload, ledger)
    assert ledger.snapshot().transactions == ()


def test_bad_items_are_recorded_and_the_rest_applied():
    payload = {
        "version": "1.0",
        "data": {
            "transactions": [
                {
                    "type": "despesa",
                    "category": "alimentacao",
                    "description": "Padaria",
                    "amount": 12.5,
                    "date": "2025-06-01",
                    "source": "importacao",
                },
                {"type": "expense", "description": "Bad", "amount": "abc", "date": "2025-06-01"},
                {
                    "type": "receita",
                    "category": "alimentacao",
                    "description": "Mismatch",
                    "amount": 10,
                    "date": "2025-06-02",
                },
                {
                    "type": "receita",
                    "category": "salario",
                    "description": "Salário",
                    "amount": 3000,
                    "date": "2025-06-05",
                },
            ],
            "goals": [
                {"category": "x", "targetAmount": 100, "deadline": "2025-12-31"},
                {
                    "name": "Reserva",
                    "category": "emergencia",
                    "targetAmount": 1000,
                    "currentAmount": 0,
                    "deadline": "2025-12-31",
                },
            ],
            "investments": [
                {"type": "acao", "name": "PETR4", "quantity": 10, "purchasePrice": 38.5}
            ],
        },
    }
    ledger = InMemoryLedger()

    result = deserialize(payload, ledger, today=date(2025, 7, 1))

    assert result.items_applied == 4
    assert result.applied == {"transactions": 2, "goals": 1, "investments": 1}
    assert [(e.collection, e.label) for e in result.errors] == [
        ("transactions", "Bad"),
        ("transactions", "Mismatch"),
        ("goals", "N/A"),
    ]

    padaria, salario = ledger.list_transactions()
    assert padaria.type is TransactionType.EXPENSE
    assert padaria.source is TransactionSource.IMPORT
    assert padaria.amount == Decimal("12.50")
    assert RESTORED_TAG in padaria.tags
    assert salario.type is TransactionType.INCOME
    assert ledger.snapshot().investments[0].purchase_date == date(2025, 7, 1)


def test_unknown_category_is_an_item_error():
    payload = {
        "version": "2.0",
        "data": {
            "transactions": [
                {
                    "type": "expense",
                    "category": "nao-existe",
                    "description": "Algo",
                    "amount": 5,
                    "date": "2025-06-01",
                }
            ]
        },
    }
    result = deserialize(payload, InMemoryLedger())
    assert result.items_applied == 0
    assert "nao-existe" in result.errors[0].reason


class _GoalStoreDown(InMemoryLedger):
    def add_goal(self, goal: Goal) -> Goal:
        raise RuntimeError("db connection dropped")


def test_storage_failure_on_one_item_does_not_stop_the_restore():
    payload = {
        "version": "2.0",
        "data": {
            "goals": [
                {
                    "name": "Reserva",
                    "category": "emergencia",
                    "targetAmount": 1000,
                    "deadline": "2025-12-31",
                }
            ],
            "budgetCategories": [{"name": "Mercado", "monthlyLimit": 800}],
        },
    }
    ledger = _GoalStoreDown()

    result = deserialize(json.dumps(payload), ledger)

    assert result.items_applied == 1
    assert result.applied == {"goals": 0, "budgetCategories": 1}
    [error] = result.errors
    assert (error.collection, error.label) == ("goals", "Reserva")
    assert "db connection dropped" in error.reason
    assert [c.name for c in ledger.snapshot().budget_categories] == ["Mercado"]
