from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from capital_ingest.cli import app

runner = CliRunner()

GENERIC_CSV = (
    'Data,Valor,Identificador,Descrição\n03/06/2025,-85,50,id1,"Uber Trip Help.u"\n'
    '04/06/2025,"300,00",id2,Transferência recebida pelo Pix\n'
)


def test_formats_lists_every_layout():
    result = runner.invoke(app, ["formats"])
    assert result.exit_code == 0
    ids = [line.split("\t")[0] for line in result.output.splitlines()]
    assert ids == ["generic", "nubank", "itau", "bradesco", "inter", "c6", "recargapay"]


def test_template_writes_sample_file(tmp_path: Path):
    result = runner.invoke(app, ["template", "nubank", "--output-dir", str(tmp_path)])

    assert result.exit_code == 0
    target = tmp_path / "template-nubank-capital.csv"
    text = target.read_text(encoding="utf-8")
    assert text.startswith("\ufeffdate,title,amount\n")


def test_template_for_unknown_bank_fails():
    result = runner.invoke(app, ["template", "santander"])
    assert result.exit_code == 1
    assert "Bank format not found" in result.output


def test_import_then_export(tmp_path: Path):
    source = tmp_path / "extrato.csv"
    source.write_text(GENERIC_CSV, encoding="utf-8")
    ledger = tmp_path / "ledger.json"

    imported = runner.invoke(
        app, ["import", str(source), "--ledger", str(ledger), "--bank", "generic"]
    )

    assert imported.exit_code == 0, imported.output
    assert "2 transação(ões) importada(s)" in imported.output
    stored = json.loads(ledger.read_text(encoding="utf-8"))
    assert stored["summary"]["totalTransactions"] == 2
    categories = [t["category"] for t in stored["data"]["transactions"]]
    assert categories == ["transporte", "salario"]

    out = tmp_path / "backup.json"
    exported = runner.invoke(app, ["export", "--ledger", str(ledger), "--output", str(out)])

    assert exported.exit_code == 0
    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc["version"] == "2.0"
    assert doc["summary"]["totalIncome"] == 300.0


def test_export_transactions_as_csv(tmp_path: Path):
    source = tmp_path / "extrato.csv"
    source.write_text(GENERIC_CSV, encoding="utf-8")
    ledger = tmp_path / "ledger.json"
    runner.invoke(app, ["import", str(source), "--ledger", str(ledger), "--bank", "generic"])

    exported = runner.invoke(app, ["export", "--ledger", str(ledger), "--format", "csv"])

    assert exported.exit_code == 0, exported.output
    [target] = tmp_path.glob("capital-transacoes-*.csv")
    rows = target.read_text(encoding="utf-8").lstrip("\ufeff").splitlines()
    assert rows[0] == "Data,Tipo,Categoria,Descrição,Valor,Fonte,Tags"
    assert rows[1].startswith('03/06/2025,Despesa,Transporte,Uber Trip Help.u,"85,50",import,')
    assert rows[2].startswith("04/06/2025,Receita,Salário,Transferência recebida pelo Pix,")
    assert len(rows) == 3


def test_csv_export_of_empty_ledger_fails(tmp_path: Path):
    ledger = tmp_path / "ledger.json"
    ledger.write_text(json.dumps({"version": "2.0", "data": {}}), encoding="utf-8")

    result = runner.invoke(app, ["export", "--ledger", str(ledger), "--format", "csv"])

    assert result.exit_code == 1
    assert "no transactions to export" in result.output
    assert list(tmp_path.glob("*.csv")) == []


def test_reimporting_a_ledger_keeps_restored_items(tmp_path: Path):
    source = tmp_path / "extrato.csv"
    source.write_text(GENERIC_CSV, encoding="utf-8")
    ledger = tmp_path / "ledger.json"
    runner.invoke(app, ["import", str(source), "--ledger", str(ledger)])

    again = runner.invoke(app, ["import", str(source), "--ledger", str(ledger)])

    assert again.exit_code == 0
    stored = json.loads(ledger.read_text(encoding="utf-8"))
    assert stored["summary"]["totalTransactions"] == 4


def test_import_unsupported_file_fails(tmp_path: Path):
    source = tmp_path / "planilha.xlsx"
    source.write_bytes(b"PK")

    result = runner.invoke(app, ["import", str(source), "--ledger", str(tmp_path / "l.json")])

    assert result.exit_code == 1
    assert "Error: Unsupported file format" in result.output
    assert not (tmp_path / "l.json").exists()


def test_export_without_ledger_fails(tmp_path: Path):
    result = runner.invoke(app, ["export", "--ledger", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_default_bank_from_dotenv(tmp_path: Path):
    # The CLI reads .env from the working directory, which is tmp_path here.
    (tmp_path / ".env").write_text("CAPITAL_INGEST_DEFAULT_BANK=nubank\n", encoding="utf-8")
    source = tmp_path / "cartao.csv"
    source.write_text("date,title,amount\n2025-07-02,Conversa Afiada Bar e,24.50\n")

    result = runner.invoke(app, ["import", str(source), "--ledger", str(tmp_path / "l.json")])

    assert result.exit_code == 0, result.output
    assert "de Nubank" in result.output
