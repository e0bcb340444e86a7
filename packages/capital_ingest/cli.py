"""CLI for the ``capital_ingest`` package.

Commands
--------
- ``import``: ingest a CSV, PDF or JSON backup into a ledger file.
- ``template``: write the sample CSV for a bank layout.
- ``formats``: list the known bank layouts.
- ``export``: re-serialize a ledger file as a fresh backup document, or write
  its transactions as a CSV with ``--format csv``.

The ledger file is itself a backup document: it is restored into an
:class:`~capital_ingest.ledger.InMemoryLedger` before a command runs and
written back afterwards. Environment variables are loaded from a local
``.env`` using ``python-dotenv`` in the root callback.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .backup import (
    csv_export_filename,
    deserialize,
    dump,
    export_csv,
    export_filename,
    serialize,
)
from .config import IngestSettings
from .errors import IngestError
from .formats import default_registry, render_template, template_filename
from .ledger import InMemoryLedger
from .logging_setup import configure_logging, get_logger
from .pipeline import IngestionEngine

_logger = get_logger("capital_ingest.cli")


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"


# ---- Small module-level helpers used by CLI commands -------------------------


def _load_ledger(path: Path) -> InMemoryLedger:
    """Restore ``path`` into a fresh ledger; a missing file is an empty ledger."""

    ledger = InMemoryLedger()
    if not path.exists():
        return ledger
    restored = deserialize(path.read_text(encoding="utf-8"), ledger)
    if restored.errors:
        _logger.warning("%s: %d item(s) could not be loaded", path, len(restored.errors))
    return ledger


def _save_ledger(ledger: InMemoryLedger, path: Path) -> None:
    document = serialize(ledger.snapshot(), now=datetime.now(UTC))
    path.write_text(dump(document), encoding="utf-8")


def cmd_import(file_path: Path, *, ledger_path: Path, bank: str | None = None) -> int:
    """Ingest ``file_path`` into the ledger stored at ``ledger_path``.

    Prints the summary message and the capped error sample. Returns ``0`` when
    at least one item was committed and ``1`` otherwise.
    """

    settings = IngestSettings.from_env()
    try:
        ledger = _load_ledger(ledger_path)
    except (OSError, IngestError) as e:
        print(f"Error: failed to load ledger '{ledger_path}': {e}", file=sys.stderr)
        return 1

    engine = IngestionEngine(ledger, settings=settings)
    result = asyncio.run(engine.ingest_path(file_path, bank=bank))

    stream = sys.stdout if result.success else sys.stderr
    prefix = "" if result.success else "Error: "
    print(f"{prefix}{result.message}", file=stream)
    for err in result.errors:
        print(f"  - {err}", file=sys.stderr)
    if result.errors_truncated:
        print(f"  ... and {result.error_count - len(result.errors)} more", file=sys.stderr)

    if result.committed:
        try:
            _save_ledger(ledger, ledger_path)
        except OSError as e:
            print(f"Error: failed to write ledger '{ledger_path}': {e}", file=sys.stderr)
            return 1
    return 0 if result.success else 1


def cmd_template(bank: str, *, output_dir: Path) -> int:
    """Write the CSV template for ``bank`` into ``output_dir``."""

    try:
        descriptor = default_registry().lookup(bank)
    except IngestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    target = output_dir / template_filename(descriptor)
    try:
        target.write_text(render_template(descriptor), encoding="utf-8")
    except OSError as e:
        print(f"Error: failed to write '{target}': {e}", file=sys.stderr)
        return 1
    print(target)
    return 0


def cmd_formats() -> int:
    for fmt in default_registry():
        columns = fmt.delimiter.join(fmt.columns)
        print(f"{fmt.id}\t{fmt.name}\t{fmt.date_format}\t{columns}")
    return 0


def cmd_export(
    ledger_path: Path, *, output: Path | None = None, fmt: ExportFormat = ExportFormat.JSON
) -> int:
    """Write the ledger at ``ledger_path`` as a backup document or a transactions CSV."""

    if not ledger_path.exists():
        print(f"Error: File not found: {ledger_path}", file=sys.stderr)
        return 1
    try:
        ledger = _load_ledger(ledger_path)
    except (OSError, IngestError) as e:
        print(f"Error: failed to load ledger '{ledger_path}': {e}", file=sys.stderr)
        return 1
    now = datetime.now(UTC)
    state = ledger.snapshot()
    if fmt is ExportFormat.CSV:
        if not state.transactions:
            print("Error: no transactions to export", file=sys.stderr)
            return 1
        target = output or Path(csv_export_filename(now))
        content = export_csv(state.transactions, state.categories)
    else:
        target = output or Path(export_filename(now))
        content = dump(serialize(state, now=now))
    try:
        target.write_text(content, encoding="utf-8")
    except OSError as e:
        print(f"Error: failed to write '{target}': {e}", file=sys.stderr)
        return 1
    print(target)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank CSV exports, card statements (PDF) and backups into a "
        "ledger file. Loads settings from a local .env before running."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Defaults live on the parameters, as Annotated requires.
DEFAULT_LEDGER = Path("capital-ledger.json")
DEFAULT_OUTPUT_DIR = Path(".")

LEDGER_OPTION: OptionInfo = typer.Option(
    "--ledger",
    help="Ledger file (a backup document); created when missing.",
    dir_okay=False,
)
BANK_OPTION: OptionInfo = typer.Option(
    "--bank",
    help="Bank layout for CSV files (see `formats`). Detected from the header when omitted.",
)
OUTPUT_DIR_OPTION: OptionInfo = typer.Option(
    "--output-dir",
    help="Directory the template is written to.",
    file_okay=False,
)
OUTPUT_OPTION: OptionInfo = typer.Option(
    "--output",
    help=(
        "Target file. Defaults to capital-backup-completo-<date>.json, or "
        "capital-transacoes-<date>.csv with --format csv."
    ),
    dir_okay=False,
)
FORMAT_OPTION: OptionInfo = typer.Option(
    "--format",
    help="json writes a full backup; csv writes the transactions only.",
    case_sensitive=False,
)


@app.command("import")
def import_cmd(
    file_path: Annotated[Path, typer.Argument(help="CSV, PDF or JSON file to import.")],
    ledger: Annotated[Path, LEDGER_OPTION] = DEFAULT_LEDGER,
    bank: Annotated[str | None, BANK_OPTION] = None,
) -> None:
    """Ingest one file into the ledger."""

    raise typer.Exit(cmd_import(file_path, ledger_path=ledger, bank=bank))


@app.command("template")
def template_cmd(
    bank: Annotated[str, typer.Argument(help="Bank layout id, e.g. nubank.")],
    output_dir: Annotated[Path, OUTPUT_DIR_OPTION] = DEFAULT_OUTPUT_DIR,
) -> None:
    """Write a sample CSV for a bank layout."""

    raise typer.Exit(cmd_template(bank, output_dir=output_dir))


@app.command("formats")
def formats_cmd() -> None:
    """List the known bank layouts."""

    raise typer.Exit(cmd_formats())


@app.command("export")
def export_cmd(
    ledger: Annotated[Path, LEDGER_OPTION] = DEFAULT_LEDGER,
    output: Annotated[Path | None, OUTPUT_OPTION] = None,
    fmt: Annotated[ExportFormat, FORMAT_OPTION] = ExportFormat.JSON,
) -> None:
    """Export the ledger as a fresh backup document or a transactions CSV."""

    raise typer.Exit(cmd_export(ledger, output=output, fmt=fmt))


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - exercised via the console script
    app()
