"""Format Registry: declarative descriptions of bank CSV export layouts.

Each :class:`FormatDescriptor` records the column names a bank exports, its
date format, its amount/sign conventions and the field delimiter. Descriptors
are immutable; a :class:`FormatRegistry` is an injected, read-only lookup table
over them so tests can substitute their own formats.

The module also hosts two pure helpers over the registry:

- :func:`detect_bank`: guess a bank from a CSV header line.
- :func:`render_template`: produce a downloadable sample CSV for a format.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum

from .errors import FormatNotFoundError


class BankType(StrEnum):
    GENERIC = "generic"
    NUBANK = "nubank"
    ITAU = "itau"
    BRADESCO = "bradesco"
    SANTANDER = "santander"
    INTER = "inter"
    C6 = "c6"
    RECARGAPAY = "recargapay"


class DateFormat(StrEnum):
    ISO = "YYYY-MM-DD"
    BRAZILIAN = "DD/MM/YYYY"


class SignConvention(StrEnum):
    """How a bank encodes money direction in the amount column.

    - ``SIGNED``: negative is an expense; positive amounts are income only when
      the description reads like income (keyword heuristics decide).
    - ``NEGATIVE_IS_INCOME``: card statements where purchases are positive and
      payments/credits are negative (Nubank).
    - ``PREFIXED``: amounts carry an explicit ``+``/``-`` prefix before the
      currency symbol (``+ R$ 232,75``); ``+`` means income.
    """

    SIGNED = "signed"
    NEGATIVE_IS_INCOME = "negative_is_income"
    PREFIXED = "prefixed"


@dataclass(frozen=True, slots=True)
class FormatDescriptor:
    id: BankType
    name: str
    description: str
    columns: tuple[str, ...]
    date_format: DateFormat
    value_format: str
    sign_convention: SignConvention = SignConvention.SIGNED
    decimal_separator: str = ","
    delimiter: str = ","
    sample_rows: tuple[tuple[str, ...], ...] = ()
    icon: str | None = None


DEFAULT_FORMATS: tuple[FormatDescriptor, ...] = (
    FormatDescriptor(
        id=BankType.GENERIC,
        name="Formato Genérico",
        description="Formato padrão para extratos bancários",
        columns=("Data", "Valor", "Identificador", "Descrição"),
        date_format=DateFormat.BRAZILIAN,
        value_format="Decimal com vírgula (ex: -85,50)",
        sample_rows=(
            ("03/06/2025", "-85,50", "abc123", "Uber Trip Help.u"),
            ("04/06/2025", "300,00", "def456", "Transferência recebida pelo Pix"),
        ),
        icon="🏦",
    ),
    FormatDescriptor(
        id=BankType.NUBANK,
        name="Nubank",
        description="Formato de exportação do Nubank",
        columns=("date", "title", "amount"),
        date_format=DateFormat.ISO,
        value_format="Decimal com ponto (ex: 24.50)",
        sign_convention=SignConvention.NEGATIVE_IS_INCOME,
        decimal_separator=".",
        sample_rows=(
            ("2025-07-02", "Conversa Afiada Bar e", "24.50"),
            ("2025-06-10", "Pagamento recebido", "-1591.93"),
            ("2025-06-15", "Drogaria Araujo", "56.96"),
        ),
        icon="💜",
    ),
    FormatDescriptor(
        id=BankType.ITAU,
        name="Itaú",
        description="Formato de exportação do Itaú",
        columns=("Data", "Lançamento", "Valor", "Saldo"),
        date_format=DateFormat.BRAZILIAN,
        value_format="Decimal com vírgula (ex: 1.200,50)",
        delimiter=";",
        sample_rows=(
            ("01/06/2025", "PIX RECEBIDO", "500,00", "2.300,50"),
            ("02/06/2025", "COMPRA CARTAO", "-85,30", "2.215,20"),
        ),
        icon="🔶",
    ),
    FormatDescriptor(
        id=BankType.BRADESCO,
        name="Bradesco",
        description="Formato de exportação do Bradesco",
        columns=("Data", "Histórico", "Valor", "Saldo"),
        date_format=DateFormat.BRAZILIAN,
        value_format="Decimal com vírgula (ex: -85,50)",
        sample_rows=(
            ("01/06/2025", "TRANSFERENCIA RECEBIDA", "800,00", "1.500,00"),
            ("02/06/2025", "DEBITO AUTOMATICO", "-120,00", "1.380,00"),
        ),
        icon="🔴",
    ),
    FormatDescriptor(
        id=BankType.INTER,
        name="Banco Inter",
        description="Formato de extrato do Inter",
        columns=("Data", "Histórico", "Valor", "Saldo"),
        date_format=DateFormat.BRAZILIAN,
        value_format="Decimal com vírgula (ex: -85,50)",
        sample_rows=(
            ("01/06/2025", "PIX Recebido - João Silva", "250,00", "1.250,00"),
            ("02/06/2025", "Compra no débito - Supermercado", "-45,90", "1.204,10"),
            ("03/06/2025", "TED Recebida - Maria Santos", "500,00", "1.704,10"),
        ),
        icon="🧡",
    ),
    FormatDescriptor(
        id=BankType.C6,
        name="C6 Bank",
        description="Formato de exportação do C6 Bank",
        columns=("Data", "Descrição", "Categoria", "Valor"),
        date_format=DateFormat.BRAZILIAN,
        value_format="Decimal com vírgula (ex: -85,50)",
        sample_rows=(
            ("01/06/2025", "Uber", "Transporte", "-25,50"),
            ("02/06/2025", "Salário", "Receita", "3000,00"),
        ),
        icon="⚫",
    ),
    FormatDescriptor(
        id=BankType.RECARGAPAY,
        name="RecargaPay",
        description="Formato de fatura do RecargaPay",
        columns=("Data", "Transação", "Valor"),
        date_format=DateFormat.BRAZILIAN,
        value_format="Formato R$ 99,99",
        sign_convention=SignConvention.PREFIXED,
        sample_rows=(
            ("23/06/2025", "99negocia 23jun 07", "- R$ 3,00"),
            ("22/06/2025", "Ifd Camila Liziene Lel", "- R$ 84,69"),
            ("20/06/2025", "Uber Uber Trip Help.u", "- R$ 21,63"),
            ("10/06/2025", "Pagamento Da Fatura", "+ R$ 232,75"),
        ),
        icon="🔷",
    ),
)


class FormatRegistry:
    """Read-only catalog of :class:`FormatDescriptor` keyed by bank id."""

    __slots__ = ("_by_id",)

    def __init__(self, formats: Iterable[FormatDescriptor]) -> None:
        by_id: dict[str, FormatDescriptor] = {}
        for fmt in formats:
            if fmt.id in by_id:
                raise ValueError(f"duplicate format id: {fmt.id!r}")
            by_id[str(fmt.id)] = fmt
        self._by_id = by_id

    def lookup(self, format_id: str) -> FormatDescriptor:
        """Return the descriptor for ``format_id`` or raise ``FormatNotFoundError``."""

        key = str(format_id).strip().lower()
        try:
            return self._by_id[key]
        except KeyError:
            raise FormatNotFoundError(str(format_id)) from None

    def __contains__(self, format_id: object) -> bool:
        return isinstance(format_id, str) and format_id.strip().lower() in self._by_id

    def __iter__(self) -> Iterator[FormatDescriptor]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


def default_registry() -> FormatRegistry:
    return FormatRegistry(DEFAULT_FORMATS)


# ---------------------------------------------------------------------------
# Header-based detection
# ---------------------------------------------------------------------------


def detect_bank(csv_text: str) -> BankType:
    """Guess the bank from the first line of ``csv_text``.

    Falls back to :attr:`BankType.GENERIC` when no header marker matches.
    """

    first_line = csv_text.lstrip("\ufeff").split("\n", 1)[0].lower()
    if "date,title,amount" in first_line:
        return BankType.NUBANK
    if "lançamento" in first_line or "lancamento" in first_line:
        return BankType.ITAU
    if "histórico" in first_line or "historico" in first_line:
        return BankType.BRADESCO
    if "categoria" in first_line:
        return BankType.C6
    return BankType.GENERIC


# ---------------------------------------------------------------------------
# CSV template generator
# ---------------------------------------------------------------------------

_BOM = "\ufeff"


def render_template(descriptor: FormatDescriptor) -> str:
    """Return a sample CSV (header plus example rows) for ``descriptor``.

    Data cells are double-quoted except for the Nubank layout, which exports
    bare values. The text starts with a UTF-8 BOM so spreadsheet tools pick the
    right encoding.
    """

    sep = descriptor.delimiter
    lines = [sep.join(descriptor.columns)]
    for row in descriptor.sample_rows:
        if descriptor.id is BankType.NUBANK:
            lines.append(sep.join(row))
        else:
            lines.append(sep.join('"' + cell.replace('"', '""') + '"' for cell in row))
    return _BOM + "\n".join(lines)


def template_filename(descriptor: FormatDescriptor) -> str:
    slug = re.sub(r"\s+", "-", descriptor.name.strip().lower())
    return f"template-{slug}-capital.csv"


__all__ = [
    "BankType",
    "DateFormat",
    "SignConvention",
    "FormatDescriptor",
    "DEFAULT_FORMATS",
    "FormatRegistry",
    "default_registry",
    "detect_bank",
    "render_template",
    "template_filename",
]
