"""Per-bank tabular parsing strategies.

Each bank family is a :class:`~capital_ingest.ingest.tabular.TabularParser`
subclass; :func:`parser_for` resolves one by :class:`BankType`. Banks without
a quirk of their own share :class:`SignedCsvParser`.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from ...formats import BankType, FormatDescriptor
from ..tabular import TabularParser, TabularResult
from .generic_csv import SignedCsvParser
from .nubank_csv import NubankCsvParser
from .recargapay_csv import RecargaPayCsvParser

PARSERS: Mapping[BankType, TabularParser] = MappingProxyType(
    {
        BankType.GENERIC: SignedCsvParser(),
        BankType.NUBANK: NubankCsvParser(),
        BankType.ITAU: SignedCsvParser(),
        BankType.BRADESCO: SignedCsvParser(),
        BankType.SANTANDER: SignedCsvParser(),
        BankType.INTER: SignedCsvParser(),
        BankType.C6: SignedCsvParser(),
        BankType.RECARGAPAY: RecargaPayCsvParser(),
    }
)


def parser_for(bank_type: BankType | str) -> TabularParser:
    """Return the parsing strategy for ``bank_type`` (signed parser if unknown)."""

    try:
        return PARSERS[BankType(str(bank_type).lower())]
    except ValueError:
        return PARSERS[BankType.GENERIC]


def parse_csv(text: str, descriptor: FormatDescriptor, *, file_name: str = "") -> TabularResult:
    """Parse ``text`` with the strategy registered for ``descriptor.id``."""

    return parser_for(descriptor.id).parse(text, descriptor, file_name=file_name)


__all__ = [
    "PARSERS",
    "parser_for",
    "parse_csv",
    "SignedCsvParser",
    "NubankCsvParser",
    "RecargaPayCsvParser",
]
