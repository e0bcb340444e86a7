"""Adapter for signed bank exports (generic layout, Itaú, Bradesco, Inter, C6).

These banks write expenses as negative amounts and income as positive ones,
so the default rule in :func:`capital_ingest.ingest.tabular.infer_type`
applies unchanged: an explicit sign decides, and income/expense phrases in the
description settle positive amounts whose meaning is ambiguous.
"""

from __future__ import annotations

from ..tabular import TabularParser


class SignedCsvParser(TabularParser):
    """Parser for layouts following :attr:`SignConvention.SIGNED`."""


__all__ = ["SignedCsvParser"]
