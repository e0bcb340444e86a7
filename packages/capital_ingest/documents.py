"""Document text layers: page-by-page plain text for statement extraction.

The engine never parses document structure itself. A text layer yields one
string per page, asynchronously, and :func:`read_document_text` joins them
with newlines for :func:`capital_ingest.ingest.statement_text.extract_transactions`.

- :class:`PdfTextLayer` decodes PDFs with ``pdfplumber``; each page is
  decoded in a worker thread so the event loop stays responsive.
- :class:`StaticTextLayer` serves pages that were extracted elsewhere.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from io import BytesIO

import pdfplumber

from .errors import UnreadableSourceError
from .ledger import DocumentTextLayer
from .logging_setup import get_logger

_logger = get_logger("capital_ingest.documents")


class PdfTextLayer:
    """Text layer over an in-memory PDF.

    A page that fails to decode is logged and skipped; a document that cannot
    be opened at all raises :class:`UnreadableSourceError`.
    """

    def __init__(self, data: bytes, *, name: str = "") -> None:
        self._data = data
        self._name = name or "<pdf>"

    def _open(self) -> pdfplumber.PDF:
        try:
            return pdfplumber.open(BytesIO(self._data))
        except Exception as exc:
            raise UnreadableSourceError(f"Could not open PDF {self._name}: {exc}") from exc

    async def pages(self) -> AsyncIterator[str]:
        pdf = await asyncio.to_thread(self._open)
        try:
            for number, page in enumerate(pdf.pages, start=1):
                try:
                    text = await asyncio.to_thread(page.extract_text)
                except Exception as exc:
                    _logger.warning("%s: failed to decode page %d: %s", self._name, number, exc)
                    continue
                _logger.debug("%s: page %d yielded %d char(s)", self._name, number, len(text or ""))
                yield text or ""
        finally:
            pdf.close()


class StaticTextLayer:
    """Text layer over pages that are already plain text."""

    def __init__(self, pages: Iterable[str]) -> None:
        self._pages = tuple(pages)

    async def pages(self) -> AsyncIterator[str]:
        for page in self._pages:
            yield page


async def read_document_text(layer: DocumentTextLayer) -> str:
    """Concatenate every page of ``layer``, one newline after each page."""

    parts: list[str] = []
    async for page in layer.pages():
        parts.append(page)
        parts.append("\n")
    return "".join(parts)


__all__ = ["PdfTextLayer", "StaticTextLayer", "read_document_text"]
