"""Exception taxonomy for ingestion.

Structural errors reject a whole file and are raised. Row-level and item-level
problems are not exceptions: parsers and the backup codec return them as
values (:class:`~capital_ingest.models.RowError`,
:class:`~capital_ingest.models.ItemError`) so a batch can continue.

All classes derive from ``ValueError`` so existing ``except ValueError``
handlers keep catching them.
"""

from __future__ import annotations


class IngestError(ValueError):
    """Base class for every error raised by ``capital_ingest``."""


# ---- Lookup -----------------------------------------------------------------


class FormatNotFoundError(IngestError, LookupError):
    def __init__(self, format_id: str) -> None:
        super().__init__(f"Bank format not found: {format_id!r}")
        self.format_id = format_id


# ---- Structural (whole batch rejected) --------------------------------------


class StructuralError(IngestError):
    """The source cannot be processed at all; nothing was committed."""


class UnsupportedFormatError(StructuralError):
    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"Unsupported file format for {file_name!r}. Use CSV, PDF or JSON."
        )
        self.file_name = file_name


class TooShortFileError(StructuralError):
    def __init__(self, line_count: int) -> None:
        super().__init__(
            "CSV file must have at least a header line and one data line "
            f"(found {line_count} non-blank line(s))"
        )
        self.line_count = line_count


class UnreadableSourceError(StructuralError):
    """No text could be extracted (password-protected or image-only)."""


class NoTransactionsRecognizedError(StructuralError):
    """Text was present but no transaction could be recognized in it."""


class InvalidBackupError(StructuralError):
    """The JSON document lacks the ``version``/``data`` backup envelope."""


# ---- Commit-time validation -------------------------------------------------


class UnknownCategoryError(IngestError, LookupError):
    def __init__(self, category_id: str) -> None:
        super().__init__(f"Category not found: {category_id!r}")
        self.category_id = category_id


class CategoryTypeMismatchError(IngestError):
    def __init__(self, category_id: str, category_type: str, transaction_type: str) -> None:
        super().__init__(
            f"Category {category_id!r} is of type {category_type!r} and cannot be "
            f"assigned to a {transaction_type!r} transaction"
        )
        self.category_id = category_id


class CategoryInUseError(IngestError):
    """A category cannot be deleted: it is a default or still referenced."""


__all__ = [
    "IngestError",
    "FormatNotFoundError",
    "StructuralError",
    "UnsupportedFormatError",
    "TooShortFileError",
    "UnreadableSourceError",
    "NoTransactionsRecognizedError",
    "InvalidBackupError",
    "UnknownCategoryError",
    "CategoryTypeMismatchError",
    "CategoryInUseError",
]
