"""Public interface for the ``capital_ingest`` package.

Symbol re-exports only: the ingestion engine, its result type, the domain
models and the collaborator protocols callers implement.
"""

from .backup import RestoreResult, deserialize, dump, serialize
from .categorize import CategoryClassifier, KeywordRule
from .config import IngestSettings
from .duplicates import DuplicatePartition, clean_description, partition
from .errors import (
    FormatNotFoundError,
    IngestError,
    InvalidBackupError,
    NoTransactionsRecognizedError,
    StructuralError,
    TooShortFileError,
    UnreadableSourceError,
    UnsupportedFormatError,
)
from .formats import BankType, FormatDescriptor, FormatRegistry, default_registry
from .ledger import BackupSink, CategoryStore, DocumentTextLayer, InMemoryLedger, TransactionStore
from .models import (
    CanonicalTransaction,
    Category,
    DomainState,
    SourceDetails,
    TransactionSource,
    TransactionType,
)
from .pipeline import IngestionEngine, IngestPhase, IngestResult

__all__ = [
    # Engine
    "IngestionEngine",
    "IngestResult",
    "IngestPhase",
    "IngestSettings",
    # Components
    "FormatRegistry",
    "FormatDescriptor",
    "BankType",
    "default_registry",
    "CategoryClassifier",
    "KeywordRule",
    "partition",
    "DuplicatePartition",
    "clean_description",
    "serialize",
    "deserialize",
    "dump",
    "RestoreResult",
    # Models / types
    "CanonicalTransaction",
    "Category",
    "DomainState",
    "SourceDetails",
    "TransactionSource",
    "TransactionType",
    # Collaborators
    "TransactionStore",
    "CategoryStore",
    "BackupSink",
    "DocumentTextLayer",
    "InMemoryLedger",
    # Errors
    "IngestError",
    "StructuralError",
    "FormatNotFoundError",
    "UnsupportedFormatError",
    "TooShortFileError",
    "UnreadableSourceError",
    "NoTransactionsRecognizedError",
    "InvalidBackupError",
]
