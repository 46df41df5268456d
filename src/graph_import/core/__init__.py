"""
Core subpackage for the graph import engine.

Contains models, exceptions, logging utilities and the store/extractor boundaries.
"""

from .models import (
    TypeTag,
    Cardinality,
    IgnoreReason,
    Ref,
    PropertySchema,
    TypeChange,
    IgnoredProperty,
    ImportState,
    TransactionResult,
    FileImportResult,
)
from .exceptions import (
    GraphImportError,
    UnsupportedValueShapeError,
    UnresolvedReferenceError,
    MalformedBuiltinValueError,
    UnsupportedFileFormatError,
    TransactionError,
    ImportConfigError,
)
from .graph_store import GraphStore
from .extractor import Extractor, ExtractOptions, ExtractResult

__all__ = [
    # Models
    "TypeTag",
    "Cardinality",
    "IgnoreReason",
    "Ref",
    "PropertySchema",
    "TypeChange",
    "IgnoredProperty",
    "ImportState",
    "TransactionResult",
    "FileImportResult",
    # Exceptions
    "GraphImportError",
    "UnsupportedValueShapeError",
    "UnresolvedReferenceError",
    "MalformedBuiltinValueError",
    "UnsupportedFileFormatError",
    "TransactionError",
    "ImportConfigError",
    # Boundaries
    "GraphStore",
    "Extractor",
    "ExtractOptions",
    "ExtractResult",
]
