"""
Core data models for the graph import engine.

Parsed pages and blocks stay plain dicts (the parser owns their shape); the
types below describe what the import engine itself produces and tracks.
"""

import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from .exceptions import GraphImportError


class TypeTag(str, Enum):
    """Semantic type inferred for a property value."""
    DEFAULT = "default"
    NUMBER = "number"
    BOOLEAN = "boolean"
    URL = "url"
    PAGE_REFERENCE = "page-reference"
    DATE = "date"


class Cardinality(str, Enum):
    """How many values a property holds."""
    ONE = "one"
    MANY = "many"


class IgnoreReason(str, Enum):
    """
    Recoverable conditions that are recorded instead of raised.

    Every entry in the session's ignored-properties log carries one of these.
    """
    DISCARDED_PROPERTY_VALUE = "discarded_property_value"
    MALFORMED_BUILTIN_VALUE = "malformed_builtin_value"
    UNSUPPORTED_BUILTIN_PROPERTY = "unsupported_builtin_property"
    UNHANDLED_PAGE_ATTRIBUTE_CHANGE = "unhandled_page_attribute_change"
    UNSUPPORTED_FILE_FORMAT = "unsupported_file_format"


class Ref(NamedTuple):
    """
    Lookup reference to an entity, e.g. Ref("uuid", "6530...") or Ref("name", "foo").
    """
    attr: str
    value: str

    @classmethod
    def to_uuid(cls, value: str) -> "Ref":
        return cls("uuid", value)

    @classmethod
    def to_name(cls, value: str) -> "Ref":
        return cls("name", value)

    @property
    def is_uuid(self) -> bool:
        return self.attr == "uuid"


@dataclass
class PropertySchema:
    """
    Schema registered for a property the first time it is seen.

    Attributes:
        type: Inferred semantic type
        cardinality: ONE for scalar types, MANY for page references and dates
    """
    type: TypeTag
    cardinality: Cardinality = Cardinality.ONE

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value, "cardinality": self.cardinality.value}


@dataclass(frozen=True)
class TypeChange:
    """A property observed with a type different from its registered one."""
    from_type: TypeTag
    to_type: TypeTag

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {"type": {"from": self.from_type.value, "to": self.to_type.value}}


@dataclass
class IgnoredProperty:
    """
    One entry of the ignored-properties log.

    Attributes:
        reason: Why the value was dropped or the change was not applied
        property: Property key (or attribute name for page changes)
        value: The value that was not imported
        location: {"page": name} or {"block": content}
        change: Type change descriptor, when a migration dropped the value
        file: File being imported when the entry was recorded
        detail: Free-form message (e.g. the decode error)
        recorded_at: When the entry was recorded
    """
    reason: IgnoreReason
    property: Optional[str] = None
    value: Any = None
    location: Optional[Dict[str, Any]] = None
    change: Optional[TypeChange] = None
    file: Optional[str] = None
    detail: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, (set, frozenset)):
            value = sorted(value, key=str)
        return {
            "reason": self.reason.value,
            "property": self.property,
            "value": value,
            "location": self.location,
            "change": self.change.to_dict() if self.change else None,
            "file": self.file,
            "detail": self.detail,
            "recorded_at": self.recorded_at.isoformat(),
        }


@dataclass
class ImportState:
    """
    Session-scoped state threaded through every file import.

    Created once per multi-file import with new_import_state() and never reset
    mid-session. The registry records the first inferred schema of every user
    property; the ignored-properties log is append-only and is consumed by the
    caller after the session completes.
    """
    property_schemas: Any = None
    ignored_properties: List[IgnoredProperty] = field(default_factory=list)
    current_file: Optional[str] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if self.property_schemas is None:
            # Local import: schema_registry imports this module
            from ..inference.schema_registry import PropertySchemaRegistry
            self.property_schemas = PropertySchemaRegistry()

    def record_ignored(
        self,
        reason: IgnoreReason,
        property: Optional[str] = None,
        value: Any = None,
        location: Optional[Dict[str, Any]] = None,
        change: Optional[TypeChange] = None,
        detail: Optional[str] = None,
    ) -> IgnoredProperty:
        """Append an entry to the ignored-properties log."""
        entry = IgnoredProperty(
            reason=reason,
            property=property,
            value=value,
            location=location,
            change=change,
            file=self.current_file,
            detail=detail,
        )
        self.ignored_properties.append(entry)
        return entry

    def ignored_summary(self) -> Dict[str, int]:
        """Count ignored-properties entries by reason."""
        return dict(Counter(entry.reason.value for entry in self.ignored_properties))


@dataclass
class TransactionResult:
    """
    Outcome of applying a transaction to a graph store.

    Attributes:
        success: Whether the transaction was applied
        tx_data: The fragments that were (or would have been) applied
        entity_count: Number of entities created or updated
        error: Error message when the store rejected the transaction
    """
    success: bool
    tx_data: List[Dict[str, Any]] = field(default_factory=list)
    entity_count: int = 0
    error: Optional[str] = None

    def raise_for_error(self) -> None:
        if not self.success:
            raise GraphImportError(self.error or "Transaction failed")


@dataclass
class FileImportResult:
    """Result of importing one file into the DB graph."""
    file: str
    format: Optional[str]
    import_state: ImportState
    skipped: bool = False
    tx_result: Optional[TransactionResult] = None
    page_count: int = 0
    block_count: int = 0

    @property
    def success(self) -> bool:
        return not self.skipped and self.tx_result is not None and self.tx_result.success
