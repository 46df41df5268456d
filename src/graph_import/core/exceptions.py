"""
Custom exceptions for the graph import engine.

Fatal conditions are raised; recoverable ones (malformed built-in values,
unhandled page changes, discarded property values, unsupported files) are
recorded in the session's ignored-properties log instead.
"""


class GraphImportError(Exception):
    """Base exception for all graph import errors."""
    pass


class UnsupportedValueShapeError(GraphImportError):
    """
    A property value cannot be classified.

    Raised when a collection property value contains anything other than
    strings. Fatal to the single inference call; the caller decides whether
    to abort the file.
    """

    def __init__(self, value, property: str = None):
        super().__init__(
            f"Import cannot infer schema of unknown property value {value!r}"
            + (f" for property {property!r}" if property else "")
        )
        self.value = value
        self.property = property


class UnresolvedReferenceError(GraphImportError):
    """
    A page, property or tag name could not be mapped to a uuid.

    Indicates inconsistent extraction; the file import is aborted.
    """

    def __init__(self, name: str, kind: str = "page"):
        super().__init__(f"No uuid found for {kind} {name!r}")
        self.name = name
        self.kind = kind


class MalformedBuiltinValueError(GraphImportError):
    """
    A built-in property value could not be decoded.

    Recovered locally: the value is replaced with a safe default and logged.
    """

    def __init__(self, message: str, property: str = None, value=None):
        super().__init__(message)
        self.property = property
        self.value = value


class UnsupportedFileFormatError(GraphImportError):
    """A file's format is neither markup nor whiteboard; the file is skipped."""

    def __init__(self, file: str):
        super().__init__(f"Skipped file since its format is not supported: {file}")
        self.file = file


class TransactionError(GraphImportError):
    """
    The graph store rejected a transaction.

    Raised when:
    - A fragment has no identity attribute (uuid or name)
    - A fragment references an entity absent from the tx and the store
    - The backend fails while applying the transaction
    """
    pass


class ImportConfigError(GraphImportError):
    """
    Error in import configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Configuration values have the wrong shape
    """
    pass
