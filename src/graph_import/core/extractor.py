"""
Extractor interface for the upstream parser.

Markup parsing is not part of this package: an Extractor turns a file's
content into raw page and block records, which the import engine consumes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ExtractOptions:
    """
    Options passed to the parser.

    Attributes:
        block_pattern: Block delimiter for the file's markup ('-' or '*')
        date_formatter: Journal title format
        uri_encoded: Whether file names are URI encoded
        db_graph_mode: Parse for a DB graph (always True for imports)
        filename_format: File name format of the legacy graph
        extra: Parser-specific options
    """
    block_pattern: Optional[str] = None
    date_formatter: str = "MMM do, yyyy"
    uri_encoded: bool = False
    db_graph_mode: bool = True
    filename_format: str = "legacy"
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractResult:
    """
    Raw parser output for one file.

    Attributes:
        pages: Raw page records
        blocks: Raw block records
    """
    pages: List[Dict[str, Any]] = field(default_factory=list)
    blocks: List[Dict[str, Any]] = field(default_factory=list)


class Extractor(ABC):
    """
    Abstract base class for parsers feeding the import engine.
    """

    @abstractmethod
    def extract(self, file: str, content: str, options: ExtractOptions) -> ExtractResult:
        """
        Extract pages and blocks from a markdown or org file.

        Args:
            file: Path of the file relative to the graph root
            content: File content
            options: Parser options

        Returns:
            ExtractResult with raw pages and blocks
        """
        pass

    @abstractmethod
    def extract_whiteboard(self, file: str, content: str, options: ExtractOptions) -> ExtractResult:
        """Extract pages and blocks (shapes) from a whiteboard file."""
        pass
