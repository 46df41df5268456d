"""
File format detection for graph files.
"""

from pathlib import PurePosixPath
from typing import Optional

MARKDOWN = "markdown"
ORG = "org"
EDN = "edn"

# Formats handled by the markup parser
MLDOC_FORMATS = frozenset({MARKDOWN, ORG})

_EXTENSION_FORMATS = {
    "md": MARKDOWN,
    "markdown": MARKDOWN,
    "org": ORG,
    "edn": EDN,
}

_BLOCK_PATTERNS = {
    MARKDOWN: "-",
    ORG: "*",
}

WHITEBOARDS_DIR = "whiteboards"


def get_format(file: str) -> Optional[str]:
    """
    Format of a graph file, from its extension.

    Returns:
        'markdown', 'org' or 'edn', None for anything else
    """
    suffix = PurePosixPath(str(file).replace("\\", "/")).suffix.lower().lstrip(".")
    return _EXTENSION_FORMATS.get(suffix)


def get_block_pattern(fmt: Optional[str]) -> str:
    """Block delimiter for a markup format. Defaults to markdown's."""
    return _BLOCK_PATTERNS.get(fmt, _BLOCK_PATTERNS[MARKDOWN])


def is_whiteboard(file: str) -> bool:
    """Whether a file is a whiteboard: an .edn file under whiteboards/."""
    path = PurePosixPath(str(file).replace("\\", "/"))
    return get_format(file) == EDN and WHITEBOARDS_DIR in path.parts[:-1]
