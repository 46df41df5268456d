"""
Graph assembler and import session runner.
"""

from .graph_assembler import (
    ImportOptions,
    add_file_to_db_graph,
    build_index,
    build_whiteboard_pages,
    new_import_state,
)
from .import_runner import ImportRunner

__all__ = [
    "ImportOptions",
    "add_file_to_db_graph",
    "build_index",
    "build_whiteboard_pages",
    "new_import_state",
    "ImportRunner",
]
