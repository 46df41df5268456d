"""
Graph import engine.

Converts a file-based note graph (pages and blocks parsed from markdown, org
and whiteboard files) into a typed DB graph: property schemas are inferred
on first sight, values whose property type later changes are migrated or
dropped, designated tags become classes and every name reference becomes a
stable uuid reference.

Main entry points:
    add_file_to_db_graph  import one file as one transaction
    ImportRunner          import many files as one session
    create_graph_store    memory or SQL Server graph store
"""

__version__ = "0.1.0"

from .assembler import ImportOptions, ImportRunner, add_file_to_db_graph, new_import_state
from .store import create_graph_store

__all__ = [
    "ImportOptions",
    "ImportRunner",
    "add_file_to_db_graph",
    "new_import_state",
    "create_graph_store",
]
