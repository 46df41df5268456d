"""
Graph store implementations.

The default backend is the in-memory store (MemoryGraphStore). SQL Server
(SqlServerGraphStore) persists the graph and requires pyodbc.

To select backend, set the GRAPH_STORE_BACKEND environment variable:
    - GRAPH_STORE_BACKEND=memory (default)
    - GRAPH_STORE_BACKEND=sqlserver
"""

import logging
import os
from typing import Optional

from ..core.graph_store import GraphStore
from .bootstrap import bootstrap_graph
from .memory_store import MemoryGraphStore
from .transaction import TransactionApplier

logger = logging.getLogger(__name__)


# Lazy import to avoid import errors when pyodbc is missing
def _get_sqlserver_store():
    from .sqlserver_store import SqlServerGraphStore
    return SqlServerGraphStore


def create_graph_store(
    backend: Optional[str] = None,
    # SQL Server options
    connection_string: Optional[str] = None,
    host: str = "localhost",
    port: int = 1433,
    database: str = "GraphImport",
    username: str = "sa",
    password: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    schema: str = "graph",
    trust_server_certificate: bool = True,
    auto_init: bool = True,
) -> GraphStore:
    """
    Factory function to create the appropriate graph store based on configuration.

    Args:
        backend: Backend type ('memory' or 'sqlserver'). Defaults to GRAPH_STORE_BACKEND env var or 'memory'.

        SQL Server options:
            connection_string: Full ODBC connection string
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for tables
            trust_server_certificate: Trust self-signed certs
            auto_init: Auto-create schema/tables

    Returns:
        GraphStore instance

    Raises:
        ValueError: If backend is not recognized
        ImportError: If required dependencies are missing
    """
    if backend is None:
        backend = os.environ.get("GRAPH_STORE_BACKEND", "memory")
    backend = backend.lower()

    if backend == "memory":
        return MemoryGraphStore()

    elif backend == "sqlserver":
        SqlServerGraphStore = _get_sqlserver_store()

        if password is None:
            password = os.environ.get("GRAPH_IMPORT_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")

        if connection_string is None:
            connection_string = os.environ.get("GRAPH_IMPORT_SQLSERVER_CONN_STR")

        return SqlServerGraphStore(
            connection_string=connection_string,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            driver=driver,
            schema=schema,
            auto_init=auto_init,
            trust_server_certificate=trust_server_certificate,
        )

    else:
        raise ValueError(
            f"Unknown backend: {backend}. "
            "Supported backends: 'memory' (default), 'sqlserver'"
        )


__all__ = [
    "MemoryGraphStore",
    "TransactionApplier",
    "bootstrap_graph",
    "create_graph_store",
]
