"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from graph_import.assembler import ImportOptions, new_import_state
from graph_import.core.extractor import ExtractOptions, ExtractResult, Extractor
from graph_import.store import MemoryGraphStore, bootstrap_graph


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def sqlserver_password() -> Optional[str]:
    return os.environ.get("GRAPH_IMPORT_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")


def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    password = sqlserver_password()
    if not password:
        return False

    try:
        import pyodbc

        host = os.environ.get("GRAPH_IMPORT_SQLSERVER_HOST", "localhost")
        port = int(os.environ.get("GRAPH_IMPORT_SQLSERVER_PORT", "1433"))
        database = os.environ.get("GRAPH_IMPORT_SQLSERVER_DATABASE", "GraphImport")
        username = os.environ.get("GRAPH_IMPORT_SQLSERVER_USER", "sa")
        driver = os.environ.get("GRAPH_IMPORT_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server")

        conn_str = (
            f"Driver={{{driver}}};"
            f"Server={host},{port};"
            f"Database={database};"
            f"UID={username};"
            f"PWD={password};"
            f"TrustServerCertificate=yes"
        )

        conn = pyodbc.connect(conn_str, timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set GRAPH_IMPORT_SQLSERVER_PASSWORD and ensure SQL Server is running)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Helpers
# ============================================================================

class StaticExtractor(Extractor):
    """Extractor returning canned records per file."""

    def __init__(self, files: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None):
        self.files = files or {}
        self.calls = []

    def add(self, file: str, pages=None, blocks=None) -> None:
        self.files[file] = {"pages": pages or [], "blocks": blocks or []}

    def _result(self, file: str, options: ExtractOptions) -> ExtractResult:
        self.calls.append((file, options))
        records = self.files.get(file, {})
        return ExtractResult(
            pages=[dict(p) for p in records.get("pages", [])],
            blocks=[dict(b) for b in records.get("blocks", [])],
        )

    def extract(self, file, content, options):
        return self._result(file, options)

    def extract_whiteboard(self, file, content, options):
        return self._result(file, options)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store() -> MemoryGraphStore:
    """Empty in-memory graph store."""
    return MemoryGraphStore()


@pytest.fixture
def seeded_store() -> MemoryGraphStore:
    """In-memory graph store with built-in properties and closed values."""
    graph = MemoryGraphStore()
    bootstrap_graph(graph)
    return graph


@pytest.fixture
def import_state():
    """Fresh import session state."""
    return new_import_state()


@pytest.fixture
def extractor() -> StaticExtractor:
    return StaticExtractor()


@pytest.fixture
def options(extractor) -> ImportOptions:
    """Import options around the static extractor."""
    return ImportOptions(extractor=extractor)


@pytest.fixture(scope="session")
def sqlserver_config() -> dict:
    """Session-scoped fixture providing SQL Server connection configuration."""
    return {
        "host": os.environ.get("GRAPH_IMPORT_SQLSERVER_HOST", "localhost"),
        "port": int(os.environ.get("GRAPH_IMPORT_SQLSERVER_PORT", "1433")),
        "database": os.environ.get("GRAPH_IMPORT_SQLSERVER_DATABASE", "GraphImport"),
        "username": os.environ.get("GRAPH_IMPORT_SQLSERVER_USER", "sa"),
        "password": sqlserver_password(),
        "driver": os.environ.get("GRAPH_IMPORT_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server"),
    }


@pytest.fixture(scope="function")
def test_schema_name() -> str:
    """Fixture providing a unique test schema name."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def sqlserver_graph_store(sqlserver_config: dict, test_schema_name: str):
    """
    SQL Server graph store in a throwaway schema, dropped after the test.
    """
    if not sqlserver_config["password"]:
        pytest.skip("SQL Server password not configured")

    from graph_import.store.sqlserver_store import SqlServerGraphStore

    graph = SqlServerGraphStore(schema=test_schema_name, auto_init=True, **sqlserver_config)

    yield graph

    try:
        cursor = graph.conn.cursor()
        cursor.execute(f"DROP TABLE IF EXISTS [{graph.schema}].[entities]")
        cursor.execute(f"DROP SCHEMA IF EXISTS [{graph.schema}]")
        graph.conn.commit()
    except Exception as e:
        logger.warning(f"Failed to drop test schema {graph.schema}: {e}")

    graph.close()
