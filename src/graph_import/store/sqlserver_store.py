"""
SQL Server-backed graph store.

Entities are stored as JSON documents in [schema].[entities], keyed by uuid
with a unique (filtered) index on page name. Each transact() runs in a single
database transaction and is rolled back on any error.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..core.exceptions import TransactionError
from ..core.graph_store import CLOSED_VALUE_TYPE, GraphStore
from ..core.models import TransactionResult
from ..core.utils import page_name_sanity_lc
from ..extract.records_extractor import decode_record
from .transaction import TransactionApplier

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dump_entity(entity: Dict[str, Any]) -> str:
    """Serialize an entity. Refs become two-element lists, sets sorted lists."""
    return json.dumps(entity, default=_json_default, ensure_ascii=False, sort_keys=True)


def load_entity(text: str) -> Dict[str, Any]:
    """Deserialize an entity, decoding its lookup references."""
    return decode_record(json.loads(text))


class SqlServerGraphStore(GraphStore):
    """
    SQL Server-based implementation of the graph store.

    Transactions are merged in memory against the stored entities, then
    written back with one MERGE per touched entity inside a single database
    transaction.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "GraphImport",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "graph",
        auto_init: bool = True,
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server graph store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for tables (default: 'graph')
            auto_init: Whether to create schema and tables automatically
            trust_server_certificate: Whether to trust self-signed certificates (for local Docker)
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerGraphStore. "
                "Install with: pip install pyodbc"
            )

        if not self._is_valid_identifier(schema):
            raise ValueError(f"Invalid schema name: {schema}")

        self.schema = schema
        self.auto_init = auto_init

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self.conn = None
        self._connect()

        if auto_init:
            self._init_schema()

    @staticmethod
    def _is_valid_identifier(name: str) -> bool:
        """
        Validate that a name is a safe SQL identifier.

        Must start with a letter or underscore, contain only letters, digits
        and underscores, be at most 128 characters and not be a reserved word.
        """
        if not name or len(name) > 128:
            return False

        if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name):
            return False

        reserved_words = {
            'select', 'insert', 'update', 'delete', 'drop', 'create', 'alter',
            'exec', 'execute', 'union', 'where', 'from', 'table', 'database',
            'schema', 'index', 'grant', 'revoke', 'truncate', 'declare', 'set'
        }
        return name.lower() not in reserved_words

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self.conn = pyodbc.connect(self.connection_string, autocommit=False)
            logger.debug(f"Connected to SQL Server graph store (schema: {self.schema})")
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to SQL Server: {e}")
            raise

    def _init_schema(self) -> None:
        """Initialize database schema and tables."""
        cursor = self.conn.cursor()

        try:
            # Schema name is validated in __init__; CREATE SCHEMA cannot take parameters
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = ?)
                BEGIN
                    EXEC('CREATE SCHEMA [{self.schema}]')
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.tables t
                               JOIN sys.schemas s ON t.schema_id = s.schema_id
                               WHERE t.name = 'entities' AND s.name = ?)
                BEGIN
                    CREATE TABLE [{self.schema}].[entities] (
                        uuid NVARCHAR(36) PRIMARY KEY,
                        name NVARCHAR(450) NULL,
                        entity_type NVARCHAR(50) NULL,
                        entity_json NVARCHAR(MAX) NOT NULL,
                        updated_at DATETIME2 NOT NULL
                    )
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.indexes
                               WHERE name = 'UX_entities_name'
                               AND object_id = OBJECT_ID('[{self.schema}].[entities]'))
                BEGIN
                    CREATE UNIQUE INDEX UX_entities_name
                    ON [{self.schema}].[entities] (name)
                    WHERE name IS NOT NULL
                END
            """)

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.indexes
                               WHERE name = 'IX_entities_type'
                               AND object_id = OBJECT_ID('[{self.schema}].[entities]'))
                BEGIN
                    CREATE INDEX IX_entities_type
                    ON [{self.schema}].[entities] (entity_type)
                END
            """)

            self.conn.commit()
            logger.debug(f"Initialized graph store schema [{self.schema}]")

        except pyodbc.Error as e:
            logger.error(f"Failed to initialize schema: {e}")
            self.conn.rollback()
            raise

    def get_page(self, name: str) -> Optional[Dict[str, Any]]:
        cursor = self.conn.cursor()
        cursor.execute(f"""
            SELECT entity_json FROM [{self.schema}].[entities] WHERE name = ?
        """, (page_name_sanity_lc(name),))
        row = cursor.fetchone()
        return load_entity(row[0]) if row else None

    def get_entity(self, uuid: str) -> Optional[Dict[str, Any]]:
        cursor = self.conn.cursor()
        cursor.execute(f"""
            SELECT entity_json FROM [{self.schema}].[entities] WHERE uuid = ?
        """, (uuid,))
        row = cursor.fetchone()
        return load_entity(row[0]) if row else None

    def get_closed_value_id(self, property_name: str, value: Any) -> Optional[str]:
        cursor = self.conn.cursor()
        cursor.execute(f"""
            SELECT uuid FROM [{self.schema}].[entities]
            WHERE entity_type = ?
              AND JSON_VALUE(entity_json, '$.property') = ?
              AND JSON_VALUE(entity_json, '$.value') = ?
        """, (CLOSED_VALUE_TYPE, property_name, str(value)))
        row = cursor.fetchone()
        return row[0] if row else None

    def transact(self, tx: List[Dict[str, Any]]) -> TransactionResult:
        try:
            changed = TransactionApplier(self).apply(tx)
        except TransactionError as e:
            logger.warning(f"Transaction rejected: {e}")
            return TransactionResult(success=False, tx_data=tx, error=str(e))

        now = datetime.now(timezone.utc)
        try:
            cursor = self.conn.cursor()
            for uuid, entity in changed.items():
                entity_type = entity.get("type")
                entity_type = entity_type if isinstance(entity_type, str) else None
                entity_json = dump_entity(entity)
                cursor.execute(f"""
                    MERGE [{self.schema}].[entities] AS target
                    USING (SELECT ? AS uuid) AS source
                    ON target.uuid = source.uuid
                    WHEN MATCHED THEN
                        UPDATE SET name = ?, entity_type = ?, entity_json = ?, updated_at = ?
                    WHEN NOT MATCHED THEN
                        INSERT (uuid, name, entity_type, entity_json, updated_at)
                        VALUES (?, ?, ?, ?, ?);
                """, (
                    uuid,
                    entity.get("name"), entity_type, entity_json, now,
                    uuid, entity.get("name"), entity_type, entity_json, now,
                ))
            self.conn.commit()
        except pyodbc.Error as e:
            logger.error(f"Transaction failed, rolling back: {e}")
            self.conn.rollback()
            return TransactionResult(success=False, tx_data=tx, error=str(e))

        logger.debug(f"Transacted {len(tx)} fragments, {len(changed)} entities")
        return TransactionResult(success=True, tx_data=tx, entity_count=len(changed))

    def count(self) -> int:
        """Number of stored entities."""
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT COUNT(*) FROM [{self.schema}].[entities]")
        return cursor.fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        if self.conn is not None:
            try:
                self.conn.close()
            except pyodbc.Error:
                pass
            self.conn = None
        logger.debug("Closed SQL Server graph store connection")
