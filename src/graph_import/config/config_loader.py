"""
Configuration loader for the graph import engine.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..assembler.graph_assembler import ImportOptions
from ..core.exceptions import ImportConfigError
from ..core.extractor import ExtractOptions, Extractor
from ..core.graph_store import GraphStore
from ..store import create_graph_store

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "import": {
        "tag_classes": [],
        "page_tags_uuid": None,
        "macros": {},
        "fail_fast": False,
        "extract": {
            "date_formatter": "MMM do, yyyy",
            "uri_encoded": False,
            "filename_format": "legacy",
        },
    },
    "store": {
        "backend": "memory",
        "bootstrap": True,
        "sqlserver": {
            "host": "localhost",
            "port": 1433,
            "database": "GraphImport",
            "user": "sa",
            "schema": "graph",
            "driver": "ODBC Driver 18 for SQL Server",
        },
    },
    "logging": {
        "level": "INFO",
        "structured": False,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ImportConfig:
    """
    Configuration for the graph import engine.

    Loads a YAML configuration file over the defaults, then applies
    environment variable overrides:
        GRAPH_IMPORT_TAG_CLASSES     comma-separated tag classes
        GRAPH_IMPORT_PAGE_TAGS_UUID  uuid of the page-tags property
        GRAPH_STORE_BACKEND          'memory' or 'sqlserver'
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)

        Raises:
            ImportConfigError: If the file is missing or invalid
        """
        self.config_path = Path(config_path) if config_path else None
        loaded = self._load_config() if self.config_path else {}
        self.config = _merge(copy.deepcopy(DEFAULT_CONFIG), loaded)
        self._apply_env_overrides()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ImportConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ImportConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is not None and not isinstance(config, dict):
            raise ImportConfigError(f"Config root must be a mapping: {self.config_path}")
        return config or {}

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        import_config = self.config.setdefault("import", {})

        tag_classes = os.environ.get("GRAPH_IMPORT_TAG_CLASSES")
        if tag_classes:
            import_config["tag_classes"] = [t.strip() for t in tag_classes.split(",") if t.strip()]

        page_tags_uuid = os.environ.get("GRAPH_IMPORT_PAGE_TAGS_UUID")
        if page_tags_uuid:
            import_config["page_tags_uuid"] = page_tags_uuid

        backend = os.environ.get("GRAPH_STORE_BACKEND")
        if backend:
            self.config.setdefault("store", {})["backend"] = backend.lower()

    def _validate(self) -> None:
        tag_classes = self.get("import.tag_classes", [])
        if not isinstance(tag_classes, list) or not all(isinstance(t, str) for t in tag_classes):
            raise ImportConfigError(f"import.tag_classes must be a list of names, got {tag_classes!r}")

        macros = self.get("import.macros", {})
        if not isinstance(macros, dict):
            raise ImportConfigError(f"import.macros must be a mapping, got {macros!r}")

        backend = self.get("store.backend")
        if backend not in ("memory", "sqlserver"):
            raise ImportConfigError(f"Unknown store backend: {backend!r}")

    def get_import_config(self) -> Dict[str, Any]:
        """Get import configuration."""
        return self.config.get("import", {})

    def get_store_config(self) -> Dict[str, Any]:
        """Get graph store configuration."""
        return self.config.get("store", {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.config.get("logging", {})

    @property
    def tag_classes(self) -> List[str]:
        return list(self.get("import.tag_classes", []))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def to_extract_options(self) -> ExtractOptions:
        extract = self.get("import.extract", {})
        return ExtractOptions(
            date_formatter=extract.get("date_formatter", "MMM do, yyyy"),
            uri_encoded=bool(extract.get("uri_encoded", False)),
            filename_format=extract.get("filename_format", "legacy"),
            extra={k: v for k, v in extract.items()
                   if k not in ("date_formatter", "uri_encoded", "filename_format")},
        )

    def to_import_options(self, extractor: Extractor) -> ImportOptions:
        """Build the session's import options around a parser."""
        return ImportOptions(
            extractor=extractor,
            tag_classes=self.tag_classes,
            page_tags_uuid=self.get("import.page_tags_uuid"),
            macros=dict(self.get("import.macros", {})),
            extract_options=self.to_extract_options(),
        )

    def create_store(self) -> GraphStore:
        """Create the configured graph store."""
        store_config = self.get_store_config()
        backend = store_config.get("backend", "memory")
        if backend != "sqlserver":
            return create_graph_store(backend)

        sql_config = store_config.get("sqlserver", {})
        return create_graph_store(
            backend,
            host=sql_config.get("host", "localhost"),
            port=int(sql_config.get("port", 1433)),
            database=sql_config.get("database", "GraphImport"),
            username=sql_config.get("user", "sa"),
            password=sql_config.get("password"),
            driver=sql_config.get("driver", "ODBC Driver 18 for SQL Server"),
            schema=sql_config.get("schema", "graph"),
        )
