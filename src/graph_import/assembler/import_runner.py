"""
Session runner for multi-file imports.
"""

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..core.exceptions import GraphImportError
from ..core.graph_store import GraphStore
from ..core.logging import CorrelationContext
from ..core.models import ImportState
from .graph_assembler import ImportOptions, add_file_to_db_graph, new_import_state

logger = logging.getLogger(__name__)


class ImportRunner:
    """
    Orchestrates an import session over many files.

    Manages the workflow:
    1. Create (or reuse) the session's import state
    2. Import each file as its own transaction, in order
    3. Count imported, skipped and failed files
    4. Summarize the session, including the ignored-properties log

    A file that fails is rolled back on its own; earlier files stay imported.
    stop() ends the session after the file in progress.
    """

    def __init__(
        self,
        store: GraphStore,
        options: ImportOptions,
        import_state: Optional[ImportState] = None,
        fail_fast: bool = False,
    ):
        """
        Initialize the import runner.

        Args:
            store: Target graph store
            options: Import options shared by every file
            import_state: Session state (a fresh one when omitted)
            fail_fast: Stop the session at the first failed file
        """
        self.store = store
        self.options = options
        self.import_state = import_state or new_import_state()
        self.fail_fast = fail_fast
        self._stop_requested = threading.Event()

        self.failures: List[Dict[str, str]] = []
        self.metrics = self._new_metrics()

    @staticmethod
    def _new_metrics() -> Dict[str, Any]:
        return {
            "files_processed": 0,
            "files_imported": 0,
            "files_skipped": 0,
            "files_failed": 0,
            "pages": 0,
            "blocks": 0,
        }

    def stop(self) -> None:
        """Request the session to stop after the current file."""
        logger.info("Stop requested; finishing current file")
        self._stop_requested.set()

    @property
    def stopped(self) -> bool:
        return self._stop_requested.is_set()

    def run(
        self,
        files: Iterable[Tuple[str, str]],
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Import files in order.

        Args:
            files: (file path, content) pairs
            session_id: Optional session identifier

        Returns:
            Session summary
        """
        if session_id is None:
            session_id = str(uuid.uuid4())

        self.metrics = self._new_metrics()
        self.metrics["session_id"] = session_id
        self.failures = []

        with CorrelationContext(session_id=session_id):
            logger.info(f"Starting import session: {session_id}")

            for file, content in files:
                if self.stopped:
                    logger.info("Import session stopped")
                    break
                self._import_file(file, content)

            summary = self.summary()
            logger.info(f"Import session complete: {session_id}")
            logger.info(f"Metrics: {json.dumps(summary, indent=2)}")

        return summary

    def _import_file(self, file: str, content: str) -> None:
        self.metrics["files_processed"] += 1
        try:
            result = add_file_to_db_graph(self.store, file, content, self.options, self.import_state)
        except GraphImportError as e:
            self.metrics["files_failed"] += 1
            self.failures.append({"file": file, "error": str(e), "type": type(e).__name__})
            logger.error(f"Import of {file} failed: {e}")
            if self.fail_fast:
                raise
            return

        if result.skipped:
            self.metrics["files_skipped"] += 1
            return

        self.metrics["files_imported"] += 1
        self.metrics["pages"] += result.page_count
        self.metrics["blocks"] += result.block_count

    def run_directory(self, dump_dir: Union[str, Path], session_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Import a directory of record dumps (*.json, searched recursively).

        Each dump names its graph file in its "file" key; dumps without one
        use their path relative to dump_dir, minus the .json suffix.
        """
        dump_dir = Path(dump_dir)
        if not dump_dir.is_dir():
            raise FileNotFoundError(f"Dump directory not found: {dump_dir}")
        return self.run(self.iter_dumps(dump_dir), session_id=session_id)

    @staticmethod
    def iter_dumps(dump_dir: Path) -> Iterable[Tuple[str, str]]:
        for path in sorted(dump_dir.rglob("*.json")):
            content = path.read_text(encoding="utf-8")
            file = path.relative_to(dump_dir).with_suffix("").as_posix()
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                # Let the extractor report the bad dump under its own name
                data = None
            if isinstance(data, dict) and data.get("file"):
                file = data["file"]
            yield file, content

    def summary(self) -> Dict[str, Any]:
        """Session metrics plus the ignored-properties summary."""
        return {
            **self.metrics,
            "stopped": self.stopped,
            "property_schemas": len(self.import_state.property_schemas),
            "ignored_properties": self.import_state.ignored_summary(),
            "failures": list(self.failures),
        }

    def report(self) -> Dict[str, Any]:
        """Full session report: summary, every property schema and every ignored entry."""
        return {
            "summary": self.summary(),
            "property_schemas": self.import_state.property_schemas.to_dict(),
            "ignored_properties": [entry.to_dict() for entry in self.import_state.ignored_properties],
        }

    def close(self) -> None:
        """Close the graph store."""
        logger.info("Closing runner resources")
        self.store.close()
