"""
In-memory graph store.

Used for tests, dry runs and small imports. Entities are kept in a dict keyed
by uuid with a unique name index for pages.
"""

import copy
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional

from ..core.exceptions import TransactionError
from ..core.graph_store import CLOSED_VALUE_TYPE, GraphStore
from ..core.models import TransactionResult
from ..core.utils import page_name_sanity_lc
from .transaction import TransactionApplier

logger = logging.getLogger(__name__)


class MemoryGraphStore(GraphStore):
    """
    In-memory implementation of the graph store.

    Transactions are all-or-nothing: the working set is validated before
    anything is committed, so a rejected transaction changes nothing.
    """

    def __init__(self):
        self._entities: Dict[str, Dict[str, Any]] = {}
        self._by_name: Dict[str, str] = {}
        self._lock = threading.RLock()
        self.tx_count = 0

    def get_page(self, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            uuid = self._by_name.get(page_name_sanity_lc(name))
            return copy.deepcopy(self._entities[uuid]) if uuid else None

    def get_entity(self, uuid: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entity = self._entities.get(uuid)
            return copy.deepcopy(entity) if entity else None

    def get_closed_value_id(self, property_name: str, value: Any) -> Optional[str]:
        with self._lock:
            for entity in self._entities.values():
                if (
                    entity.get("type") == CLOSED_VALUE_TYPE
                    and entity.get("property") == property_name
                    and entity.get("value") == value
                ):
                    return entity["uuid"]
        return None

    def transact(self, tx: List[Dict[str, Any]]) -> TransactionResult:
        with self._lock:
            applier = TransactionApplier(self)
            try:
                changed = applier.apply(tx)
            except TransactionError as e:
                logger.warning(f"Transaction rejected: {e}")
                return TransactionResult(success=False, tx_data=tx, error=str(e))

            for uuid, entity in changed.items():
                old_name = applier.previous_names.get(uuid)
                if old_name and old_name != entity.get("name") and self._by_name.get(old_name) == uuid:
                    del self._by_name[old_name]
                self._entities[uuid] = entity
                if entity.get("name"):
                    self._by_name[entity["name"]] = uuid

            self.tx_count += 1
            logger.debug(f"Transacted {len(tx)} fragments, {len(changed)} entities")
            return TransactionResult(success=True, tx_data=tx, entity_count=len(changed))

    def entities(self) -> Iterator[Dict[str, Any]]:
        """Iterate over copies of every entity."""
        with self._lock:
            snapshot = copy.deepcopy(list(self._entities.values()))
        return iter(snapshot)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Copy of the whole store, keyed by uuid."""
        with self._lock:
            return copy.deepcopy(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, uuid: str) -> bool:
        return uuid in self._entities
