"""
Transaction application shared by the graph store backends.

A transaction is a list of entity-attribute maps. Each map is identified by
'uuid' or 'name' and upserted: attributes it carries overwrite the entity's,
except many-valued reference attributes, whose values are added. Nested maps
under reference attributes are upserted too and replaced by uuid refs.

Changes are applied to a working set of copies. The backend persists the
working set only after every reference has been validated.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from ..core.exceptions import TransactionError
from ..core.graph_store import GraphStore
from ..core.models import Ref
from ..core.utils import generate_uuid, page_name_sanity_lc

logger = logging.getLogger(__name__)

MANY_REF_ATTRIBUTES = frozenset({"refs", "path_refs", "tags", "alias"})
ONE_REF_ATTRIBUTES = frozenset({"page", "parent", "left", "namespace"})
REF_ATTRIBUTES = MANY_REF_ATTRIBUTES | ONE_REF_ATTRIBUTES


class TransactionApplier:
    """
    Applies a transaction to a working set of entities keyed by uuid.

    Entities asserted by name only get a provisional uuid, replaced if a later
    fragment of the same transaction supplies the real one.

    Example usage:
        >>> applier = TransactionApplier(store)
        >>> applier.apply([{"name": "foo", "uuid": "6530..."}])
        >>> applier.changed["6530..."]["name"]
        'foo'
    """

    def __init__(self, store: GraphStore):
        self.store = store
        self.changed: Dict[str, Dict[str, Any]] = {}
        self.previous_names: Dict[str, Optional[str]] = {}
        self._names: Dict[str, str] = {}
        self._provisional: Set[str] = set()
        self._renamed: Dict[str, str] = {}

    def apply(self, tx: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """
        Apply every fragment, then validate and resolve references.

        Returns:
            The working set: uuid -> entity, for every entity touched

        Raises:
            TransactionError: On a fragment without identity, an identity
                conflict or a reference to an unknown entity
        """
        for fragment in tx:
            if not isinstance(fragment, dict):
                raise TransactionError(f"Transaction fragment must be a map, got {fragment!r}")
            self.upsert(fragment)
        self._resolve_refs()
        return self.changed

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def _stored_uuid_for_name(self, name: str) -> Optional[str]:
        if name in self._names:
            return self._names[name]
        page = self.store.get_page(name)
        return page.get("uuid") if page else None

    def _exists(self, uuid: str) -> bool:
        return uuid in self.changed or self.store.get_entity(uuid) is not None

    def _load(self, uuid: str) -> Dict[str, Any]:
        if uuid not in self.changed:
            entity = self.store.get_entity(uuid)
            entity = copy.deepcopy(entity) if entity else {"uuid": uuid}
            self.changed[uuid] = entity
            self.previous_names[uuid] = entity.get("name")
            if entity.get("name"):
                self._names[entity["name"]] = uuid
        return self.changed[uuid]

    def _rename_provisional(self, provisional: str, uuid: str) -> None:
        entity = self.changed.pop(provisional)
        self.previous_names.pop(provisional, None)
        self._provisional.discard(provisional)
        self._renamed[provisional] = uuid
        target = self._load(uuid)
        for attr, value in entity.items():
            if attr != "uuid":
                self._set(target, attr, value)
        if target.get("name"):
            self._names[target["name"]] = uuid

    def _identify(self, uuid: Optional[str], name: Optional[str]) -> str:
        by_name = self._stored_uuid_for_name(name) if name else None

        if uuid:
            uuid = self._renamed.get(uuid, uuid)
            if by_name and by_name != uuid:
                if by_name in self._provisional:
                    self._rename_provisional(by_name, uuid)
                    return uuid
                raise TransactionError(
                    f"Identity conflict: name {name!r} belongs to {by_name}, not {uuid}"
                )
            return uuid

        if by_name:
            return by_name

        provisional = generate_uuid()
        self._provisional.add(provisional)
        return provisional

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    def upsert(self, fragment: Dict[str, Any]) -> str:
        """Upsert one fragment, returning the entity's uuid."""
        uuid = fragment.get("uuid")
        name = page_name_sanity_lc(fragment["name"]) if fragment.get("name") else None
        if not uuid and not name:
            raise TransactionError(f"Fragment has no identity (uuid or name): {fragment!r}")

        uuid = self._identify(uuid, name)
        entity = self._load(uuid)

        if name:
            old_name = entity.get("name")
            if old_name and old_name != name and self._names.get(old_name) == uuid:
                del self._names[old_name]
            entity["name"] = name
            self._names[name] = uuid

        for attr, value in fragment.items():
            if attr in ("uuid", "name"):
                continue
            self._set(entity, attr, self._convert(attr, value))
        return uuid

    def _convert(self, attr: str, value: Any) -> Any:
        if attr not in REF_ATTRIBUTES:
            return copy.deepcopy(value)
        if attr in MANY_REF_ATTRIBUTES:
            values = value if isinstance(value, (list, tuple, set, frozenset)) and not isinstance(value, Ref) else [value]
            return [self._convert_ref(v) for v in values]
        return self._convert_ref(value)

    def _convert_ref(self, value: Any) -> Any:
        if isinstance(value, dict):
            return Ref.to_uuid(self.upsert(value))
        if isinstance(value, Ref):
            return value
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return Ref(value[0], value[1])
        raise TransactionError(f"Unsupported reference value: {value!r}")

    @staticmethod
    def _set(entity: Dict[str, Any], attr: str, value: Any) -> None:
        if attr in MANY_REF_ATTRIBUTES:
            existing = list(entity.get(attr) or [])
            for v in value:
                if v not in existing:
                    existing.append(v)
            entity[attr] = existing
        else:
            entity[attr] = value

    # ------------------------------------------------------------------
    # Reference validation
    # ------------------------------------------------------------------

    def _resolve_ref(self, ref: Ref) -> Ref:
        if ref.is_uuid:
            uuid = self._renamed.get(ref.value, ref.value)
            if not self._exists(uuid):
                raise TransactionError(f"Reference to unknown entity: uuid {uuid}")
            return Ref.to_uuid(uuid)
        uuid = self._stored_uuid_for_name(page_name_sanity_lc(ref.value))
        if uuid is None:
            raise TransactionError(f"Reference to unknown entity: name {ref.value!r}")
        return Ref.to_uuid(self._renamed.get(uuid, uuid))

    def _resolve_refs(self) -> None:
        for entity in self.changed.values():
            for attr in REF_ATTRIBUTES:
                value = entity.get(attr)
                if isinstance(value, Ref):
                    entity[attr] = self._resolve_ref(value)
                elif isinstance(value, list):
                    resolved = []
                    for ref in value:
                        ref = self._resolve_ref(ref) if isinstance(ref, Ref) else ref
                        if ref not in resolved:
                            resolved.append(ref)
                    entity[attr] = resolved
