"""
Seeding of a new DB graph with its built-in properties.

Built-in property ids and closed values must exist before any file is
imported: value translation and whiteboard pages look them up by name.
"""

import logging
from typing import Dict, Iterable, List

from ..builder.properties import BUILT_IN_PROPERTIES
from ..core.graph_store import CLOSED_VALUE_TYPE, GraphStore
from ..core.models import Cardinality, PropertySchema, TransactionResult, TypeTag
from ..core.utils import generate_uuid

logger = logging.getLogger(__name__)

CLOSED_VALUES: Dict[str, List[str]] = {
    "logseq.color": ["red", "yellow", "green", "blue", "purple", "gray"],
    "logseq.table.headers": ["uppercase", "capitalize", "capitalize-first", "lowercase"],
    "logseq.table.hover": ["row", "col", "both", "none"],
}


def built_in_property_fragment(name: str, type_tag: TypeTag) -> dict:
    cardinality = Cardinality.MANY if type_tag in (TypeTag.PAGE_REFERENCE, TypeTag.DATE) else Cardinality.ONE
    return {
        "name": name,
        "original_name": name,
        "uuid": generate_uuid(),
        "journal": False,
        "format": "markdown",
        "type": "property",
        "built_in": True,
        "schema": PropertySchema(type_tag, cardinality).to_dict(),
    }


def bootstrap_graph(store: GraphStore, properties: Iterable[str] = None) -> TransactionResult:
    """
    Create missing built-in properties and their closed values.

    Safe to run on a graph that already has them.

    Args:
        store: Target graph store
        properties: Built-in names to seed (all of them by default)

    Returns:
        TransactionResult of the seeding transaction
    """
    names = list(properties) if properties is not None else list(BUILT_IN_PROPERTIES)
    tx = []
    for name in names:
        if store.get_property_id(name) is None:
            tx.append(built_in_property_fragment(name, BUILT_IN_PROPERTIES.get(name, TypeTag.DEFAULT)))

    for prop, values in CLOSED_VALUES.items():
        if prop not in names:
            continue
        for value in values:
            if store.get_closed_value_id(prop, value) is None:
                tx.append({
                    "uuid": generate_uuid(),
                    "type": CLOSED_VALUE_TYPE,
                    "property": prop,
                    "value": value,
                })

    if not tx:
        return TransactionResult(success=True)

    logger.info(f"Seeding graph with {len(tx)} built-in entities")
    result = store.transact(tx)
    result.raise_for_error()
    return result
