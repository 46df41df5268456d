"""
Property schema inference for user properties.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from ..core.exceptions import UnsupportedValueShapeError
from ..core.models import Cardinality, PropertySchema, TypeChange, TypeTag
from ..core.utils import is_collection
from .schema_registry import PropertySchemaRegistry
from .value_types import expand_macro, infer_type_from_value

logger = logging.getLogger(__name__)

MANY_VALUED_TYPES = {TypeTag.PAGE_REFERENCE, TypeTag.DATE}


def journal_names(refs: Iterable[Any]) -> set:
    """Original names of the journal pages among a list of references."""
    names = set()
    for ref in refs or ():
        if isinstance(ref, dict) and ref.get("journal"):
            name = ref.get("original_name") or ref.get("name")
            if name:
                names.add(name)
    return names


def infer_property_type(
    value: Any,
    refs: Iterable[Any] = (),
    macros: Optional[Dict[str, str]] = None,
    prop: Optional[str] = None,
) -> TypeTag:
    """
    Classify a property value, treating collections of journal names as dates.

    Raises:
        UnsupportedValueShapeError: If a collection holds anything but strings
    """
    if is_collection(value) and not all(isinstance(v, str) for v in value):
        raise UnsupportedValueShapeError(value, prop)

    if is_collection(value) and value and set(value) <= journal_names(refs):
        return TypeTag.DATE

    return infer_type_from_value(expand_macro(value, macros))


def infer_schema_and_get_change(
    value: Any,
    prop: str,
    refs: Iterable[Any],
    registry: PropertySchemaRegistry,
    macros: Optional[Dict[str, str]] = None,
) -> Optional[TypeChange]:
    """
    Infer a user property's schema and register it if the property is new.

    Page references and dates are registered with MANY cardinality since
    checking that a property always holds one value across files isn't
    possible yet.

    Args:
        value: Observed property value
        prop: Property key
        refs: References of the entity holding the value
        registry: Session property schema registry
        macros: Macro table used to expand macro values

    Returns:
        TypeChange if the property was registered earlier with another type,
        None otherwise
    """
    prop_type = infer_property_type(value, refs, macros, prop)
    prev = registry.get(prop)

    if prev is None:
        cardinality = Cardinality.MANY if prop_type in MANY_VALUED_TYPES else Cardinality.ONE
        registry.register_if_absent(prop, PropertySchema(prop_type, cardinality))
        return None

    if prev.type != prop_type:
        change = TypeChange(prev.type, prop_type)
        logger.info(
            f"Property type change for {prop!r}: "
            f"{change.from_type.value} -> {change.to_type.value}"
        )
        return change

    return None
