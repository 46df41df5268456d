"""
Property schema registry shared by every file of an import session.
"""

import logging
from typing import Dict, FrozenSet, Iterator, Optional

from ..core.models import PropertySchema

logger = logging.getLogger(__name__)


class PropertySchemaRegistry:
    """
    Accumulates the first-observed schema of every user property.

    Registration is idempotent and monotonic: once a property has a schema it
    is never replaced. Later files that disagree produce TypeChange results in
    the inference engine, not registry mutations. The only removal is
    rollback(), which forgets the schemas of a file whose import was aborted.

    Example usage:
        >>> registry = PropertySchemaRegistry()
        >>> checkpoint = registry.checkpoint()
        >>> registry.register_if_absent("priority", PropertySchema(TypeTag.NUMBER))
        True
        >>> list(registry.diff_since(checkpoint))
        ['priority']
    """

    def __init__(self, schemas: Optional[Dict[str, PropertySchema]] = None):
        self._schemas: Dict[str, PropertySchema] = dict(schemas or {})

    def get(self, prop: str) -> Optional[PropertySchema]:
        """Get the registered schema for a property, if any."""
        return self._schemas.get(prop)

    def register_if_absent(self, prop: str, schema: PropertySchema) -> bool:
        """
        Register a schema unless the property already has one.

        Returns:
            True if registered, False if a schema already existed
        """
        if prop in self._schemas:
            return False
        self._schemas[prop] = schema
        logger.debug(
            f"Registered property schema: {prop} -> "
            f"{schema.type.value}/{schema.cardinality.value}"
        )
        return True

    def checkpoint(self) -> FrozenSet[str]:
        """Snapshot of the properties registered so far."""
        return frozenset(self._schemas)

    def diff_since(self, checkpoint: FrozenSet[str]) -> Dict[str, PropertySchema]:
        """Schemas registered after the given checkpoint, in registration order."""
        return {
            prop: schema
            for prop, schema in self._schemas.items()
            if prop not in checkpoint
        }

    def rollback(self, checkpoint: FrozenSet[str]) -> None:
        """Forget schemas registered after the given checkpoint."""
        dropped = [prop for prop in self._schemas if prop not in checkpoint]
        for prop in dropped:
            del self._schemas[prop]
        if dropped:
            logger.debug(f"Rolled back property schemas: {', '.join(dropped)}")

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {prop: schema.to_dict() for prop, schema in self._schemas.items()}

    def __contains__(self, prop: str) -> bool:
        return prop in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)
