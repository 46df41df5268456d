"""
Graph store interface: the database boundary of the import engine.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import TransactionResult
from .utils import page_name_sanity_lc

CLOSED_VALUE_TYPE = "closed value"


class GraphStore(ABC):
    """
    Abstract base class for graph stores.

    Graph stores hold entities (pages, blocks, properties, classes) keyed by
    uuid, with page entities also unique by name. The import engine only
    reads single entities and applies whole transactions.
    """

    @abstractmethod
    def get_page(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Look up a page entity by name.

        Args:
            name: Page name (normalized before lookup)

        Returns:
            Entity dict if found, None otherwise
        """
        pass

    @abstractmethod
    def get_entity(self, uuid: str) -> Optional[Dict[str, Any]]:
        """
        Look up any entity by its stable id.

        Args:
            uuid: Entity uuid

        Returns:
            Entity dict if found, None otherwise
        """
        pass

    @abstractmethod
    def get_closed_value_id(self, property_name: str, value: Any) -> Optional[str]:
        """
        Resolve a closed value of a built-in property to its entity uuid.

        Args:
            property_name: Built-in property key (e.g. 'logseq.color')
            value: The value's name (e.g. 'red')

        Returns:
            uuid of the closed value entity, None if the property has no such value
        """
        pass

    @abstractmethod
    def transact(self, tx: List[Dict[str, Any]]) -> TransactionResult:
        """
        Apply a transaction atomically.

        Either every fragment is applied or none is.

        Args:
            tx: Entity-attribute maps identified by 'uuid' or 'name'

        Returns:
            TransactionResult; success=False on constraint violations
        """
        pass

    def get_property_id(self, name: str) -> Optional[str]:
        """Get a property's (or page's) uuid given its name."""
        page = self.get_page(page_name_sanity_lc(name))
        return page.get("uuid") if page else None

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
