"""
Name to uuid resolution for pages and properties.
"""

import logging
from typing import Any, Dict, Optional

from ..core.exceptions import UnresolvedReferenceError
from ..core.graph_store import GraphStore
from ..core.utils import page_name_sanity_lc

logger = logging.getLogger(__name__)


class PageNameResolver:
    """
    Resolves page and property names to stable uuids.

    Normal mode trusts the current file's map of names (which includes the
    brand-new pages of this file) before asking the store. Whiteboard mode
    resolves strictly by existence in the store.

    Example usage:
        >>> resolver = PageNameResolver(store, {"foo": "6530..."})
        >>> resolver.resolve("Foo")
        '6530...'
    """

    def __init__(
        self,
        store: GraphStore,
        page_names_to_uuids: Dict[str, str],
        whiteboard: bool = False,
    ):
        self.store = store
        self.page_names_to_uuids = page_names_to_uuids
        self.whiteboard = whiteboard

    def lookup(self, name: Any) -> Optional[str]:
        """Resolve a name, returning None when it is unknown."""
        normalized = page_name_sanity_lc(name)
        if not self.whiteboard:
            uuid = self.page_names_to_uuids.get(normalized)
            if uuid:
                return uuid
        return self.store.get_property_id(normalized)

    def resolve(self, name: Any, kind: str = "page") -> str:
        """
        Resolve a name to a uuid.

        Raises:
            UnresolvedReferenceError: If neither the file nor the store knows the name
        """
        uuid = self.lookup(name)
        if uuid is None:
            raise UnresolvedReferenceError(str(name), kind)
        return uuid

    def __call__(self, name: Any) -> str:
        return self.resolve(name)


def add_uuid_to_page_map(page: Dict[str, Any], page_names_to_uuids: Dict[str, str]) -> Dict[str, Any]:
    """
    Return a copy of a page map with its uuid taken from the file's name map.

    Raises:
        UnresolvedReferenceError: If the page is not in the map
    """
    name = page_name_sanity_lc(page.get("name") or page.get("original_name"))
    uuid = page_names_to_uuids.get(name)
    if not uuid:
        raise UnresolvedReferenceError(name, "page")
    return {**page, "uuid": uuid}
