"""
Per-file build context shared by the page and block builders.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from ..core.graph_store import GraphStore
from ..core.models import ImportState
from ..resolver.names import PageNameResolver
from ..resolver.tags import TagClassPromoter


@dataclass
class BuildContext:
    """
    Everything the builders need while importing one file.

    Attributes:
        store: Graph store used for existing-entity lookups
        page_names_to_uuids: Name to uuid map built for this file
        import_state: Session state (property schemas, ignored properties)
        tag_promoter: Promoter for this file's tag classes
        page_tags_uuid: uuid of the property holding page tags
        macros: Macro table for macro expansion during inference
        whiteboard: Resolve names strictly through the store
        existing_page_names: Names of this file's pages already in the store
    """
    store: GraphStore
    page_names_to_uuids: Dict[str, str]
    import_state: ImportState
    tag_promoter: TagClassPromoter
    page_tags_uuid: Optional[str] = None
    macros: Dict[str, str] = field(default_factory=dict)
    whiteboard: bool = False
    existing_page_names: Set[str] = field(default_factory=set)

    @property
    def resolver(self) -> PageNameResolver:
        """Resolver in this context's mode (whiteboard or normal)."""
        return PageNameResolver(self.store, self.page_names_to_uuids, self.whiteboard)

    @property
    def cached_resolver(self) -> PageNameResolver:
        """Resolver that always consults the file's name map first."""
        return PageNameResolver(self.store, self.page_names_to_uuids)

    @property
    def registry(self):
        return self.import_state.property_schemas

    def with_mode(self, whiteboard: bool) -> "BuildContext":
        """Copy of this context in the given resolution mode."""
        return BuildContext(
            store=self.store,
            page_names_to_uuids=self.page_names_to_uuids,
            import_state=self.import_state,
            tag_promoter=self.tag_promoter,
            page_tags_uuid=self.page_tags_uuid,
            macros=self.macros,
            whiteboard=whiteboard,
            existing_page_names=self.existing_page_names,
        )


def entity_location(entity: Dict[str, Any]) -> Dict[str, Any]:
    """Location of a page or block for the ignored-properties log."""
    if entity.get("name"):
        return {"page": entity["name"]}
    return {"block": entity.get("content")}
