"""
Promotion of designated tags into class entities.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..core.graph_store import GraphStore
from ..core.models import IgnoreReason, ImportState
from ..core.utils import generate_uuid, page_name_sanity_lc, time_ms
from .content import content_without_tags, replace_tags_with_id_refs
from .names import add_uuid_to_page_map

logger = logging.getLogger(__name__)

CLASS_TYPE = "class"


def add_missing_timestamps(entity: Dict[str, Any]) -> Dict[str, Any]:
    """Add created_at/updated_at if missing. Existing timestamps are never overwritten."""
    now = time_ms()
    entity = dict(entity)
    if entity.get("updated_at") is None:
        entity["updated_at"] = now
    if entity.get("created_at") is None:
        entity["created_at"] = now
    return entity


class TagClassPromoter:
    """
    Promotes tags named in the tag-class set to class entities.

    A class entity keeps its page name but gets a class type marker. Its uuid
    is the one already known for the name (promoted earlier in this file,
    assigned to the page in this file's name map, or present in the store);
    a fresh uuid is assigned only when none of those exist.

    Example usage:
        >>> promoter = TagClassPromoter({"Book"}, {"book": "6530..."}, store)
        >>> promoter.promote({"name": "book", "original_name": "Book"})["type"]
        'class'
    """

    def __init__(
        self,
        tag_classes: Iterable[str],
        page_names_to_uuids: Dict[str, str],
        store: GraphStore,
        import_state: Optional[ImportState] = None,
    ):
        self.tag_classes = {page_name_sanity_lc(t) for t in tag_classes or ()}
        self.page_names_to_uuids = page_names_to_uuids
        self.store = store
        self.import_state = import_state
        self._promoted: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def tag_name(tag: Dict[str, Any]) -> str:
        return page_name_sanity_lc(tag.get("name") or tag.get("original_name"))

    def is_class(self, tag: Dict[str, Any]) -> bool:
        return self.tag_name(tag) in self.tag_classes

    def promote(self, tag: Dict[str, Any]) -> Dict[str, Any]:
        """Build (or reuse) the class entity for a tag."""
        name = self.tag_name(tag)
        if name in self._promoted:
            return dict(self._promoted[name])

        uuid = self.page_names_to_uuids.get(name) or self.store.get_property_id(name)
        if uuid is None:
            uuid = generate_uuid()
            self.page_names_to_uuids[name] = uuid

        entity = dict(tag)
        stored = self.store.get_entity(uuid)
        if stored:
            for attr in ("created_at", "updated_at"):
                if entity.get(attr) is None:
                    entity[attr] = stored.get(attr)
        entity = add_missing_timestamps(entity)
        entity.update({
            "name": name,
            "original_name": tag.get("original_name") or name,
            "journal": False,
            "format": "markdown",
            "type": CLASS_TYPE,
            "uuid": uuid,
        })
        self._promoted[name] = entity
        logger.debug(f"Promoted tag {name!r} to class {uuid}")
        return dict(entity)

    @property
    def promoted(self) -> List[Dict[str, Any]]:
        """Class entities promoted so far in this file."""
        return [dict(entity) for entity in self._promoted.values()]

    def update_block_tags(self, block: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace a block's tags with class entities and rewrite its content.

        Class tags are stripped from the content; other tags are rewritten to
        id references and kept as plain page references in the block's refs.
        """
        tags = block.get("tags")
        if not tags:
            return block

        class_tags = [tag for tag in tags if self.is_class(tag)]
        plain_tags = [
            add_uuid_to_page_map(tag, self.page_names_to_uuids)
            for tag in tags if not self.is_class(tag)
        ]
        classes = [self.promote(tag) for tag in class_tags]

        block = dict(block)
        if block.get("content"):
            block["content"] = content_without_tags(
                block["content"],
                [tag.get("original_name") or tag.get("name") for tag in class_tags],
                [cls["uuid"] for cls in classes],
            )
            block["content"] = replace_tags_with_id_refs(block["content"], plain_tags)

        if plain_tags:
            refs = list(block.get("refs") or [])
            ref_names = {
                page_name_sanity_lc(ref.get("name")) for ref in refs if isinstance(ref, dict)
            }
            for tag in plain_tags:
                if self.tag_name(tag) not in ref_names:
                    refs.append({"name": self.tag_name(tag), "uuid": tag["uuid"]})
            block["refs"] = refs

        block["tags"] = classes
        return block

    def update_page_tags(self, page: Dict[str, Any], page_tags_uuid: Optional[str]) -> Dict[str, Any]:
        """
        Replace a page's tags with class entities.

        Other tags are stored as uuids in the page's multi-valued page-tags
        property.

        Raises:
            UnresolvedReferenceError: If a plain tag has no uuid in this file
        """
        tags = page.get("tags")
        if not tags:
            return page

        page_tags = {
            add_uuid_to_page_map(tag, self.page_names_to_uuids)["uuid"]
            for tag in tags if not self.is_class(tag)
        }
        page = dict(page)
        page["tags"] = [self.promote(tag) for tag in tags if self.is_class(tag)]

        if page_tags:
            if page_tags_uuid is None:
                logger.warning(
                    f"No page-tags property configured; dropping tags of page {page.get('name')!r}"
                )
                if self.import_state is not None:
                    self.import_state.record_ignored(
                        IgnoreReason.DISCARDED_PROPERTY_VALUE,
                        property="tags",
                        value=page_tags,
                        location={"page": page.get("name")},
                        detail="no page-tags property id configured",
                    )
            else:
                page["properties"] = {**(page.get("properties") or {}), page_tags_uuid: page_tags}
        return page
