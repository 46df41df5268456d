"""
Reference and tag resolution: names to uuids, tag classes, content rewriting.
"""

from .names import PageNameResolver, add_uuid_to_page_map
from .tags import TagClassPromoter, add_missing_timestamps
from .content import (
    page_ref_to_id_ref,
    replace_tags_with_id_refs,
    content_without_tags,
    id_refs_in,
)

__all__ = [
    "PageNameResolver",
    "add_uuid_to_page_map",
    "TagClassPromoter",
    "add_missing_timestamps",
    "page_ref_to_id_ref",
    "replace_tags_with_id_refs",
    "content_without_tags",
    "id_refs_in",
]
