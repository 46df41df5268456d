"""
Page transaction builder.

Builds the name to uuid map for a file and the page fragments, distinguishing
brand-new pages from pages already in the store.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from ..core.graph_store import GraphStore
from ..core.models import IgnoreReason, ImportState, PropertySchema, Ref
from ..core.utils import generate_uuid, is_collection, page_name_sanity_lc
from ..resolver.names import add_uuid_to_page_map
from ..resolver.tags import TagClassPromoter, add_missing_timestamps
from .context import BuildContext
from .properties import DISSOCIATED_PROPERTIES, handle_property_attributes, is_built_in, property_key

logger = logging.getLogger(__name__)

# Must not change across files, so never transacted for existing pages
IDENTITY_ATTRIBUTES = frozenset({"name", "uuid", "format", "journal", "original_name", "journal_day"})

# The only attributes an existing page may change
EXISTING_PAGE_ATTRIBUTES = ("properties", "tags", "alias", "namespace")

PAGE_REF_ATTRIBUTES = ("refs", "path_refs", "tags", "alias")

# Attributes a referenced page map may carry over when it first defines a page
REF_PAGE_ATTRIBUTES = ("original_name", "journal", "journal_day", "uuid")


@dataclass
class PagesTx:
    """
    Page fragments of one file plus what the block builder needs.

    Attributes:
        pages: Page fragments (new pages in full, existing pages restricted)
        page_names_to_uuids: Name to uuid map for every page of the file
        context: Build context for the file's blocks
        existing_page_names: Names already present in the store
    """
    pages: List[Dict[str, Any]]
    page_names_to_uuids: Dict[str, str]
    context: BuildContext
    existing_page_names: Set[str] = field(default_factory=set)


def _page_name(page: Any) -> Optional[str]:
    if isinstance(page, Ref):
        return None if page.is_uuid else page_name_sanity_lc(page.value)
    if isinstance(page, dict):
        name = page.get("name") or page.get("original_name")
        return page_name_sanity_lc(name) if name else None
    return None


def with_ref_pages(pages: Iterable[Dict[str, Any]], blocks: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    All pages of a file: its own pages plus every page its entities reference.

    Referenced pages include refs, tags, aliases, namespaces, block pages,
    user property keys and the page names in collection property values.
    Pages without a uuid are given a fresh one.
    """
    by_name: Dict[str, Dict[str, Any]] = {}

    for page in pages:
        page = {k: v for k, v in page.items() if k != "file"}
        name = _page_name(page)
        if not name:
            continue
        page["name"] = name
        by_name[name] = {**by_name.get(name, {}), **page}

    def add_ref(ref: Any) -> None:
        name = _page_name(ref)
        if not name or name in by_name:
            return
        page = {"name": name}
        if isinstance(ref, dict):
            page.update({k: ref[k] for k in REF_PAGE_ATTRIBUTES if ref.get(k) is not None})
        elif isinstance(ref, Ref):
            page["original_name"] = ref.value
        by_name[name] = page

    def add_entity_refs(entity: Dict[str, Any]) -> None:
        for attr in PAGE_REF_ATTRIBUTES:
            for ref in entity.get(attr) or ():
                add_ref(ref)
        for attr in ("page", "namespace"):
            add_ref(entity.get(attr))
        for prop, value in (entity.get("properties") or {}).items():
            key = property_key(prop)
            if is_built_in(key) or key in DISSOCIATED_PROPERTIES:
                continue
            add_ref({"name": key, "original_name": str(prop)})
            if is_collection(value):
                for v in value:
                    if isinstance(v, str):
                        add_ref({"name": v, "original_name": v})

    for page in list(by_name.values()):
        add_entity_refs(page)
    for block in blocks:
        add_entity_refs(block)

    for page in by_name.values():
        if not page.get("uuid"):
            page["uuid"] = generate_uuid()
    return list(by_name.values())


def _uuid_ref(page: Any, context: BuildContext) -> Any:
    if isinstance(page, dict) and (page.get("name") or page.get("original_name")):
        return Ref.to_uuid(add_uuid_to_page_map(page, context.page_names_to_uuids)["uuid"])
    if isinstance(page, Ref) and not page.is_uuid:
        return Ref.to_uuid(context.cached_resolver.resolve(page.value))
    return page


def resolve_page_relations(page: Dict[str, Any], context: BuildContext) -> Dict[str, Any]:
    """Point alias and namespace at page uuids."""
    page = dict(page)
    if page.get("alias"):
        page["alias"] = [_uuid_ref(alias, context) for alias in page["alias"]]
    if page.get("namespace") is not None:
        page["namespace"] = _uuid_ref(page["namespace"], context)
    return page


def build_new_page(
    page: Dict[str, Any],
    new_schemas: Dict[str, PropertySchema],
    context: BuildContext,
) -> Dict[str, Any]:
    """Build the full fragment of a page that is not in the store yet."""
    page = {"journal": False, **page}
    # Fix pages missing original_name. Shouldn't happen
    if not page.get("original_name"):
        page["original_name"] = page["name"]
    schema = new_schemas.get(property_key(page["name"]))
    if schema is not None:
        page["type"] = "property"
        page["schema"] = schema.to_dict()
    page = add_missing_timestamps(page)
    # TODO: convert org-mode pages once the parser exposes them as markdown
    page["format"] = "markdown"
    page.pop("whiteboard", None)
    page = resolve_page_relations(page, context)
    return context.tag_promoter.update_page_tags(page, context.page_tags_uuid)


def build_existing_page(
    page: Dict[str, Any],
    existing: Dict[str, Any],
    new_schemas: Dict[str, PropertySchema],
    context: BuildContext,
) -> Optional[Dict[str, Any]]:
    """
    Build the restricted fragment of a page already in the store.

    Only properties, tags, alias, namespace and a new property schema are
    transacted. Other attributes that differ from the stored page are logged
    as unhandled and not applied.

    Returns:
        Fragment, or None when nothing may change
    """
    name = page["name"]
    schema = new_schemas.get(property_key(name))
    changes = {k: page[k] for k in EXISTING_PAGE_ATTRIBUTES if k in page}

    unhandled = {
        k: v for k, v in page.items()
        if k not in IDENTITY_ATTRIBUTES
        and k not in EXISTING_PAGE_ATTRIBUTES
        and existing.get(k) != v
    }
    if unhandled:
        logger.warning(f"Unhandled changes for existing page {name!r}: {sorted(unhandled)}")
        context.import_state.record_ignored(
            IgnoreReason.UNHANDLED_PAGE_ATTRIBUTE_CHANGE,
            property=", ".join(sorted(unhandled)),
            value=unhandled,
            location={"page": name},
        )

    if schema is None and not changes:
        return None

    fragment = resolve_page_relations({"name": name, **changes}, context)
    if fragment.get("tags"):
        fragment = context.tag_promoter.update_page_tags(fragment, context.page_tags_uuid)
    if schema is not None:
        fragment["type"] = "property"
        fragment["schema"] = schema.to_dict()
    return fragment


def build_pages_tx(
    store: GraphStore,
    pages: Iterable[Dict[str, Any]],
    blocks: Iterable[Dict[str, Any]],
    import_state: ImportState,
    tag_classes: Iterable[str] = (),
    page_tags_uuid: Optional[str] = None,
    macros: Optional[Dict[str, str]] = None,
) -> PagesTx:
    """
    Given all the pages and blocks parsed from a file, build the page fragments.

    Args:
        store: Graph store, queried for existing pages
        pages: Raw pages
        blocks: Raw blocks
        import_state: Session state
        tag_classes: Tag names promoted to classes
        page_tags_uuid: uuid of the page-tags property
        macros: Macro table

    Returns:
        PagesTx with the fragments and the file's name map and build context
    """
    blocks = list(blocks)
    all_pages = with_ref_pages(pages, blocks)

    existing_pages = {}
    for page in all_pages:
        entity = store.get_page(page["name"])
        if entity is not None:
            existing_pages[page["name"]] = entity

    page_names_to_uuids = {
        page["name"]: page["uuid"] for page in all_pages if page["name"] not in existing_pages
    }
    page_names_to_uuids.update({name: entity["uuid"] for name, entity in existing_pages.items()})

    context = BuildContext(
        store=store,
        page_names_to_uuids=page_names_to_uuids,
        import_state=import_state,
        tag_promoter=TagClassPromoter(tag_classes, page_names_to_uuids, store, import_state),
        page_tags_uuid=page_tags_uuid,
        macros=dict(macros or {}),
        existing_page_names=set(existing_pages),
    )

    old_schemas = context.registry.checkpoint()
    # Must come before building fragments so new property schemas are detected
    handled = [handle_property_attributes(page, context, all_pages) for page in all_pages]
    new_schemas = context.registry.diff_since(old_schemas)

    pages_tx = []
    for page in handled:
        if page["name"] in existing_pages:
            fragment = build_existing_page(page, existing_pages[page["name"]], new_schemas, context)
            if fragment is not None:
                pages_tx.append(fragment)
        else:
            pages_tx.append(build_new_page(page, new_schemas, context))

    logger.debug(
        f"Built {len(pages_tx)} page fragments "
        f"({len(existing_pages)} existing, {len(all_pages) - len(existing_pages)} new)"
    )
    return PagesTx(
        pages=pages_tx,
        page_names_to_uuids=page_names_to_uuids,
        context=context,
        existing_page_names=set(existing_pages),
    )
