"""
Property handling for pages and blocks.

Infers schemas for user properties, translates built-in property values,
migrates values whose type changed since the property was first seen, and
maps property keys to property uuids.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from ..core.exceptions import MalformedBuiltinValueError
from ..core.models import IgnoreReason, TypeChange, TypeTag
from ..core.utils import is_collection, page_name_sanity_lc
from ..inference.property_inference import infer_schema_and_get_change
from ..resolver.names import PageNameResolver
from .context import BuildContext, entity_location
from .literals import decode_literal

logger = logging.getLogger(__name__)


# Built-in properties and their fixed types. These are never inferred.
BUILT_IN_PROPERTIES: Dict[str, TypeTag] = {
    "alias": TypeTag.PAGE_REFERENCE,
    "tags": TypeTag.PAGE_REFERENCE,
    "pagetags": TypeTag.PAGE_REFERENCE,
    "title": TypeTag.DEFAULT,
    "id": TypeTag.DEFAULT,
    "icon": TypeTag.DEFAULT,
    "public": TypeTag.BOOLEAN,
    "exclude-from-graph-view": TypeTag.BOOLEAN,
    "filters": TypeTag.DEFAULT,
    "heading": TypeTag.DEFAULT,
    "collapsed": TypeTag.BOOLEAN,
    "created-at": TypeTag.NUMBER,
    "updated-at": TypeTag.NUMBER,
    "background-color": TypeTag.DEFAULT,
    "template": TypeTag.DEFAULT,
    "template-including-parent": TypeTag.BOOLEAN,
    "query-table": TypeTag.BOOLEAN,
    "query-properties": TypeTag.DEFAULT,
    "query-sort-by": TypeTag.DEFAULT,
    "query-sort-desc": TypeTag.BOOLEAN,
    "ls-type": TypeTag.DEFAULT,
    "hl-type": TypeTag.DEFAULT,
    "hl-page": TypeTag.NUMBER,
    "hl-stamp": TypeTag.NUMBER,
    "hl-color": TypeTag.DEFAULT,
    "card-last-interval": TypeTag.NUMBER,
    "card-repeats": TypeTag.NUMBER,
    "card-last-reviewed": TypeTag.DATE,
    "card-next-schedule": TypeTag.DATE,
    "card-ease-factor": TypeTag.NUMBER,
    "card-last-score": TypeTag.NUMBER,
    "logseq.order-list-type": TypeTag.DEFAULT,
    "logseq.tldraw.page": TypeTag.DEFAULT,
    "logseq.tldraw.shape": TypeTag.DEFAULT,
    "logseq.color": TypeTag.DEFAULT,
    "logseq.table.version": TypeTag.NUMBER,
    "logseq.table.compact": TypeTag.BOOLEAN,
    "logseq.table.headers": TypeTag.DEFAULT,
    "logseq.table.hover": TypeTag.DEFAULT,
    "logseq.table.borders": TypeTag.BOOLEAN,
    "logseq.table.stripes": TypeTag.BOOLEAN,
    "logseq.table.max-width": TypeTag.NUMBER,
}

# Built-ins already imported as attributes (tags, alias) or not supported
IGNORED_BUILT_IN_PROPERTIES = (
    "tags", "alias",
    "now", "later", "doing", "done", "canceled", "cancelled",
    "in-progress", "todo", "wait", "waiting",
)

DISSOCIATED_PROPERTIES = frozenset(IGNORED_BUILT_IN_PROPERTIES + (
    "title", "id", "created-at", "updated-at",
    "card-last-interval", "card-repeats", "card-last-reviewed",
    "card-next-schedule", "card-ease-factor", "card-last-score",
))

PARSER_BOOKKEEPING_ATTRIBUTES = ("properties_text_values", "properties_order", "invalid_properties")

# Sort/query columns that are entity attributes rather than properties
ATTRIBUTE_COLUMNS = frozenset({"page", "block", "created-at", "updated-at"})

CLOSED_VALUE_PROPERTIES = frozenset({"logseq.color", "logseq.table.headers", "logseq.table.hover"})

UNSUPPORTED_BUILT_IN_PROPERTIES = frozenset({"icon"})


def property_key(prop: Any) -> str:
    """Interned identity of a property: its normalized name."""
    return page_name_sanity_lc(prop)


def is_built_in(prop: str) -> bool:
    return prop in BUILT_IN_PROPERTIES


# ---------------------------------------------------------------------------
# Built-in value translation
# ---------------------------------------------------------------------------

def _column_or_property_id(value: Any, prop: str, context: BuildContext) -> str:
    if not isinstance(value, str):
        raise MalformedBuiltinValueError(f"Expected a column name, got {value!r}", prop, value)
    if value in ATTRIBUTE_COLUMNS:
        return value
    property_id = context.store.get_property_id(value)
    if property_id is None:
        raise MalformedBuiltinValueError(f"Unknown property {value!r}", prop, value)
    return property_id


def _translate_query_properties(value: Any, prop: str, context: BuildContext) -> Any:
    columns = decode_literal(value)
    if not isinstance(columns, list):
        raise MalformedBuiltinValueError(f"Expected a vector, got {columns!r}", prop, value)
    return [_column_or_property_id(column, prop, context) for column in columns]


def _translate_query_sort_by(value: Any, prop: str, context: BuildContext) -> Any:
    return _column_or_property_id(value, prop, context)


def _translate_closed_value(value: Any, prop: str, context: BuildContext) -> Any:
    value_id = context.store.get_closed_value_id(prop, value)
    if value_id is None:
        raise MalformedBuiltinValueError(f"No closed value {value!r}", prop, value)
    return value_id


def _translate_table_version(value: Any, prop: str, context: BuildContext) -> Any:
    try:
        return int(str(value).strip())
    except ValueError:
        raise MalformedBuiltinValueError(f"Not an integer: {value!r}", prop, value)


def _translate_filters(value: Any, prop: str, context: BuildContext) -> Any:
    filters = decode_literal(value)
    if not isinstance(filters, dict):
        raise MalformedBuiltinValueError(f"Expected a map, got {filters!r}", prop, value)
    return filters


BUILT_IN_TRANSLATORS: Dict[str, Callable[[Any, str, BuildContext], Any]] = {
    "query-properties": _translate_query_properties,
    "query-sort-by": _translate_query_sort_by,
    "logseq.color": _translate_closed_value,
    "logseq.table.headers": _translate_closed_value,
    "logseq.table.hover": _translate_closed_value,
    "logseq.table.version": _translate_table_version,
    "filters": _translate_filters,
}

# Value used when a built-in fails to decode; None drops the property
BUILT_IN_FALLBACKS: Dict[str, Any] = {
    "query-properties": [],
    "filters": {},
}


def translate_built_in_values(
    props: Dict[str, Any],
    context: BuildContext,
    entity: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Translate built-in property values to their DB graph form.

    Malformed values are replaced with a fallback and logged; unsupported
    built-ins are dropped and logged.
    """
    translated = {}
    for prop, value in props.items():
        if prop in UNSUPPORTED_BUILT_IN_PROPERTIES:
            logger.warning(f"Ignoring unsupported built-in property {prop!r}")
            context.import_state.record_ignored(
                IgnoreReason.UNSUPPORTED_BUILTIN_PROPERTY,
                property=prop,
                value=value,
                location=entity_location(entity),
            )
            continue

        translator = BUILT_IN_TRANSLATORS.get(prop)
        if translator is None:
            translated[prop] = value
            continue

        try:
            translated[prop] = translator(value, prop, context)
        except MalformedBuiltinValueError as e:
            logger.error(f"Translating {prop} failed with: {e}")
            context.import_state.record_ignored(
                IgnoreReason.MALFORMED_BUILTIN_VALUE,
                property=prop,
                value=value,
                location=entity_location(entity),
                detail=str(e),
            )
            fallback = BUILT_IN_FALLBACKS.get(prop)
            if fallback is not None:
                translated[prop] = type(fallback)()
    return translated


# ---------------------------------------------------------------------------
# Type change migration
# ---------------------------------------------------------------------------

class MigrationPolicy(str, Enum):
    """What happens to a value whose property type changed."""
    STRINGIFY = "stringify"
    RESOLVE_PAGE_REFERENCES = "resolve_page_references"
    DROP = "drop"


ANY_TYPE = None

# (from, to) -> policy. ANY_TYPE matches every target type. Pairs not listed drop.
MIGRATION_POLICIES: Dict[Tuple[TypeTag, Optional[TypeTag]], MigrationPolicy] = {
    # any value can be stringified, so the target type doesn't matter
    (TypeTag.DEFAULT, ANY_TYPE): MigrationPolicy.STRINGIFY,
    # dates are page references to journals
    (TypeTag.PAGE_REFERENCE, TypeTag.DATE): MigrationPolicy.RESOLVE_PAGE_REFERENCES,
}


def lookup_migration_policy(change: TypeChange) -> MigrationPolicy:
    """Find the policy for a type change: exact pair, then wildcard, then DROP."""
    policy = MIGRATION_POLICIES.get((change.from_type, change.to_type))
    if policy is None:
        policy = MIGRATION_POLICIES.get((change.from_type, ANY_TYPE))
    return policy or MigrationPolicy.DROP


def stringify_value(value: Any) -> str:
    if is_collection(value):
        return ", ".join(sorted(str(v) for v in value))
    return str(value)


def resolve_page_references(value: Any, resolver: PageNameResolver) -> set:
    values = value if is_collection(value) else [value]
    return {resolver.resolve(v) for v in values}


def migrate_changed_value(
    value: Any,
    prop: str,
    change: TypeChange,
    context: BuildContext,
    text_values: Dict[str, Any],
    entity: Dict[str, Any],
) -> Any:
    """
    Convert a value whose property's type changed.

    Returns:
        The migrated value, or None if the value is dropped
    """
    policy = lookup_migration_policy(change)

    if policy == MigrationPolicy.STRINGIFY:
        return text_values.get(prop) or stringify_value(value)

    if policy == MigrationPolicy.RESOLVE_PAGE_REFERENCES:
        return resolve_page_references(value, context.resolver)

    logger.info(
        f"Property value ignored: {prop}={value!r} "
        f"({change.from_type.value} -> {change.to_type.value})"
    )
    context.import_state.record_ignored(
        IgnoreReason.DISCARDED_PROPERTY_VALUE,
        property=prop,
        value=value,
        location=entity_location(entity),
        change=change,
    )
    return None


def translate_user_values(
    props: Dict[str, Any],
    changes: Dict[str, TypeChange],
    context: BuildContext,
    text_values: Dict[str, Any],
    entity: Dict[str, Any],
) -> Dict[str, Any]:
    """Translate user property values; collections become sets of page uuids."""
    resolver = context.resolver
    translated = {}
    for prop, value in props.items():
        if prop in changes:
            migrated = migrate_changed_value(value, prop, changes[prop], context, text_values, entity)
            if migrated is not None:
                translated[prop] = migrated
        elif is_collection(value):
            translated[prop] = {resolver.resolve(v) for v in value}
        else:
            translated[prop] = value
    return translated


def update_properties(
    props: Dict[str, Any],
    context: BuildContext,
    entity: Dict[str, Any],
    changes: Dict[str, TypeChange],
) -> Dict[str, Any]:
    """Translate property values and map keys to property uuids."""
    # TODO: import :template properties once their values can be typed consistently
    if "template" in props:
        return {}

    text_values = {
        property_key(k): v for k, v in (entity.get("properties_text_values") or {}).items()
    }
    built_ins = {k: v for k, v in props.items() if is_built_in(k)}
    user_props = {k: v for k, v in props.items() if not is_built_in(k)}

    translated = translate_built_in_values(built_ins, context, entity)
    translated.update(translate_user_values(user_props, changes, context, text_values, entity))

    resolver = context.resolver
    return {resolver.resolve(prop, "property"): value for prop, value in translated.items()}


def handle_property_attributes(
    entity: Dict[str, Any],
    context: BuildContext,
    refs: Iterable[Any],
) -> Dict[str, Any]:
    """
    Infer property schemas and rewrite an entity's properties.

    Only user properties are inferred since built-in property types are fixed.
    Parser bookkeeping attributes are always removed.

    Args:
        entity: Raw page or block
        context: Build context for the current file
        refs: References used to detect journal (date) values

    Returns:
        Updated entity
    """
    entity = dict(entity)
    properties = entity.get("properties")

    if properties:
        props = {
            property_key(k): v for k, v in properties.items()
            if property_key(k) not in DISSOCIATED_PROPERTIES
        }
        # Template properties don't have representative values
        to_infer = {} if "template" in props else {
            k: v for k, v in props.items() if not is_built_in(k)
        }

        changes = {}
        for prop, value in to_infer.items():
            change = infer_schema_and_get_change(value, prop, refs, context.registry, context.macros)
            if change is not None:
                changes[prop] = change

        if changes:
            logger.info(
                f"Property changes in {entity_location(entity)}: "
                + ", ".join(f"{p}={c.to_dict()['type']}" for p, c in changes.items())
            )

        entity["properties"] = update_properties(props, context, entity, changes)

    for attr in PARSER_BOOKKEEPING_ATTRIBUTES:
        entity.pop(attr, None)
    return entity
