"""
Graph assembler: imports one file into a DB graph.

Extracts the file, builds its page and block fragments, adds the index
fragments the store needs to resolve references, and applies everything as a
single transaction.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ..builder.blocks import build_block_tx
from ..builder.pages import build_pages_tx
from ..core.exceptions import TransactionError, UnresolvedReferenceError, UnsupportedFileFormatError
from ..core.extractor import ExtractOptions, ExtractResult, Extractor
from ..core.graph_store import GraphStore
from ..core.logging import CorrelationContext
from ..core.models import FileImportResult, IgnoreReason, ImportState, Ref
from ..core.utils import remove_nils
from ..extract.formats import MLDOC_FORMATS, get_block_pattern, get_format, is_whiteboard

logger = logging.getLogger(__name__)

WHITEBOARD_TYPES = ("whiteboard", ["whiteboard"])
WHITEBOARD_PAGE_VALUE = "whiteboard-page"


@dataclass
class ImportOptions:
    """
    Options shared by every file of an import session.

    Attributes:
        extractor: Parser producing raw pages and blocks
        tag_classes: Tag names promoted to classes (case-insensitive)
        page_tags_uuid: uuid of the property holding non-class page tags
        macros: Macro table used for macro expansion during inference
        extract_options: Parser options overriding the defaults
    """
    extractor: Extractor
    tag_classes: Iterable[str] = ()
    page_tags_uuid: Optional[str] = None
    macros: Dict[str, str] = field(default_factory=dict)
    extract_options: Optional[ExtractOptions] = None


def new_import_state() -> ImportState:
    """New import state, shared across all files of one import session."""
    return ImportState()


def _extract_options(fmt: Optional[str], options: ImportOptions) -> ExtractOptions:
    base = options.extract_options or ExtractOptions()
    if base.block_pattern is None:
        base = replace(base, block_pattern=get_block_pattern(fmt))
    return replace(base, db_graph_mode=True)


def _extract(file: str, content: str, fmt: Optional[str], options: ImportOptions) -> Optional[ExtractResult]:
    extract_options = _extract_options(fmt, options)
    if fmt in MLDOC_FORMATS:
        return options.extractor.extract(file, content, extract_options)
    if is_whiteboard(file):
        return options.extractor.extract_whiteboard(file, content, extract_options)
    return None


def build_whiteboard_pages(store: GraphStore, pages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Extra fragments marking whiteboard pages (old and new style) as such.

    Raises:
        UnresolvedReferenceError: If the store has no ls-type property
    """
    whiteboards = [page for page in pages if page.get("type") in WHITEBOARD_TYPES]
    if not whiteboards:
        return []

    ls_type_id = store.get_property_id("ls-type")
    if ls_type_id is None:
        raise UnresolvedReferenceError("ls-type", "property")

    # TODO: keep the whiteboard's own properties alongside ls-type
    return [
        {
            **page,
            "type": "whiteboard",
            "journal": False,
            "format": "markdown",
            "properties": {ls_type_id: WHITEBOARD_PAGE_VALUE},
        }
        for page in whiteboards
    ]


def build_index(pages: List[Dict[str, Any]], blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Identity fragments for every page, block and block uuid reference.

    Asserting every identity up front lets fragments reference entities
    defined later in the same transaction. Block identities are deduplicated.
    """
    pages_index = [{"name": page["name"]} for page in pages if page.get("name")]

    block_uuids = []
    for block in blocks:
        block_uuids.append(block.get("uuid"))
        for ref in block.get("refs") or ():
            if isinstance(ref, Ref) and ref.is_uuid:
                block_uuids.append(ref.value)
    block_ids = [{"uuid": uuid} for uuid in dict.fromkeys(u for u in block_uuids if u)]
    return pages_index + block_ids


def add_file_to_db_graph(
    store: GraphStore,
    file: str,
    content: str,
    options: ImportOptions,
    import_state: Optional[ImportState] = None,
) -> FileImportResult:
    """
    Parse a file and save its pages and blocks to the given graph store.

    Imports of one session must share import_state so property schemas and
    the ignored-properties log carry across files. Files are imported one at
    a time; the state's lock serializes concurrent callers.

    Args:
        store: Target graph store
        file: File path relative to the graph root
        content: File content
        options: Session import options
        import_state: Session state (a fresh one when omitted)

    Returns:
        FileImportResult; skipped=True when the file's format is unsupported

    Raises:
        UnsupportedValueShapeError: If a property value cannot be classified
        UnresolvedReferenceError: If a name cannot be mapped to a uuid
        TransactionError: If the store rejects the file's transaction
    """
    if import_state is None:
        import_state = new_import_state()

    fmt = get_format(file)
    with import_state.lock, CorrelationContext(file=file):
        import_state.current_file = file
        try:
            extracted = _extract(file, content, fmt, options)
            if extracted is None:
                error = UnsupportedFileFormatError(file)
                logger.warning(str(error))
                import_state.record_ignored(
                    IgnoreReason.UNSUPPORTED_FILE_FORMAT,
                    value=file,
                    detail=str(error),
                )
                return FileImportResult(file=file, format=fmt, import_state=import_state, skipped=True)

            registry = import_state.property_schemas
            file_checkpoint = registry.checkpoint()
            try:
                return _import_extracted(store, file, fmt, extracted, options, import_state, file_checkpoint)
            except Exception:
                registry.rollback(file_checkpoint)
                raise
        finally:
            import_state.current_file = None


def _import_extracted(
    store: GraphStore,
    file: str,
    fmt: Optional[str],
    extracted: ExtractResult,
    options: ImportOptions,
    import_state: ImportState,
    file_checkpoint: FrozenSet[str],
) -> FileImportResult:
    registry = import_state.property_schemas
    tag_classes = {str(tag).lower() for tag in options.tag_classes or ()}

    # Build page and block txs
    pages_tx = build_pages_tx(
        store,
        extracted.pages,
        extracted.blocks,
        import_state,
        tag_classes=tag_classes,
        page_tags_uuid=options.page_tags_uuid,
        macros=options.macros,
    )
    pages = pages_tx.pages
    whiteboard_pages = build_whiteboard_pages(store, pages)

    pre_blocks = {block["uuid"] for block in extracted.blocks if block.get("pre_block")}
    context = pages_tx.context.with_mode(bool(whiteboard_pages))
    blocks = [
        build_block_tx(block, pre_blocks, context)
        for block in extracted.blocks
        if not block.get("pre_block")
    ]

    schema_fragments = [
        {
            "name": prop,
            "uuid": pages_tx.page_names_to_uuids.get(prop),
            "type": "property",
            "schema": schema.to_dict(),
        }
        for prop, schema in registry.diff_since(file_checkpoint).items()
    ]

    tx = whiteboard_pages + build_index(pages, blocks) + pages + schema_fragments + blocks
    tx = remove_nils(tx)

    logger.debug(f"Transacting {len(tx)} fragments for {file}")
    result = store.transact(tx)
    if not result.success:
        raise TransactionError(f"Transaction failed for {file}: {result.error}")

    logger.info(f"Imported {file}: {len(pages)} pages, {len(blocks)} blocks")
    return FileImportResult(
        file=file,
        format=fmt,
        import_state=import_state,
        tx_result=result,
        page_count=len(pages),
        block_count=len(blocks),
    )
