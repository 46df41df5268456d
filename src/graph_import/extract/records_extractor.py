"""
Extractor for pre-parsed record dumps.

The upstream parser can write its output for a graph file as JSON:

    {
        "file": "pages/Foo.md",
        "pages": [{"name": "foo", "original_name": "Foo", ...}],
        "blocks": [{"uuid": "...", "page": ["name", "foo"], "refs": [...], ...}]
    }

Lookup references are encoded as two-element lists (["uuid", "..."] or
["name", "..."]) and decoded into Ref values.
"""

import json
import logging
from typing import Any, Dict, List

from ..core.exceptions import GraphImportError
from ..core.extractor import ExtractOptions, ExtractResult, Extractor
from ..core.models import Ref
from ..core.utils import page_name_sanity_lc

logger = logging.getLogger(__name__)

POINTER_ATTRIBUTES = ("page", "parent", "left", "namespace")
REF_LIST_ATTRIBUTES = ("refs", "path_refs", "alias")


def decode_ref(value: Any) -> Any:
    """Decode a ["uuid", x] / ["name", x] pair into a Ref. Anything else is returned unchanged."""
    if (
        isinstance(value, list)
        and len(value) == 2
        and value[0] in ("uuid", "name")
        and isinstance(value[1], str)
    ):
        return Ref(value[0], value[1])
    return value


def _tag_page(tag: Any) -> Any:
    # Tags are page maps; a bare name lookup is turned into one
    if isinstance(tag, Ref) and not tag.is_uuid:
        return {"name": page_name_sanity_lc(tag.value), "original_name": tag.value}
    if isinstance(tag, str):
        return {"name": page_name_sanity_lc(tag), "original_name": tag}
    return tag


def decode_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the lookup references of one page or block record."""
    record = dict(record)
    for attr in POINTER_ATTRIBUTES:
        if attr in record:
            record[attr] = decode_ref(record[attr])
    for attr in REF_LIST_ATTRIBUTES:
        if record.get(attr):
            record[attr] = [decode_ref(ref) for ref in record[attr]]
    if record.get("tags"):
        record["tags"] = [_tag_page(decode_ref(tag)) for tag in record["tags"]]
    return record


class RecordsExtractor(Extractor):
    """
    Extractor reading parser output already serialized as JSON.

    The file content handed to extract() is the JSON dump itself.

    Example usage:
        >>> extractor = RecordsExtractor()
        >>> result = extractor.extract("pages/foo.md", dump_text, ExtractOptions())
        >>> len(result.blocks)
        3
    """

    def _load(self, file: str, content: str) -> ExtractResult:
        try:
            data = json.loads(content) if isinstance(content, str) else content
        except json.JSONDecodeError as e:
            raise GraphImportError(f"Invalid record dump for {file}: {e}") from e

        if not isinstance(data, dict):
            raise GraphImportError(f"Record dump for {file} must be a JSON object")

        pages: List[Dict[str, Any]] = [decode_record(p) for p in data.get("pages") or []]
        blocks: List[Dict[str, Any]] = [decode_record(b) for b in data.get("blocks") or []]
        logger.debug(f"Loaded {len(pages)} pages and {len(blocks)} blocks for {file}")
        return ExtractResult(pages=pages, blocks=blocks)

    def extract(self, file: str, content: str, options: ExtractOptions) -> ExtractResult:
        return self._load(file, content)

    def extract_whiteboard(self, file: str, content: str, options: ExtractOptions) -> ExtractResult:
        result = self._load(file, content)
        for page in result.pages:
            page.setdefault("type", "whiteboard")
        return result
