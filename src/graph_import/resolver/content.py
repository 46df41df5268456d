"""
Rewriting of references embedded in block content.

Textual page references and tags become id references so the content keeps
pointing at the same entity when pages are renamed:

    [[Some Page]]   -> [[~^<uuid>]]
    #tag, #[[A Tag]] -> #[[~^<uuid>]]

Tags promoted to classes are removed from content entirely.
"""

import re
from typing import Any, Dict, Iterable, List

ID_REF_PREFIX = "~^"
ID_REF_PATTERN = re.compile(
    r"\[\[~\^([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})\]\]"
)

# A bare #tag ends at whitespace, end of text or closing punctuation
_TAG_END = r"(?=$|[\s,.!?;:)\]])"
_TAG_START = r"(?<!\S)"


def id_ref(uuid: str) -> str:
    return f"[[{ID_REF_PREFIX}{uuid}]]"


def _names_of(page: Dict[str, Any]) -> List[str]:
    names = []
    for key in ("original_name", "name"):
        value = page.get(key)
        if value and value not in names:
            names.append(value)
    return names


def page_ref_to_id_ref(content: str, pages: Iterable[Dict[str, Any]]) -> str:
    """
    Replace [[Page Name]] references with id references.

    Args:
        content: Block content
        pages: Page maps carrying 'name'/'original_name' and 'uuid'

    Returns:
        Rewritten content
    """
    if not content:
        return content
    for page in pages:
        uuid = page.get("uuid")
        if not uuid:
            continue
        for name in _names_of(page):
            pattern = re.compile(r"\[\[" + re.escape(name) + r"\]\]", re.IGNORECASE)
            content = pattern.sub(lambda _m: id_ref(uuid), content)
    return content


def replace_tags_with_id_refs(content: str, tags: Iterable[Dict[str, Any]]) -> str:
    """Replace #tag and #[[Tag]] occurrences with #[[~^uuid]]."""
    if not content:
        return content
    for tag in tags:
        uuid = tag.get("uuid")
        if not uuid:
            continue
        for name in _names_of(tag):
            bracketed = re.compile(
                _TAG_START + r"#\[\[" + re.escape(name) + r"\]\]", re.IGNORECASE
            )
            content = bracketed.sub(lambda _m: "#" + id_ref(uuid), content)
            if not re.search(r"\s", name):
                bare = re.compile(_TAG_START + "#" + re.escape(name) + _TAG_END, re.IGNORECASE)
                content = bare.sub(lambda _m: "#" + id_ref(uuid), content)
    return content


def content_without_tags(content: str, names: Iterable[str], uuids: Iterable[str] = ()) -> str:
    """
    Remove tags from content.

    Args:
        content: Block content
        names: Tag names as written in the file
        uuids: Tag uuids, for tags already rewritten to id references
    """
    if not content:
        return content
    patterns = []
    for name in names:
        if name:
            patterns.append(_TAG_START + r"#\[\[" + re.escape(name) + r"\]\]")
            patterns.append(_TAG_START + "#" + re.escape(name) + _TAG_END)
    for uuid in uuids:
        if uuid:
            patterns.append(re.escape("#" + id_ref(uuid)))

    # Each tag takes at most one adjoining space with it
    stripped = content
    for pattern in patterns:
        stripped = re.sub(r"[ \t]?" + pattern, "", stripped, flags=re.IGNORECASE)
    if stripped == content:
        return content
    return stripped.strip()


def id_refs_in(content: str) -> List[str]:
    """All uuids referenced by id references in content, in order."""
    if not content:
        return []
    return ID_REF_PATTERN.findall(content)
