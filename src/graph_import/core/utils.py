"""
Core Utilities - Shared helper functions for the graph import engine.
"""

import time
import unicodedata
import uuid
from typing import Any


def time_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_uuid() -> str:
    """
    Generate a new stable identifier.

    The first 32 bits carry the current time in seconds so ids created in one
    import sort roughly by creation order.
    """
    random_part = uuid.uuid4().hex
    seconds = format(int(time.time()) & 0xFFFFFFFF, "08x")
    return str(uuid.UUID(seconds + random_part[8:]))


def page_name_sanity_lc(name: str) -> str:
    """
    Normalize a page name for identity lookups.

    Example:
        >>> page_name_sanity_lc("  Jun 29th, 2023 ")
        'jun 29th, 2023'
    """
    if name is None:
        return ""
    return unicodedata.normalize("NFC", str(name)).strip().lower()


def is_collection(value: Any) -> bool:
    """True for list-like property values (strings and dicts are scalars here)."""
    return isinstance(value, (list, tuple, set, frozenset))


def remove_nils(value: Any) -> Any:
    """
    Recursively strip None values and empty containers from a transaction.

    Empty collections left after stripping are removed too; top-level list
    entries that end up empty are dropped.
    """
    if isinstance(value, dict):
        cleaned = {}
        for k, v in value.items():
            if k is None:
                continue
            v = remove_nils(v)
            if v is None or (is_collection(v) or isinstance(v, dict)) and not v:
                continue
            cleaned[k] = v
        return cleaned
    if isinstance(value, (set, frozenset)):
        return type(value)(v for v in value if v is not None)
    if isinstance(value, (list, tuple)) and not hasattr(value, "_fields"):
        cleaned = [remove_nils(v) for v in value]
        return [v for v in cleaned if v is not None and not (isinstance(v, dict) and not v)]
    return value
