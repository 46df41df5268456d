"""
Decoder for the structured literals used by some built-in properties.

Legacy graphs store values such as `query-properties:: [:page :updated-at]`
or `filters:: {"foo" true, "bar" false}` as EDN. The text is read with
edn_format and converted to plain Python values: vectors, lists and sets
become lists, maps become dicts, and keywords and symbols decode to their
name without the leading colon.
"""

from collections.abc import Hashable, Mapping, Sequence, Set
from typing import Any

import edn_format

from ..core.exceptions import MalformedBuiltinValueError


def _plain(value: Any) -> Any:
    if isinstance(value, (edn_format.Keyword, edn_format.Symbol)):
        return value.name
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        plain = {}
        for key, item in value.items():
            key = _plain(key)
            if not isinstance(key, Hashable):
                raise MalformedBuiltinValueError(f"Map keys must be scalars, got {key!r}")
            plain[key] = _plain(item)
        return plain
    if isinstance(value, (Sequence, Set)):
        return [_plain(item) for item in value]
    return value


def decode_literal(text: Any) -> Any:
    """
    Decode a literal string.

    Args:
        text: Literal text; already-decoded lists and dicts are returned as is

    Returns:
        Decoded value

    Raises:
        MalformedBuiltinValueError: If the text is not a single well-formed literal

    Example:
        >>> decode_literal('[:page :updated-at]')
        ['page', 'updated-at']
        >>> decode_literal('{"foo" true "bar" false}')
        {'foo': True, 'bar': False}
    """
    if isinstance(text, (list, dict)):
        return text
    if not isinstance(text, str):
        raise MalformedBuiltinValueError(f"Cannot decode literal from {type(text).__name__}")
    if not text.strip():
        raise MalformedBuiltinValueError("Empty literal")

    try:
        forms = edn_format.loads_all(text)
    except (edn_format.EDNDecodeError, ValueError, TypeError) as e:
        raise MalformedBuiltinValueError(f"Invalid literal {text!r}: {e}")
    if len(forms) != 1:
        raise MalformedBuiltinValueError(f"Expected one form in literal {text!r}, got {len(forms)}")
    return _plain(forms[0])
