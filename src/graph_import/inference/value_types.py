"""
Value-shape type inference (the leaf of the import pipeline).

Classifies a single property value into a TypeTag from its shape alone,
without looking at any other file or the database.
"""

import re
import logging
from typing import Any, Dict, Optional

from ..core.models import TypeTag
from ..core.utils import is_collection

logger = logging.getLogger(__name__)


NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
URL_PATTERN = re.compile(
    r"^(?:(?:https?|ftp|file)://|www\.)[^\s/$.?#][^\s]*$", re.IGNORECASE
)
BOOLEAN_LITERALS = {"true", "false"}

# {{name}} or {{name arg1, arg2}}
MACRO_PATTERN = re.compile(r"^\{\{\s*([^\s{}]+)\s*(.*?)\s*\}\}$", re.DOTALL)


def infer_type_from_value(value: Any) -> TypeTag:
    """
    Infer a property's type from one observed value.

    Args:
        value: Scalar or collection property value

    Returns:
        The inferred TypeTag

    Example:
        >>> infer_type_from_value("1")
        <TypeTag.NUMBER: 'number'>
        >>> infer_type_from_value({"foo", "bar"})
        <TypeTag.PAGE_REFERENCE: 'page-reference'>
    """
    if is_collection(value):
        return TypeTag.PAGE_REFERENCE

    if isinstance(value, bool):
        return TypeTag.BOOLEAN

    if isinstance(value, (int, float)):
        return TypeTag.NUMBER

    if isinstance(value, str):
        text = value.strip()
        if text.lower() in BOOLEAN_LITERALS:
            return TypeTag.BOOLEAN
        if NUMBER_PATTERN.match(text):
            return TypeTag.NUMBER
        if URL_PATTERN.match(text):
            return TypeTag.URL

    return TypeTag.DEFAULT


def expand_macro(value: Any, macros: Optional[Dict[str, str]]) -> Any:
    """
    Expand a property value that is a single macro call.

    Macro arguments replace $1, $2, ... in the macro's definition. Values that
    are not a macro call, or call an unknown macro, are returned unchanged.

    Example:
        >>> expand_macro("{{poem red, blue}}", {"poem": "Rose is $1, violet's $2"})
        "Rose is red, violet's blue"
    """
    if not macros or not isinstance(value, str):
        return value

    match = MACRO_PATTERN.match(value.strip())
    if not match:
        return value

    name, arg_text = match.group(1), match.group(2)
    expansion = macros.get(name)
    if expansion is None:
        return value

    args = [arg.strip() for arg in arg_text.split(",")] if arg_text else []
    for i, arg in reversed(list(enumerate(args, start=1))):
        expansion = expansion.replace(f"${i}", arg)

    logger.debug(f"Expanded macro {name!r} to {expansion!r}")
    return expansion
