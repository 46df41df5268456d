"""
Type inference for property values and the session property schema registry.
"""

from .value_types import infer_type_from_value, expand_macro
from .schema_registry import PropertySchemaRegistry
from .property_inference import infer_property_type, infer_schema_and_get_change

__all__ = [
    "infer_type_from_value",
    "expand_macro",
    "PropertySchemaRegistry",
    "infer_property_type",
    "infer_schema_and_get_change",
]
