"""
Unit tests for type inference and the property schema registry.
"""

import pytest

from graph_import.core.exceptions import UnsupportedValueShapeError
from graph_import.core.models import Cardinality, PropertySchema, TypeChange, TypeTag
from graph_import.inference import (
    PropertySchemaRegistry,
    expand_macro,
    infer_property_type,
    infer_schema_and_get_change,
    infer_type_from_value,
)


JOURNAL_REFS = [
    {"name": "jun 29th, 2023", "original_name": "Jun 29th, 2023", "journal": True},
    {"name": "jun 30th, 2023", "original_name": "Jun 30th, 2023", "journal": True},
    {"name": "foo", "original_name": "Foo"},
]


class TestInferTypeFromValue:
    """Tests for value-shape inference."""

    @pytest.mark.parametrize("value", ["1", "42", "-3.5", "1e3", 7, 2.5])
    def test_numbers(self, value):
        assert infer_type_from_value(value) == TypeTag.NUMBER

    @pytest.mark.parametrize("value", ["true", "false", "TRUE", True, False])
    def test_booleans(self, value):
        assert infer_type_from_value(value) == TypeTag.BOOLEAN

    @pytest.mark.parametrize("value", ["https://logseq.com", "http://example.com/a?b=c", "www.example.com"])
    def test_urls(self, value):
        assert infer_type_from_value(value) == TypeTag.URL

    @pytest.mark.parametrize("value", ["hello", "1 apple", "", "https://"])
    def test_default(self, value):
        assert infer_type_from_value(value) == TypeTag.DEFAULT

    def test_collection_is_page_reference(self):
        assert infer_type_from_value({"foo", "bar"}) == TypeTag.PAGE_REFERENCE
        assert infer_type_from_value(["foo"]) == TypeTag.PAGE_REFERENCE


class TestExpandMacro:
    """Tests for macro expansion before classification."""

    def test_expands_arguments(self):
        macros = {"poem": "Rose is $1, violet's $2"}
        assert expand_macro("{{poem red, blue}}", macros) == "Rose is red, violet's blue"

    def test_unknown_macro_unchanged(self):
        assert expand_macro("{{nope 1}}", {"poem": "x"}) == "{{nope 1}}"

    def test_non_macro_unchanged(self):
        assert expand_macro("plain", {"poem": "x"}) == "plain"

    def test_expansion_drives_inference(self):
        macros = {"answer": "42"}
        assert infer_property_type("{{answer}}", macros=macros) == TypeTag.NUMBER


class TestInferPropertyType:
    """Tests for inference with reference context."""

    def test_all_journal_values_are_dates(self):
        value = ["Jun 29th, 2023", "Jun 30th, 2023"]
        assert infer_property_type(value, JOURNAL_REFS) == TypeTag.DATE

    def test_mixed_journal_values_are_page_references(self):
        value = ["Jun 29th, 2023", "Foo"]
        assert infer_property_type(value, JOURNAL_REFS) == TypeTag.PAGE_REFERENCE

    def test_mixed_collection_is_fatal(self):
        with pytest.raises(UnsupportedValueShapeError) as exc_info:
            infer_property_type(["a", 1], prop="rating")
        assert exc_info.value.property == "rating"

    def test_empty_collection_is_page_reference(self):
        assert infer_property_type([], JOURNAL_REFS) == TypeTag.PAGE_REFERENCE


class TestInferSchemaAndGetChange:
    """Tests for schema registration and type change detection."""

    def test_registers_scalar_with_one_cardinality(self):
        registry = PropertySchemaRegistry()

        change = infer_schema_and_get_change("1", "priority", [], registry)

        assert change is None
        assert registry.get("priority") == PropertySchema(TypeTag.NUMBER, Cardinality.ONE)

    @pytest.mark.parametrize("value,expected", [
        (["foo"], TypeTag.PAGE_REFERENCE),
        (["Jun 29th, 2023"], TypeTag.DATE),
    ])
    def test_registers_references_with_many_cardinality(self, value, expected):
        registry = PropertySchemaRegistry()

        infer_schema_and_get_change(value, "related", JOURNAL_REFS, registry)

        assert registry.get("related") == PropertySchema(expected, Cardinality.MANY)

    def test_same_type_returns_nothing(self):
        registry = PropertySchemaRegistry()
        infer_schema_and_get_change("1", "priority", [], registry)

        assert infer_schema_and_get_change("2", "priority", [], registry) is None

    def test_disagreement_returns_change(self):
        registry = PropertySchemaRegistry()
        infer_schema_and_get_change("1", "priority", [], registry)

        change = infer_schema_and_get_change(["a", "b"], "priority", [], registry)

        assert change == TypeChange(TypeTag.NUMBER, TypeTag.PAGE_REFERENCE)
        assert change.to_dict() == {"type": {"from": "number", "to": "page-reference"}}


class TestPropertySchemaRegistry:
    """Tests for registry monotonicity and checkpoints."""

    def test_register_if_absent_is_idempotent(self):
        registry = PropertySchemaRegistry()

        assert registry.register_if_absent("p", PropertySchema(TypeTag.NUMBER)) is True
        assert registry.register_if_absent("p", PropertySchema(TypeTag.URL)) is False
        assert registry.get("p").type == TypeTag.NUMBER

    def test_type_never_changes_across_observations(self):
        registry = PropertySchemaRegistry()
        observations = ["1", "hello", ["a"], "https://x.org", "true", "3"]

        changes = [infer_schema_and_get_change(v, "p", [], registry) for v in observations]

        assert registry.get("p").type == TypeTag.NUMBER
        assert changes[0] is None
        assert [c.to_type for c in changes if c] == [
            TypeTag.DEFAULT, TypeTag.PAGE_REFERENCE, TypeTag.URL, TypeTag.BOOLEAN,
        ]
        assert len(registry) == 1

    def test_diff_since_checkpoint(self):
        registry = PropertySchemaRegistry()
        registry.register_if_absent("a", PropertySchema(TypeTag.DEFAULT))
        checkpoint = registry.checkpoint()
        registry.register_if_absent("b", PropertySchema(TypeTag.NUMBER))
        registry.register_if_absent("a", PropertySchema(TypeTag.NUMBER))

        diff = registry.diff_since(checkpoint)

        assert list(diff) == ["b"]
        assert "a" in registry and "b" in registry

    def test_rollback_to_checkpoint(self):
        registry = PropertySchemaRegistry()
        registry.register_if_absent("a", PropertySchema(TypeTag.DEFAULT))
        checkpoint = registry.checkpoint()
        registry.register_if_absent("b", PropertySchema(TypeTag.NUMBER))

        registry.rollback(checkpoint)

        assert list(registry) == ["a"]
        assert registry.register_if_absent("b", PropertySchema(TypeTag.URL)) is True
        assert registry.get("b").type == TypeTag.URL

    def test_to_dict(self):
        registry = PropertySchemaRegistry()
        registry.register_if_absent("tags2", PropertySchema(TypeTag.PAGE_REFERENCE, Cardinality.MANY))

        assert registry.to_dict() == {"tags2": {"type": "page-reference", "cardinality": "many"}}
