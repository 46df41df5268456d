"""
Unit tests for importing files into a graph store.

Cover the end-to-end import of single files through the static extractor into
the in-memory store: journal pages, property type changes across files, tag
classes, re-imports, pre-blocks, whiteboards and rejected transactions.
"""

import uuid
from dataclasses import replace

import pytest

from graph_import.assembler import (
    ImportOptions,
    add_file_to_db_graph,
    build_index,
    build_whiteboard_pages,
    new_import_state,
)
from graph_import.core.exceptions import TransactionError, UnresolvedReferenceError
from graph_import.core.models import IgnoreReason, Ref, TypeChange, TypeTag
from graph_import.resolver.content import id_refs_in


def new_id():
    return str(uuid.uuid4())


def on_page(name, **block):
    page = Ref.to_name(name)
    return {"uuid": new_id(), "page": page, "parent": page, "left": page, **block}


JOURNAL_FILE = "journals/2023_06_29.md"


@pytest.fixture
def journal(extractor):
    page_uuid = new_id()
    block = on_page("jun 29th, 2023", content="test", refs=[])
    extractor.add(
        JOURNAL_FILE,
        pages=[{
            "name": "jun 29th, 2023", "original_name": "Jun 29th, 2023", "uuid": page_uuid,
            "journal": True, "journal_day": 20230629,
        }],
        blocks=[block],
    )
    return page_uuid, block["uuid"]


@pytest.fixture
def reading_list(extractor):
    """A page tagged #fiction with a block tagged #Book and #fiction."""
    block = on_page(
        "reading list",
        content="Reading #Book now #fiction",
        tags=[{"name": "book", "original_name": "Book"}, {"name": "fiction", "original_name": "fiction"}],
        refs=[{"name": "book", "original_name": "Book"}, {"name": "fiction", "original_name": "fiction"}],
    )
    extractor.add(
        "pages/reading list.md",
        pages=[{
            "name": "reading list", "original_name": "Reading List", "uuid": new_id(),
            "tags": [{"name": "fiction", "original_name": "fiction"}],
        }],
        blocks=[block],
    )
    return block["uuid"]


@pytest.fixture
def tag_options(options, seeded_store):
    return replace(
        options,
        tag_classes=["Book"],
        page_tags_uuid=seeded_store.get_property_id("pagetags"),
    )


class TestJournalImport:
    """Importing a journal file."""

    def test_page_and_block_created(self, store, options, import_state, journal):
        page_uuid, block_uuid = journal

        result = add_file_to_db_graph(store, JOURNAL_FILE, "", options, import_state)

        assert result.success
        assert (result.page_count, result.block_count) == (1, 1)
        page = store.get_page("jun 29th, 2023")
        assert page["uuid"] == page_uuid
        assert page["journal"] is True
        assert page["created_at"] and page["updated_at"]

        block = store.get_entity(block_uuid)
        assert block["content"] == "test"
        assert block["page"] == Ref.to_uuid(page_uuid)
        assert block["parent"] == Ref.to_uuid(page_uuid)
        assert block["format"] == "markdown"
        assert block["created_at"] and block["updated_at"]

    def test_extract_options(self, store, options, extractor):
        extractor.add("pages/notes.org")

        add_file_to_db_graph(store, "pages/notes.org", "", options)

        _, extract_options = extractor.calls[0]
        assert extract_options.block_pattern == "*"
        assert extract_options.db_graph_mode is True


class TestPropertyTypeChanges:
    """A property's type changing between files."""

    def test_changed_value_dropped_and_logged(self, store, options, import_state, extractor):
        first = on_page("p1", content="x", properties={"priority": "1"})
        second = on_page("p2", content="y", properties={"priority": ["a", "b"]})
        extractor.add("pages/p1.md", pages=[{"name": "p1"}], blocks=[first])
        extractor.add("pages/p2.md", pages=[{"name": "p2"}], blocks=[second])

        add_file_to_db_graph(store, "pages/p1.md", "", options, import_state)
        add_file_to_db_graph(store, "pages/p2.md", "", options, import_state)

        priority = store.get_page("priority")
        assert priority["type"] == "property"
        assert priority["schema"] == {"type": "number", "cardinality": "one"}
        assert store.get_entity(first["uuid"])["properties"] == {priority["uuid"]: "1"}
        assert "properties" not in store.get_entity(second["uuid"])

        assert import_state.property_schemas.get("priority").type == TypeTag.NUMBER
        assert len(import_state.ignored_properties) == 1
        entry = import_state.ignored_properties[0]
        assert entry.change == TypeChange(TypeTag.NUMBER, TypeTag.PAGE_REFERENCE)
        assert entry.file == "pages/p2.md"
        assert entry.to_dict()["change"] == {"type": {"from": "number", "to": "page-reference"}}

    def test_schema_shared_across_files(self, store, options, import_state, extractor):
        extractor.add("pages/a.md", pages=[{"name": "a"}], blocks=[on_page("a", content="x", properties={"url": "https://a.org"})])
        extractor.add("pages/b.md", pages=[{"name": "b"}], blocks=[on_page("b", content="y", properties={"url": "https://b.org"})])

        add_file_to_db_graph(store, "pages/a.md", "", options, import_state)
        add_file_to_db_graph(store, "pages/b.md", "", options, import_state)

        assert import_state.property_schemas.to_dict() == {"url": {"type": "url", "cardinality": "one"}}
        assert import_state.ignored_properties == []


class TestTagClasses:
    """Tags promoted to classes and plain tags."""

    def test_block_and_page_tags(self, seeded_store, tag_options, import_state, reading_list):
        add_file_to_db_graph(seeded_store, "pages/reading list.md", "", tag_options, import_state)

        book = seeded_store.get_page("book")
        fiction = seeded_store.get_page("fiction")
        assert book["type"] == "class"
        assert book["original_name"] == "Book"
        assert fiction.get("type") != "class"

        block = seeded_store.get_entity(reading_list)
        assert block["content"] == f"Reading now #[[~^{fiction['uuid']}]]"
        assert block["tags"] == [Ref.to_uuid(book["uuid"])]
        assert Ref.to_uuid(fiction["uuid"]) in block["refs"]

        page = seeded_store.get_page("reading list")
        assert page["properties"] == {tag_options.page_tags_uuid: {fiction["uuid"]}}
        assert "tags" not in page

    def test_id_refs_resolve(self, seeded_store, tag_options, import_state, reading_list):
        add_file_to_db_graph(seeded_store, "pages/reading list.md", "", tag_options, import_state)

        for entity in seeded_store.entities():
            for ref in id_refs_in(entity.get("content")):
                assert ref in seeded_store


class TestReimport:
    """Importing the same file twice."""

    def test_reimport_is_idempotent(self, seeded_store, tag_options, reading_list):
        add_file_to_db_graph(seeded_store, "pages/reading list.md", "", tag_options, new_import_state())
        before = seeded_store.snapshot()

        add_file_to_db_graph(seeded_store, "pages/reading list.md", "", tag_options, new_import_state())

        assert seeded_store.snapshot() == before

    def test_journal_reimport_is_idempotent(self, store, options, journal):
        add_file_to_db_graph(store, JOURNAL_FILE, "", options)
        before = store.snapshot()

        add_file_to_db_graph(store, JOURNAL_FILE, "", options)

        assert store.snapshot() == before


class TestPreBlocks:
    """Pre-blocks are merged into their page."""

    def test_pre_block_children_lifted(self, store, options, extractor):
        pre = on_page("foo", content="title:: Foo", pre_block=True)
        child = {
            "uuid": new_id(), "content": "child", "page": Ref.to_name("foo"),
            "parent": Ref.to_uuid(pre["uuid"]), "left": Ref.to_uuid(pre["uuid"]),
        }
        extractor.add("pages/foo.md", pages=[{"name": "foo"}], blocks=[pre, child])

        result = add_file_to_db_graph(store, "pages/foo.md", "", options)

        foo = Ref.to_uuid(store.get_page("foo")["uuid"])
        assert result.block_count == 1
        assert pre["uuid"] not in store
        assert store.get_entity(child["uuid"])["parent"] == foo
        assert store.get_entity(child["uuid"])["left"] == foo


class TestUnsupportedFiles:
    """Files neither markup nor whiteboard."""

    def test_skipped_and_recorded(self, store, options, import_state, extractor):
        result = add_file_to_db_graph(store, "assets/image.png", "", options, import_state)

        assert result.skipped
        assert not result.success
        assert len(store) == 0
        assert extractor.calls == []
        entry = import_state.ignored_properties[0]
        assert entry.reason == IgnoreReason.UNSUPPORTED_FILE_FORMAT
        assert entry.value == "assets/image.png"
        assert import_state.current_file is None

    def test_edn_outside_whiteboards_skipped(self, store, options):
        assert add_file_to_db_graph(store, "logseq/config.edn", "", options).skipped


class TestWhiteboards:
    """Whiteboard files."""

    FILE = "whiteboards/board.edn"

    @pytest.fixture
    def board(self, extractor):
        shape = on_page("board", content="shape")
        extractor.add(self.FILE, pages=[{"name": "board", "type": "whiteboard"}], blocks=[shape])
        return shape["uuid"]

    def test_whiteboard_page(self, seeded_store, options, board):
        add_file_to_db_graph(seeded_store, self.FILE, "", options)

        page = seeded_store.get_page("board")
        assert page["type"] == "whiteboard"
        assert page["properties"] == {seeded_store.get_property_id("ls-type"): "whiteboard-page"}
        assert seeded_store.get_entity(board)["page"] == Ref.to_uuid(page["uuid"])

    def test_requires_built_in_properties(self, store, options, board):
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            add_file_to_db_graph(store, self.FILE, "", options)

        assert exc_info.value.name == "ls-type"
        assert len(store) == 0

    def test_build_whiteboard_pages_ignores_other_pages(self, store):
        assert build_whiteboard_pages(store, [{"name": "foo"}]) == []


class TestBuildIndex:
    """Identity fragments."""

    def test_pages_blocks_and_block_refs(self):
        a, b = new_id(), new_id()
        blocks = [{"uuid": a, "refs": [Ref.to_uuid(b), {"name": "foo"}]}, {"uuid": b}]

        index = build_index([{"name": "foo"}, {"uuid": new_id()}], blocks)

        assert index == [{"name": "foo"}, {"uuid": a}, {"uuid": b}]


class TestRejectedTransactions:
    """A transaction the store rejects changes nothing."""

    def test_nothing_committed(self, seeded_store, options, extractor):
        bad = on_page("foo", content="x")
        bad["left"] = Ref.to_uuid(new_id())
        extractor.add("pages/foo.md", pages=[{"name": "foo"}], blocks=[bad])
        before = seeded_store.snapshot()

        with pytest.raises(TransactionError) as exc_info:
            add_file_to_db_graph(seeded_store, "pages/foo.md", "", options)

        assert "pages/foo.md" in str(exc_info.value)
        assert seeded_store.snapshot() == before

    def test_schemas_of_rejected_file_are_forgotten(self, seeded_store, options, extractor, import_state):
        bad = on_page("foo", content="x", properties={"rating": "5"})
        bad["left"] = Ref.to_uuid(new_id())
        extractor.add("pages/foo.md", pages=[{"name": "foo"}], blocks=[bad])
        extractor.add("pages/bar.md", pages=[{"name": "bar"}], blocks=[
            on_page("bar", content="y", properties={"rating": "7"}),
        ])

        with pytest.raises(TransactionError):
            add_file_to_db_graph(seeded_store, "pages/foo.md", "", options, import_state)

        assert "rating" not in import_state.property_schemas

        add_file_to_db_graph(seeded_store, "pages/bar.md", "", options, import_state)

        rating = seeded_store.get_page("rating")
        assert rating["type"] == "property"
        assert rating["schema"] == {"type": "number", "cardinality": "one"}
        assert import_state.property_schemas.to_dict() == {"rating": {"type": "number", "cardinality": "one"}}
