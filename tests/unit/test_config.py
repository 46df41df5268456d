"""
Unit tests for ImportConfig.
"""

import pytest

from graph_import.config import DEFAULT_CONFIG, ImportConfig
from graph_import.core.exceptions import ImportConfigError
from graph_import.store import MemoryGraphStore


ENV_VARS = ("GRAPH_IMPORT_TAG_CLASSES", "GRAPH_IMPORT_PAGE_TAGS_UUID", "GRAPH_STORE_BACKEND")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "graph_import.yaml"
    path.write_text(
        "import:\n"
        "  tag_classes: [Book, Person]\n"
        "  macros:\n"
        "    poem: \"Rose is $1\"\n"
        "  extract:\n"
        "    date_formatter: yyyy-MM-dd\n"
        "    export_to_db_graph: true\n"
        "logging:\n"
        "  level: DEBUG\n",
        encoding="utf-8",
    )
    return path


class TestImportConfig:
    """Tests for loading configuration."""

    def test_defaults(self):
        config = ImportConfig()

        assert config.tag_classes == []
        assert config.get("store.backend") == "memory"
        assert config.get("store.sqlserver.port") == 1433
        assert config.get_logging_config() == DEFAULT_CONFIG["logging"]

    def test_defaults_not_mutated(self, config_file):
        ImportConfig(config_file)

        assert DEFAULT_CONFIG["import"]["tag_classes"] == []
        assert DEFAULT_CONFIG["import"]["extract"]["date_formatter"] == "MMM do, yyyy"

    def test_yaml_merged_over_defaults(self, config_file):
        config = ImportConfig(config_file)

        assert config.tag_classes == ["Book", "Person"]
        assert config.get("import.macros") == {"poem": "Rose is $1"}
        assert config.get("import.extract.date_formatter") == "yyyy-MM-dd"
        assert config.get("import.extract.filename_format") == "legacy"
        assert config.get("logging.level") == "DEBUG"
        assert config.get("logging.structured") is False

    def test_get_default(self):
        config = ImportConfig()

        assert config.get("import.page_tags_uuid", "none") == "none"
        assert config.get("import.tag_classes.nested", "x") == "x"


class TestEnvOverrides:
    """Tests for environment variable overrides."""

    def test_tag_classes(self, monkeypatch, config_file):
        monkeypatch.setenv("GRAPH_IMPORT_TAG_CLASSES", "Book, Movie,")

        assert ImportConfig(config_file).tag_classes == ["Book", "Movie"]

    def test_page_tags_uuid(self, monkeypatch):
        monkeypatch.setenv("GRAPH_IMPORT_PAGE_TAGS_UUID", "abc")

        assert ImportConfig().get("import.page_tags_uuid") == "abc"

    def test_backend(self, monkeypatch):
        monkeypatch.setenv("GRAPH_STORE_BACKEND", "SQLSERVER")

        assert ImportConfig().get("store.backend") == "sqlserver"


class TestConfigErrors:
    """Tests for invalid configuration."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImportConfigError, match="not found"):
            ImportConfig(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("import: [unclosed", encoding="utf-8")

        with pytest.raises(ImportConfigError, match="Invalid YAML"):
            ImportConfig(path)

    def test_root_not_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ImportConfigError, match="mapping"):
            ImportConfig(path)

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert ImportConfig(path).get("store.backend") == "memory"

    @pytest.mark.parametrize("body", [
        "import:\n  tag_classes: Book\n",
        "import:\n  tag_classes: [1, 2]\n",
        "import:\n  macros: [a]\n",
        "store:\n  backend: sqlite\n",
    ])
    def test_invalid_values(self, tmp_path, body):
        path = tmp_path / "invalid.yaml"
        path.write_text(body, encoding="utf-8")

        with pytest.raises(ImportConfigError):
            ImportConfig(path)


class TestConfigFactories:
    """Tests for building options and stores from configuration."""

    def test_to_import_options(self, config_file, extractor):
        options = ImportConfig(config_file).to_import_options(extractor)

        assert options.extractor is extractor
        assert options.tag_classes == ["Book", "Person"]
        assert options.page_tags_uuid is None
        assert options.macros == {"poem": "Rose is $1"}
        assert options.extract_options.date_formatter == "yyyy-MM-dd"
        assert options.extract_options.block_pattern is None
        assert options.extract_options.extra == {"export_to_db_graph": True}

    def test_create_memory_store(self):
        assert isinstance(ImportConfig().create_store(), MemoryGraphStore)
