#!/usr/bin/env python3
"""
CLI for importing file graphs into a DB graph.

Usage:
    python -m graph_import.import_cli import data/dumps/ [--config config/graph_import.yaml]
    python -m graph_import.import_cli import data/dumps/ --backend sqlserver --tag-class Book --report report.json
    python -m graph_import.import_cli infer 42 "https://example.com" true
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .assembler import ImportRunner
from .config import ImportConfig
from .core.exceptions import GraphImportError
from .core.logging import configure_logging
from .extract import RecordsExtractor
from .inference import infer_type_from_value
from .store import bootstrap_graph


def setup_logging(verbose: bool = False, structured: bool = False) -> None:
    """Configure logging."""
    log_level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level=log_level, structured=structured)


def cmd_import(args) -> int:
    """Import a directory of record dumps."""
    logger = logging.getLogger(__name__)

    try:
        config = ImportConfig(config_path=args.config)
    except GraphImportError as e:
        logger.error(f"Failed to load config: {e}")
        return 1

    if args.backend:
        config.config["store"]["backend"] = args.backend
    if args.tag_class:
        config.config["import"]["tag_classes"] = config.tag_classes + list(args.tag_class)
    if args.page_tags_uuid:
        config.config["import"]["page_tags_uuid"] = args.page_tags_uuid

    try:
        store = config.create_store()
    except Exception as e:
        logger.error(f"Failed to create graph store: {e}")
        return 1

    runner = ImportRunner(
        store=store,
        options=config.to_import_options(RecordsExtractor()),
        fail_fast=args.fail_fast or bool(config.get("import.fail_fast", False)),
    )

    try:
        if config.get("store.bootstrap", True):
            bootstrap_graph(store)

        summary = runner.run_directory(args.dump_dir)
        print(json.dumps(summary, indent=2))

        if args.report:
            report_path = Path(args.report)
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report_path.write_text(json.dumps(runner.report(), indent=2, default=str), encoding="utf-8")
            logger.info(f"Wrote report: {report_path}")

        return 0 if not summary["files_failed"] else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except (GraphImportError, FileNotFoundError) as e:
        logger.error(f"Import failed: {e}")
        return 1
    finally:
        runner.close()


def cmd_infer(args) -> int:
    """Print the inferred type of each value."""
    for value in args.values:
        print(f"{value}\t{infer_type_from_value(value).value}")
    return 0


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Graph import CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output JSON-structured logs",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Import command
    import_parser = subparsers.add_parser("import", help="Import a directory of record dumps")
    import_parser.add_argument("dump_dir", type=Path, help="Directory of *.json record dumps")
    import_parser.add_argument("--config", type=Path, help="Path to configuration YAML file")
    import_parser.add_argument("--backend", choices=["memory", "sqlserver"], help="Graph store backend")
    import_parser.add_argument("--tag-class", action="append", help="Tag promoted to a class (repeatable)")
    import_parser.add_argument("--page-tags-uuid", help="uuid of the page-tags property")
    import_parser.add_argument("--report", help="Write the session report (JSON) to this path")
    import_parser.add_argument("--fail-fast", action="store_true", help="Stop at the first failed file")

    # Infer command
    infer_parser = subparsers.add_parser("infer", help="Show the inferred type of property values")
    infer_parser.add_argument("values", nargs="+", help="Property values")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_args(argv)

    setup_logging(verbose=args.verbose, structured=args.json_logs)

    if args.command == "import":
        return cmd_import(args)
    elif args.command == "infer":
        return cmd_infer(args)
    else:
        print("No command specified. Use --help for usage.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
