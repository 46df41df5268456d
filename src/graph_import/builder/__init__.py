"""
Page and block transaction builders.
"""

from .context import BuildContext
from .blocks import build_block_tx, fix_pre_block_references
from .pages import PagesTx, build_pages_tx, with_ref_pages
from .properties import (
    MigrationPolicy,
    MIGRATION_POLICIES,
    lookup_migration_policy,
    handle_property_attributes,
)
from .literals import decode_literal

__all__ = [
    "BuildContext",
    "build_block_tx",
    "fix_pre_block_references",
    "PagesTx",
    "build_pages_tx",
    "with_ref_pages",
    "MigrationPolicy",
    "MIGRATION_POLICIES",
    "lookup_migration_policy",
    "handle_property_attributes",
    "decode_literal",
]
