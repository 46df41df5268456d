"""
File format detection and extractors feeding the import engine.
"""

from .formats import MLDOC_FORMATS, get_block_pattern, get_format, is_whiteboard
from .records_extractor import RecordsExtractor, decode_record, decode_ref

__all__ = [
    "MLDOC_FORMATS",
    "get_block_pattern",
    "get_format",
    "is_whiteboard",
    "RecordsExtractor",
    "decode_record",
    "decode_ref",
]
