"""
Upload parsers.

Turn uploaded files into typed datasets for the import pipeline.
"""

from parsers.article_import_parser import (
    parse_import_file,
    ParsedDataset,
    SUPPORTED_EXTENSIONS,
)

__all__ = [
    "parse_import_file",
    "ParsedDataset",
    "SUPPORTED_EXTENSIONS",
]
