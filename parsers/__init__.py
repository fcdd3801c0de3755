"""
Spreadsheet parsers module.

Reads uploaded candidate files into SourceDataset objects.
"""

from parsers.spreadsheet_parser import (
    read_spreadsheet,
    ensure_supported,
    ALLOWED_EXTENSIONS,
)

__all__ = [
    "read_spreadsheet",
    "ensure_supported",
    "ALLOWED_EXTENSIONS",
]
