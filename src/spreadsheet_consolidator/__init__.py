"""spreadsheet-consolidator — Combine several spreadsheets into one table."""

__version__ = "0.1.0"

SOURCE_COLUMN: str = "Source file"
UNSPECIFIED: str = "Unspecified"
